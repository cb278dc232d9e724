import os

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('BOOKING_RETRY_BACKOFF_SECONDS', '0')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinic_scheduling.database import Base, build_engine  # noqa: E402
from clinic_scheduling.models.appointment import Appointment  # noqa: E402
from clinic_scheduling.models.availability import AvailabilityRule  # noqa: E402
from clinic_scheduling.models.doctor import Doctor  # noqa: E402


class RecordingDispatcher:
    def __init__(self):
        self.events = []

    def dispatch(self, event) -> None:
        self.events.append(event)


class FailingDispatcher:
    def dispatch(self, event) -> None:
        raise RuntimeError('mail server down')


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a file-backed database so threads use separate connections."""
    engine = build_engine(f'sqlite:///{tmp_path / "scheduling.db"}')
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def recording_dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher():
    return FailingDispatcher()


@pytest.fixture
def make_doctor():
    def _make_doctor(session, **overrides) -> Doctor:
        values = {'name': 'Dr. X', 'is_active': True, 'is_available': True}
        values.update(overrides)
        doctor = Doctor(**values)
        session.add(doctor)
        session.commit()
        session.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def make_rule():
    def _make_rule(
        session,
        doctor_id: int,
        day_of_week: int,
        start_time: int,
        end_time: int,
        slot_duration_minutes: int = 30,
        active: bool = True,
    ) -> AvailabilityRule:
        rule = AvailabilityRule(
            doctor_id=doctor_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            slot_duration_minutes=slot_duration_minutes,
            active=active,
        )
        session.add(rule)
        session.commit()
        session.refresh(rule)
        return rule

    return _make_rule


@pytest.fixture
def make_appointment():
    def _make_appointment(session, doctor_id: int, patient_id: int, slot_date, slot_time: int, status='scheduled'):
        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=patient_id,
            date=slot_date,
            time=slot_time,
            status=status,
        )
        session.add(appointment)
        session.commit()
        session.refresh(appointment)
        return appointment

    return _make_appointment


@pytest.fixture
def client(session_factory, recording_dispatcher):
    from fastapi.testclient import TestClient

    from clinic_scheduling.database import get_db
    from clinic_scheduling.main import app
    from clinic_scheduling.routes.appointment_routes import get_notification_dispatcher

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: recording_dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    from clinic_scheduling.auth.jwt_handler import create_access_token

    def _auth_headers(caller_id: int, role: str) -> dict:
        return {'Authorization': f'Bearer {create_access_token(caller_id, role)}'}

    return _auth_headers
