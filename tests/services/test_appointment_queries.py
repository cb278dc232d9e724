from datetime import date

import pytest

from clinic_scheduling.core.errors import AppointmentNotFound, InvalidRequest
from clinic_scheduling.core.identity import Caller
from clinic_scheduling.services import appointment_queries

NEXT_MONDAY = date(2030, 1, 7)
FOLLOWING_MONDAY = date(2030, 1, 14)


@pytest.fixture
def seeded(db, make_doctor, make_appointment):
    doctor = make_doctor(db)
    other_doctor = make_doctor(db, name='Dr. Y')
    appointments = [
        make_appointment(db, doctor.id, 42, NEXT_MONDAY, 540, status='completed'),
        make_appointment(db, doctor.id, 42, NEXT_MONDAY, 570, status='cancelled'),
        make_appointment(db, doctor.id, 42, FOLLOWING_MONDAY, 540, status='scheduled'),
        make_appointment(db, other_doctor.id, 42, FOLLOWING_MONDAY, 600, status='confirmed'),
        make_appointment(db, doctor.id, 43, FOLLOWING_MONDAY, 570, status='no_show'),
    ]
    return doctor, other_doctor, appointments


def test_patient_sees_only_own_appointments_newest_first(db, seeded) -> None:
    _, _, appointments = seeded

    listed = appointment_queries.list_appointments(db, Caller(id=42, role='patient'))

    assert [appointment.id for appointment in listed] == [
        appointments[3].id,
        appointments[2].id,
        appointments[1].id,
        appointments[0].id,
    ]


def test_doctor_sees_only_own_appointments_filtered_by_status_and_date(db, seeded) -> None:
    doctor, _, appointments = seeded
    caller = Caller(id=doctor.id, role='doctor')

    by_status = appointment_queries.list_appointments(db, caller, status='no_show')
    by_date = appointment_queries.list_appointments(db, caller, on_date=NEXT_MONDAY)

    assert [appointment.id for appointment in by_status] == [appointments[4].id]
    assert {appointment.id for appointment in by_date} == {appointments[0].id, appointments[1].id}


def test_list_appointments_paginates(db, seeded) -> None:
    caller = Caller(id=42, role='patient')

    first_page = appointment_queries.list_appointments(db, caller, limit=2)
    second_page = appointment_queries.list_appointments(db, caller, limit=2, offset=2)

    assert len(first_page) == 2
    assert len(second_page) == 2
    assert not {appointment.id for appointment in first_page} & {appointment.id for appointment in second_page}


@pytest.mark.parametrize('kwargs', [{'status': 'archived'}, {'limit': 0}, {'limit': 500}, {'offset': -1}])
def test_list_appointments_rejects_bad_filters(db, kwargs) -> None:
    with pytest.raises(InvalidRequest):
        appointment_queries.list_appointments(db, Caller(id=42, role='patient'), **kwargs)


def test_get_appointment_requires_participant(db, seeded) -> None:
    doctor, other_doctor, appointments = seeded

    assert appointment_queries.get_appointment(db, Caller(id=42, role='patient'), appointments[0].id).id == appointments[0].id
    assert appointment_queries.get_appointment(db, Caller(id=doctor.id, role='doctor'), appointments[0].id)

    with pytest.raises(AppointmentNotFound):
        appointment_queries.get_appointment(db, Caller(id=43, role='patient'), appointments[0].id)
    with pytest.raises(AppointmentNotFound):
        appointment_queries.get_appointment(db, Caller(id=other_doctor.id, role='doctor'), appointments[0].id)
    with pytest.raises(AppointmentNotFound):
        appointment_queries.get_appointment(db, Caller(id=42, role='patient'), 999)


def test_doctor_schedule_groups_by_date(db, seeded) -> None:
    doctor, _, appointments = seeded

    schedule = appointment_queries.doctor_schedule(db, doctor.id, NEXT_MONDAY, FOLLOWING_MONDAY)

    assert list(schedule) == ['2030-01-07', '2030-01-14']
    assert [entry.label for entry in schedule['2030-01-07']] == ['09:00', '09:30']
    assert [entry.id for entry in schedule['2030-01-14']] == [appointments[2].id, appointments[4].id]


def test_doctor_schedule_rejects_inverted_range(db) -> None:
    with pytest.raises(InvalidRequest):
        appointment_queries.doctor_schedule(db, 1, FOLLOWING_MONDAY, NEXT_MONDAY)


def test_patient_stats_counts_by_status(db, seeded) -> None:
    stats = appointment_queries.patient_stats(db, 42)

    assert stats.total_appointments == 4
    assert stats.completed_appointments == 1
    assert stats.cancelled_appointments == 1
    assert stats.upcoming_appointments == 2
    assert stats.missed_appointments == 0


def test_patient_stats_for_patient_without_appointments(db) -> None:
    stats = appointment_queries.patient_stats(db, 1000)

    assert stats.total_appointments == 0
    assert stats.upcoming_appointments == 0
