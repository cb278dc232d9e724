import pytest

from clinic_scheduling.routes.appointment_routes import UpdateAppointmentRequest
from clinic_scheduling.services.notifications import BOOKING_CANCELLED, BOOKING_CONFIRMED

NEXT_MONDAY = '2030-01-07'
PATIENT_ID = 42


@pytest.fixture
def doctor(db, make_doctor, make_rule):
    doctor = make_doctor(db)
    make_rule(db, doctor.id, 1, 540, 600, 30)
    return doctor


@pytest.fixture
def patient_headers(auth_headers):
    return auth_headers(PATIENT_ID, 'patient')


@pytest.fixture
def doctor_headers(doctor, auth_headers):
    return auth_headers(doctor.id, 'doctor')


def book(client, doctor_id: int, headers: dict, time='09:00'):
    return client.post(
        '/appointments',
        json={'doctor_id': doctor_id, 'date': NEXT_MONDAY, 'time': time, 'reason_for_visit': 'Checkup'},
        headers=headers,
    )


def test_patient_books_open_slot(client, doctor, patient_headers, recording_dispatcher) -> None:
    response = book(client, doctor.id, patient_headers)

    assert response.status_code == 201
    body = response.json()
    assert body['patient_id'] == PATIENT_ID
    assert body['doctor_id'] == doctor.id
    assert (body['date'], body['time'], body['time_label']) == (NEXT_MONDAY, 540, '09:00')
    assert body['status'] == 'scheduled'
    assert [event.event_type for event in recording_dispatcher.events] == [BOOKING_CONFIRMED]

    availability = client.get(f'/doctors/{doctor.id}/availability', params={'date': NEXT_MONDAY}).json()
    assert availability['available_slots'] == [570]


def test_booking_taken_slot_returns_conflict(client, doctor, patient_headers, auth_headers) -> None:
    assert book(client, doctor.id, patient_headers).status_code == 201

    response = book(client, doctor.id, auth_headers(43, 'patient'))

    assert response.status_code == 409
    assert response.json()['error'] == 'slot_conflict'


def test_booking_off_grid_time_is_outside_schedule(client, doctor, patient_headers) -> None:
    response = book(client, doctor.id, patient_headers, time='09:15')

    assert response.status_code == 400
    assert response.json()['error'] == 'slot_outside_schedule'


def test_booking_with_unavailable_doctor(client, db, make_doctor, patient_headers) -> None:
    doctor = make_doctor(db, is_available=False)

    response = book(client, doctor.id, patient_headers)

    assert response.status_code == 400
    assert response.json()['error'] == 'doctor_unavailable'


def test_booking_past_date_is_invalid(client, db, make_doctor, make_rule, patient_headers) -> None:
    doctor = make_doctor(db)
    make_rule(db, doctor.id, 1, 540, 600, 30)

    response = client.post(
        '/appointments',
        json={'doctor_id': doctor.id, 'date': '2020-01-06', 'time': 540},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()['error'] == 'invalid_date'


def test_doctors_cannot_book(client, doctor, doctor_headers) -> None:
    response = book(client, doctor.id, doctor_headers)

    assert response.status_code == 403


def test_malformed_time_is_rejected_by_validation(client, doctor, patient_headers) -> None:
    response = book(client, doctor.id, patient_headers, time='nine')

    assert response.status_code == 422


def test_invalid_token_is_rejected(client, doctor) -> None:
    response = book(client, doctor.id, {'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401


def test_patch_cancels_and_delete_is_not_repeatable(client, doctor, patient_headers, recording_dispatcher) -> None:
    appointment_id = book(client, doctor.id, patient_headers).json()['id']

    cancelled = client.patch(
        f'/appointments/{appointment_id}',
        json={'status': 'cancelled', 'cancellation_reason': 'Travel'},
        headers=patient_headers,
    )
    again = client.delete(f'/appointments/{appointment_id}', params={'reason': 'Travel'}, headers=patient_headers)

    assert cancelled.status_code == 200
    assert cancelled.json()['status'] == 'cancelled'
    assert cancelled.json()['cancellation_reason'] == 'Travel'
    assert again.status_code == 409
    assert again.json()['error'] == 'invalid_transition'
    assert recording_dispatcher.events[-1].event_type == BOOKING_CANCELLED


def test_patch_reschedules(client, doctor, patient_headers) -> None:
    appointment_id = book(client, doctor.id, patient_headers).json()['id']

    response = client.patch(f'/appointments/{appointment_id}', json={'time': '09:30'}, headers=patient_headers)

    assert response.status_code == 200
    assert response.json()['time'] == 570


def test_patch_rejects_status_with_reschedule(client, doctor, patient_headers) -> None:
    appointment_id = book(client, doctor.id, patient_headers).json()['id']

    response = client.patch(
        f'/appointments/{appointment_id}',
        json={'status': 'cancelled', 'cancellation_reason': 'Travel', 'time': 570},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()['error'] == 'invalid_request'


def test_doctor_confirms_and_completes(client, doctor, patient_headers, doctor_headers) -> None:
    appointment_id = book(client, doctor.id, patient_headers).json()['id']

    confirmed = client.patch(f'/appointments/{appointment_id}', json={'status': 'confirmed'}, headers=doctor_headers)
    completed = client.patch(f'/appointments/{appointment_id}', json={'status': 'completed'}, headers=doctor_headers)

    assert confirmed.json()['status'] == 'confirmed'
    assert completed.json()['status'] == 'completed'


def test_list_get_and_stats(client, doctor, patient_headers, auth_headers) -> None:
    appointment_id = book(client, doctor.id, patient_headers).json()['id']

    listed = client.get('/appointments', headers=patient_headers).json()
    fetched = client.get(f'/appointments/{appointment_id}', headers=patient_headers)
    hidden = client.get(f'/appointments/{appointment_id}', headers=auth_headers(43, 'patient'))
    stats = client.get('/appointments/stats', headers=patient_headers).json()

    assert [appointment['id'] for appointment in listed['appointments']] == [appointment_id]
    assert listed['count'] == 1
    assert fetched.status_code == 200
    assert hidden.status_code == 404
    assert stats['total_appointments'] == 1
    assert stats['upcoming_appointments'] == 1


def test_list_filters_by_status(client, doctor, patient_headers) -> None:
    book(client, doctor.id, patient_headers)

    response = client.get('/appointments', params={'status': 'cancelled'}, headers=patient_headers)

    assert response.status_code == 200
    assert response.json()['appointments'] == []


def test_update_request_accepts_field_names_and_aliases() -> None:
    by_alias = UpdateAppointmentRequest.model_validate({'date': NEXT_MONDAY, 'time': '09:30'})
    by_name = UpdateAppointmentRequest(new_date=NEXT_MONDAY, new_time=570)

    assert (by_alias.new_date, by_alias.new_time) == (by_name.new_date, by_name.new_time)
    assert by_name.new_time == 570
