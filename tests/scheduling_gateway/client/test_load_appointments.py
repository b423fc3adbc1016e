import pytest

from scheduling_gateway.client.appointments import SAMPLE_APPOINTMENTS, load_appointments
from scheduling_gateway.errors import NetworkError, UnauthenticatedError, VendorError
from scheduling_gateway.schemas.vendor import AppointmentListItem


class FakeClient:
    def __init__(self, appointments=(), list_error=None, details=None, detail_error=None):
        self.appointments = list(appointments)
        self.list_error = list_error
        self.details = details or {}
        self.detail_error = detail_error
        self.detail_calls = []

    def list_appointments(self, page, page_size):
        if self.list_error is not None:
            raise self.list_error
        return self.appointments

    def get_appointment(self, appointment_id):
        self.detail_calls.append(appointment_id)
        if self.detail_error is not None:
            raise self.detail_error
        return self.details[appointment_id]


def _appointment(appointment_id: str, patient=None) -> AppointmentListItem:
    return AppointmentListItem(appointment_id=appointment_id, status='confirmed', patient=patient)


def test_only_entries_without_patient_are_backfilled() -> None:
    client = FakeClient(
        appointments=[_appointment('a-1', {'first_name': 'Ada'}), _appointment('a-2')],
        details={'a-2': _appointment('a-2', {'first_name': 'Grace'})},
    )

    appointments = load_appointments(client)

    assert client.detail_calls == ['a-2']
    assert [appointment.patient['first_name'] for appointment in appointments] == ['Ada', 'Grace']


def test_not_found_list_means_no_appointments() -> None:
    client = FakeClient(list_error=VendorError('not_found', status=404, details={}))

    assert load_appointments(client) == []


def test_sample_appointments_only_in_demo_mode() -> None:
    client = FakeClient(list_error=VendorError('not_found', status=404, details={}))

    assert load_appointments(client, demo_mode=True) == list(SAMPLE_APPOINTMENTS)


def test_list_failures_other_than_not_found_propagate() -> None:
    client = FakeClient(list_error=VendorError('server_error', status=500, details={}))

    with pytest.raises(VendorError):
        load_appointments(client, demo_mode=True)


def test_failed_backfill_keeps_listed_entry() -> None:
    client = FakeClient(appointments=[_appointment('a-1')], detail_error=NetworkError('No response received from server'))

    appointments = load_appointments(client)

    assert [appointment.appointment_id for appointment in appointments] == ['a-1']
    assert appointments[0].patient is None


def test_backfill_stops_on_expired_session() -> None:
    client = FakeClient(
        appointments=[_appointment('a-1')],
        detail_error=UnauthenticatedError('Not authenticated. Please authenticate first.'),
    )

    with pytest.raises(UnauthenticatedError):
        load_appointments(client)
