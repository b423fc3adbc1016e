import json

import httpx
import pytest
import respx

from scheduling_gateway.client.api import GatewayClient
from scheduling_gateway.client.credentials import SavedCredentials
from scheduling_gateway.client.search import LocationQuery
from scheduling_gateway.errors import (
    InputValidationError,
    NetworkError,
    RequestTimeoutError,
    UnauthenticatedError,
    VendorError,
)

GATEWAY_URL = 'http://gateway.test/api'


class FakeCredentialStore:
    def __init__(self, saved=None):
        self.saved = saved
        self.cleared = False

    def save(self, client_id, client_secret, use_backend_proxy=True):
        self.saved = SavedCredentials(client_id, client_secret, use_backend_proxy)

    def load(self):
        return self.saved

    def clear(self):
        self.saved = None
        self.cleared = True


def _gateway(**kwargs) -> GatewayClient:
    return GatewayClient(GATEWAY_URL, http_client=httpx.Client(), **kwargs)


def _token_response(token: str = 'abc') -> httpx.Response:
    return httpx.Response(200, json={'access_token': token, 'token_type': 'Bearer', 'expires_in': 3600})


def _location_payload(location_id: str) -> dict:
    return {
        'provider_location_id': location_id,
        'provider': {'npi': f'npi-{location_id}'},
        'location': {'address1': '1 Main St', 'city': 'New York', 'state': 'NY', 'zip_code': '10001'},
    }


def test_authenticate_requires_both_credentials_before_any_call() -> None:
    with respx.mock(assert_all_called=False) as router:
        route = router.post(f'{GATEWAY_URL}/auth')

        with pytest.raises(InputValidationError) as exception_info:
            _gateway().authenticate('client-id', '')

    assert exception_info.value.error == 'Please enter both Client ID and Client Secret'
    assert not route.called


@respx.mock
def test_authenticate_sets_session_and_remembers_credentials() -> None:
    route = respx.post(f'{GATEWAY_URL}/auth').mock(return_value=_token_response())
    store = FakeCredentialStore()
    gateway = _gateway(credential_store=store)

    gateway.authenticate(' client-id ', ' client-secret ', remember=True)

    assert gateway.is_authenticated()
    assert gateway.session.access_token == 'abc'
    assert store.saved == SavedCredentials('client-id', 'client-secret')
    assert json.loads(route.calls.last.request.content) == {'clientId': 'client-id', 'clientSecret': 'client-secret'}


@respx.mock
def test_reauthenticate_uses_stored_credentials() -> None:
    respx.post(f'{GATEWAY_URL}/auth').mock(return_value=_token_response('fresh'))
    gateway = _gateway(credential_store=FakeCredentialStore(SavedCredentials('client-id', 'client-secret')))

    gateway.reauthenticate()

    assert gateway.session.access_token == 'fresh'


def test_reauthenticate_without_stored_credentials_returns_none() -> None:
    assert _gateway(credential_store=FakeCredentialStore()).reauthenticate() is None


@respx.mock
def test_rejected_stored_credentials_are_cleared() -> None:
    respx.post(f'{GATEWAY_URL}/auth').mock(
        return_value=httpx.Response(
            401,
            json={'error': 'access_denied', 'error_description': 'Unauthorized', 'status': 401, 'details': {}},
        )
    )
    store = FakeCredentialStore(SavedCredentials('client-id', 'revoked'))
    gateway = _gateway(credential_store=store)

    with pytest.raises(UnauthenticatedError):
        gateway.reauthenticate()

    assert store.cleared
    assert gateway.session is None


@respx.mock
def test_logout_forgets_session_and_credentials() -> None:
    respx.post(f'{GATEWAY_URL}/auth').mock(return_value=_token_response())
    store = FakeCredentialStore()
    gateway = _gateway(credential_store=store)
    gateway.authenticate('client-id', 'client-secret', remember=True)

    gateway.logout()

    assert not gateway.is_authenticated()
    assert store.saved is None


@pytest.mark.parametrize(
    ('status', 'body', 'error_type'),
    [
        (400, {'error': 'Missing npis parameter', 'status': 400}, InputValidationError),
        (400, {'error': 'invalid_request', 'status': 400, 'details': {'error': 'invalid_request'}}, VendorError),
        (408, {'error': 'Request timeout', 'status': 408}, RequestTimeoutError),
        (502, {'error': 'No response from scheduling API', 'status': 502}, NetworkError),
        (500, {'error': 'server_error', 'status': 500, 'details': {}}, VendorError),
    ],
)
def test_gateway_envelope_maps_to_error_type(status: int, body: dict, error_type: type) -> None:
    with respx.mock:
        respx.get(f'{GATEWAY_URL}/insurance_plans').mock(return_value=httpx.Response(status, json=body))

        with pytest.raises(error_type) as exception_info:
            _gateway().get_insurance_plans()

    assert exception_info.value.status == status
    assert exception_info.value.error == body['error']


@respx.mock
def test_token_expiry_triggers_callback_once() -> None:
    respx.get(f'{GATEWAY_URL}/appointments').mock(
        return_value=httpx.Response(401, json={'error': 'Not authenticated. Please authenticate first.', 'status': 401})
    )
    expired = []
    gateway = _gateway()
    gateway.set_token_expired_callback(lambda: expired.append(True))

    with pytest.raises(UnauthenticatedError):
        gateway.list_appointments()

    assert expired == [True]
    assert gateway.session is None


@respx.mock
def test_forbidden_vendor_error_also_counts_as_token_expiry() -> None:
    respx.get(f'{GATEWAY_URL}/providers/npis').mock(
        return_value=httpx.Response(403, json={'error': 'forbidden', 'status': 403, 'details': {}})
    )
    expired = []
    gateway = _gateway()
    gateway.set_token_expired_callback(lambda: expired.append(True))

    with pytest.raises(VendorError):
        gateway.get_provider_npis()

    assert expired == [True]


@respx.mock
def test_client_timeout_maps_to_request_timeout() -> None:
    respx.get(f'{GATEWAY_URL}/provider_locations').mock(side_effect=httpx.ReadTimeout('slow'))

    with pytest.raises(RequestTimeoutError):
        _gateway().search_locations(LocationQuery(zip_code='10001', visit_reason_id='vr-1'))


@respx.mock
def test_no_response_maps_to_network_error() -> None:
    respx.get(f'{GATEWAY_URL}/provider_locations').mock(side_effect=httpx.ConnectError('refused'))

    with pytest.raises(NetworkError):
        _gateway().search_locations(LocationQuery(zip_code='10001', visit_reason_id='vr-1'))


def test_get_availability_validates_before_request() -> None:
    with respx.mock(assert_all_called=False) as router:
        route = router.get(f'{GATEWAY_URL}/availability')

        with pytest.raises(InputValidationError):
            _gateway().get_availability(['A'], 'vr-1', 'returning')

    assert not route.called


@respx.mock
def test_search_with_availability_joins_gateway_results() -> None:
    respx.get(f'{GATEWAY_URL}/provider_locations').mock(
        return_value=httpx.Response(
            200,
            json={
                'data': {
                    'total_count': 3,
                    'provider_locations': [_location_payload('A'), _location_payload('B'), _location_payload('C')],
                }
            },
        )
    )
    availability_route = respx.get(f'{GATEWAY_URL}/availability').mock(
        return_value=httpx.Response(
            200,
            json={
                'data': [
                    {
                        'provider_location_id': 'A',
                        'timeslots': [{'start_time': '2024-01-01T10:00'}, {'start_time': '2024-01-01T11:00'}],
                    },
                    {'provider_location_id': 'C', 'timeslots': []},
                ]
            },
        )
    )

    view = _gateway().search_with_availability(LocationQuery(zip_code='10001', visit_reason_id='vr-1'))

    assert [entry.provider_location_id for entry in view] == ['A']
    assert view.total_count == 3
    params = availability_route.calls.last.request.url.params
    assert params['provider_location_ids'] == 'A,B,C'
    assert params['visit_reason_id'] == 'vr-1'
    assert params['patient_type'] == 'new'


@respx.mock
def test_get_all_providers_fetches_sequential_batches() -> None:
    npis = [str(1000000000 + index) for index in range(120)]
    respx.get(f'{GATEWAY_URL}/providers/npis').mock(
        return_value=httpx.Response(200, json={'data': {'npis': npis}})
    )

    def providers_for(request: httpx.Request) -> httpx.Response:
        batch = request.url.params['npis'].split(',')
        return httpx.Response(
            200,
            json={'data': [{'npi': npi, 'providers': [{'npi': npi, 'full_name': f'Dr. {npi}'}]} for npi in batch]},
        )

    providers_route = respx.get(f'{GATEWAY_URL}/providers').mock(side_effect=providers_for)
    pauses = []
    gateway = _gateway(sleep=pauses.append)

    providers = gateway.get_all_providers()

    assert len(providers) == 120
    assert providers_route.call_count == 3
    assert [len(call.request.url.params['npis'].split(',')) for call in providers_route.calls] == [50, 50, 20]
    assert pauses == [0.1, 0.1]


@respx.mock
def test_get_appointment_unwraps_data() -> None:
    respx.get(f'{GATEWAY_URL}/appointments/appt-1').mock(
        return_value=httpx.Response(
            200,
            json={'data': {'appointment_id': 'appt-1', 'status': 'confirmed', 'patient': {'first_name': 'Ada'}}},
        )
    )

    appointment = _gateway().get_appointment('appt-1')

    assert appointment.appointment_id == 'appt-1'
    assert appointment.has_patient_details


@respx.mock
def test_reschedule_appointment_posts_new_start_time() -> None:
    route = respx.post(f'{GATEWAY_URL}/appointments/reschedule').mock(
        return_value=httpx.Response(200, json={'data': {'appointment_id': 'appt-1'}})
    )

    _gateway().reschedule_appointment('appt-1', '2024-01-02T09:00')

    assert json.loads(route.calls.last.request.content) == {
        'appointment_id': 'appt-1',
        'start_time': '2024-01-02T09:00',
    }


@respx.mock
def test_malformed_availability_payload_raises_vendor_error() -> None:
    respx.get(f'{GATEWAY_URL}/availability').mock(
        return_value=httpx.Response(200, json={'data': [{'provider_location_id': 'A', 'timeslots': None}]})
    )

    with pytest.raises(VendorError) as exception_info:
        _gateway().get_availability(['A'], 'vr-1', 'new')

    assert exception_info.value.status == 502
    assert exception_info.value.error == 'Unexpected response from server'
    assert exception_info.value.details == {'provider_location_id': 'A', 'timeslots': None}


@respx.mock
def test_malformed_search_payload_raises_vendor_error() -> None:
    respx.get(f'{GATEWAY_URL}/provider_locations').mock(
        return_value=httpx.Response(200, json={'data': {'provider_locations': [{'provider_location_id': 'A'}]}})
    )

    with pytest.raises(VendorError) as exception_info:
        _gateway().search_locations(LocationQuery(zip_code='10001', visit_reason_id='vr-1'))

    assert exception_info.value.status == 502


@respx.mock
def test_rejected_login_does_not_fire_token_expired_callback() -> None:
    auth_route = respx.post(f'{GATEWAY_URL}/auth').mock(
        return_value=httpx.Response(
            401,
            json={'error': 'access_denied', 'error_description': 'Unauthorized', 'status': 401, 'details': {}},
        )
    )
    store = FakeCredentialStore(SavedCredentials('client-id', 'revoked'))
    gateway = _gateway(credential_store=store)
    expired = []

    def reauthenticate_on_expiry() -> None:
        expired.append(True)
        gateway.reauthenticate()

    gateway.set_token_expired_callback(reauthenticate_on_expiry)

    with pytest.raises(UnauthenticatedError):
        gateway.reauthenticate()

    assert auth_route.call_count == 1
    assert expired == []
    assert store.cleared
