"""Client for the scheduling gateway.

Talks to the gateway, never to the vendor directly, so the client secret only
ever crosses the wire once (to ``/api/auth``). Calls are synchronous, carry a
fixed timeout and are never retried; every failure is raised as the matching
``SchedulingError`` subclass.

When a failure looks like an expired or rejected token, the callback set with
``set_token_expired_callback`` runs before the error propagates, whatever
operation triggered it except authentication itself.
"""

import logging
import time
from typing import Any, Callable, Iterable, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from scheduling_gateway.client.credentials import CredentialStore
from scheduling_gateway.client.search import LocationQuery, SearchView, search_with_availability
from scheduling_gateway.core import config
from scheduling_gateway.core.session import AuthSession
from scheduling_gateway.errors import (
    InputValidationError,
    NetworkError,
    RequestTimeoutError,
    SchedulingError,
    VendorError,
    error_from_envelope,
    is_token_expiry_error,
    join_validation_messages,
)
from scheduling_gateway.schemas.requests import DEFAULT_CANCELLATION_REASON_TYPE
from scheduling_gateway.schemas.vendor import (
    AppointmentListItem,
    Availability,
    InsurancePlan,
    ProviderDetails,
    ProviderLocationSearchResult,
    ProvidersByNpi,
)

logger = logging.getLogger(__name__)

PROVIDER_BATCH_SIZE = 50
PROVIDER_BATCH_PAUSE_SECONDS = 0.1
PATIENT_TYPES = ('new', 'existing')
AUTH_PATH = '/auth'

ModelT = TypeVar('ModelT', bound=BaseModel)


def _data_list(response: dict[str, Any]) -> list[Any]:
    data = response.get('data')
    return data if isinstance(data, list) else []


def _parse(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error('Could not parse %s from response: %s', model.__name__, exc)
        raise VendorError(
            'Unexpected response from server',
            error_description=join_validation_messages(exc.errors()),
            status=502,
            details=data,
        ) from exc


class GatewayClient:
    def __init__(
        self,
        base_url: str = config.GATEWAY_BASE_URL,
        *,
        timeout: float = config.CLIENT_TIMEOUT_SECONDS,
        http_client: httpx.Client | None = None,
        credential_store: CredentialStore | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.credential_store = credential_store
        self.session: AuthSession | None = None
        self._http = http_client or httpx.Client()
        self._sleep = sleep
        self._on_token_expired: Callable[[], None] | None = None

    def close(self) -> None:
        self._http.close()

    def set_token_expired_callback(self, callback: Callable[[], None] | None) -> None:
        self._on_token_expired = callback

    # Authentication

    def authenticate(
        self,
        client_id: str,
        client_secret: str,
        *,
        remember: bool = config.REMEMBER_CREDENTIALS,
    ) -> dict[str, Any]:
        client_id = (client_id or '').strip()
        client_secret = (client_secret or '').strip()
        if not client_id or not client_secret:
            raise InputValidationError('Please enter both Client ID and Client Secret')

        logger.info('Authenticating via gateway')
        data = self._request('POST', AUTH_PATH, json_payload={'clientId': client_id, 'clientSecret': client_secret})
        self.session = AuthSession.from_token_response(data)
        logger.info(
            'Auth response received: token_type=%s expires_in=%s scope=%s',
            self.session.token_type,
            data.get('expires_in'),
            self.session.scope,
        )

        if remember and self.credential_store is not None:
            self.credential_store.save(client_id, client_secret)
        return data

    def reauthenticate(self) -> dict[str, Any] | None:
        """Re-run authentication with stored credentials.

        Returns None when nothing is stored. If the stored credentials are
        rejected they are cleared and the error propagates, so the caller
        falls back to asking for credentials again.
        """
        if self.credential_store is None:
            return None
        stored = self.credential_store.load()
        if stored is None:
            return None

        try:
            return self.authenticate(stored.client_id, stored.client_secret, remember=False)
        except SchedulingError:
            logger.warning('Quick re-authentication failed; clearing stored credentials')
            self.credential_store.clear()
            self.session = None
            raise

    def is_authenticated(self) -> bool:
        return self.session is not None and not self.session.is_expired()

    def logout(self) -> None:
        self.session = None
        if self.credential_store is not None:
            self.credential_store.clear()

    # Search

    def search_locations(self, query: LocationQuery) -> ProviderLocationSearchResult:
        query.validate()
        logger.info('Searching provider locations: %s', query.to_params())
        response = self._request('GET', '/provider_locations', params=query.to_params())
        result = _parse(ProviderLocationSearchResult, response)
        logger.info('Found %s provider locations', len(result.provider_locations))
        return result

    def get_availability(
        self,
        provider_location_ids: Iterable[str],
        visit_reason_id: str,
        patient_type: str,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> list[Availability]:
        location_ids = [location_id for location_id in provider_location_ids if location_id]
        if not location_ids:
            raise InputValidationError('At least one provider location id is required')
        if not visit_reason_id:
            raise InputValidationError('visit_reason_id is required')
        if patient_type not in PATIENT_TYPES:
            raise InputValidationError("patient_type must be 'new' or 'existing'")

        params = {
            'provider_location_ids': ','.join(location_ids),
            'visit_reason_id': visit_reason_id,
            'patient_type': patient_type,
        }
        if start_date:
            params['start_date_in_provider_local_time'] = start_date
        if end_date:
            params['end_date_in_provider_local_time'] = end_date

        response = self._request('GET', '/availability', params=params)
        availabilities = [_parse(Availability, item) for item in _data_list(response)]
        logger.info('Fetched availability for %s provider locations', len(availabilities))
        return availabilities

    def search_with_availability(self, query: LocationQuery, **kwargs: Any) -> SearchView:
        return search_with_availability(self, query, **kwargs)

    # Directory

    def get_insurance_plans(
        self,
        state: str | None = None,
        plan_type: str | None = None,
        program_type: str | None = None,
        care_category: str | None = None,
        *,
        page: int = 0,
        page_size: int = 100,
        status: str = 'active',
    ) -> list[InsurancePlan]:
        params: dict[str, Any] = {'page': page, 'page_size': page_size, 'status': status}
        for key, value in (
            ('state', state),
            ('plan_type', plan_type),
            ('program_type', program_type),
            ('care_category', care_category),
        ):
            if value:
                params[key] = value

        response = self._request('GET', '/insurance_plans', params=params)
        return [_parse(InsurancePlan, item) for item in _data_list(response)]

    def get_provider_npis(self, page: int = 0, page_size: int = 60000) -> list[str]:
        response = self._request('GET', '/providers/npis', params={'page': page, 'page_size': page_size})
        data = response.get('data') if isinstance(response.get('data'), dict) else {}
        return [str(npi) for npi in data.get('npis') or []]

    def get_providers(self, npis: Iterable[str], insurance_plan_id: str | None = None) -> list[ProvidersByNpi]:
        npi_list = [npi for npi in npis if npi]
        if not npi_list:
            raise InputValidationError('At least one NPI is required')

        params = {'npis': ','.join(npi_list)}
        if insurance_plan_id:
            params['insurance_plan_id'] = insurance_plan_id
        response = self._request('GET', '/providers', params=params)
        return [_parse(ProvidersByNpi, item) for item in _data_list(response)]

    def get_all_providers(
        self,
        insurance_plan_id: str | None = None,
        *,
        batch_size: int = PROVIDER_BATCH_SIZE,
        pause_seconds: float = PROVIDER_BATCH_PAUSE_SECONDS,
    ) -> list[ProviderDetails]:
        """Fetch every provider in the directory, one batch of NPIs at a time."""
        npis = self.get_provider_npis()
        batch_count = (len(npis) + batch_size - 1) // batch_size
        logger.info('Found %s NPIs in directory; fetching %s batches', len(npis), batch_count)

        providers: list[ProviderDetails] = []
        for batch_number, offset in enumerate(range(0, len(npis), batch_size), start=1):
            batch = npis[offset:offset + batch_size]
            logger.debug('Fetching batch %s/%s (%s NPIs)', batch_number, batch_count, len(batch))
            for group in self.get_providers(batch, insurance_plan_id):
                providers.extend(group.providers)
            if offset + batch_size < len(npis):
                self._sleep(pause_seconds)

        logger.info('Fetched details for %s providers', len(providers))
        return providers

    # Appointments

    def book_appointment(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request('POST', '/appointments', json_payload=payload)

    def list_appointments(self, page: int = 0, page_size: int = 10) -> list[AppointmentListItem]:
        response = self._request('GET', '/appointments', params={'page': page, 'page_size': page_size})
        return [_parse(AppointmentListItem, item) for item in _data_list(response)]

    def get_appointment(self, appointment_id: str) -> AppointmentListItem:
        if not appointment_id:
            raise InputValidationError('appointment_id is required')
        response = self._request('GET', f'/appointments/{appointment_id}')
        data = response.get('data', response)
        return _parse(AppointmentListItem, data)

    def cancel_appointment(
        self,
        appointment_id: str,
        reason: str | None = None,
        reason_type: str = DEFAULT_CANCELLATION_REASON_TYPE,
    ) -> dict[str, Any]:
        if not appointment_id:
            raise InputValidationError('appointment_id is required')
        payload: dict[str, Any] = {'appointment_id': appointment_id, 'cancellation_reason_type': reason_type}
        if reason:
            payload['cancellation_reason'] = reason
        return self._request('POST', '/appointments/cancel', json_payload=payload)

    def reschedule_appointment(self, appointment_id: str, new_start_time: str) -> dict[str, Any]:
        if not appointment_id or not new_start_time:
            raise InputValidationError('appointment_id and new_start_time are required')
        return self._request(
            'POST',
            '/appointments/reschedule',
            json_payload={'appointment_id': appointment_id, 'start_time': new_start_time},
        )

    def simulate_webhook(self, webhook_url: str, webhook_key: str, update_type: str = 'updated') -> dict[str, Any]:
        if not webhook_url or not webhook_key:
            raise InputValidationError('webhook_url and webhook_key are required')
        return self._request(
            'POST',
            '/webhooks/simulate',
            json_payload={
                'webhook_url': webhook_url,
                'webhook_key': webhook_key,
                'appointment_update_type': update_type,
            },
        )

    # Transport

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._http.request(method, url, params=params, json=json_payload, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            logger.error('%s %s timed out after %ss', method, path, self.timeout)
            raise RequestTimeoutError(
                'Request timeout',
                error_description='Request timeout. Please check your internet connection.',
            ) from exc
        except httpx.RequestError as exc:
            logger.error('%s %s received no response: %s', method, path, exc)
            raise NetworkError(
                'No response received from server',
                error_description='No response received from server. Please check your connection.',
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            error = error_from_envelope(response.status_code, body)
            logger.error('%s %s failed: status=%s error=%s', method, path, error.status, error.error)
            # A rejected login is not an expired session.
            if path != AUTH_PATH and is_token_expiry_error(error):
                logger.info('Token expiry detected, triggering re-authentication')
                self.session = None
                if self._on_token_expired is not None:
                    self._on_token_expired()
            raise error

        if not isinstance(body, dict):
            raise NetworkError('Unexpected response from server', status=response.status_code, details=body)
        return body
