"""Error taxonomy shared by the gateway and the gateway client.

Every failure a caller can see is a ``SchedulingError``. The gateway renders
it as the JSON envelope ``{error, error_description, status}`` and the client
rebuilds the matching subclass from that envelope, so the same exception type
surfaces on both sides of the proxy.
"""

from typing import Any

GENERIC_FAILURE_MESSAGE = 'The operation failed. Please try again.'

TOKEN_EXPIRY_MARKERS = ('token', 'unauthorized', 'forbidden')


class SchedulingError(RuntimeError):
    """Base error carrying an HTTP status and the vendor's own error fields."""

    status = 500

    def __init__(
        self,
        error: str,
        *,
        error_description: str | None = None,
        status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(error_description or error)
        self.error = error
        self.error_description = error_description
        if status is not None:
            self.status = status
        self.details = details

    @property
    def user_message(self) -> str:
        return self.error_description or self.error or GENERIC_FAILURE_MESSAGE

    def to_envelope(self) -> dict[str, Any]:
        envelope: dict[str, Any] = {'error': self.error, 'status': self.status}
        if self.error_description:
            envelope['error_description'] = self.error_description
        if self.details is not None:
            envelope['details'] = self.details
        return envelope


class InputValidationError(SchedulingError, ValueError):
    """Required input missing; raised before any network call."""

    status = 400


class UnauthenticatedError(SchedulingError):
    status = 401


class VendorError(SchedulingError):
    """The vendor answered with a 4xx/5xx."""


class RequestTimeoutError(SchedulingError, TimeoutError):
    status = 408


class NetworkError(SchedulingError, ConnectionError):
    """No response was received at all."""

    status = 502


def join_validation_messages(errors: list[dict[str, Any]]) -> str | None:
    messages = [str(error.get('msg', '')) for error in errors]
    return '; '.join(message for message in messages if message) or None


def is_token_expiry_error(error: SchedulingError) -> bool:
    if error.status in (401, 403):
        return True
    text = ' '.join(part for part in (error.error, error.error_description) if part).lower()
    return any(marker in text for marker in TOKEN_EXPIRY_MARKERS)


def error_from_envelope(status: int, body: Any) -> SchedulingError:
    """Rebuild the matching error type from a gateway failure response."""
    if not isinstance(body, dict):
        body = {}

    error = body.get('error')
    if not isinstance(error, str) or not error:
        error = body.get('message') if isinstance(body.get('message'), str) else f'HTTP {status}'
    error_description = body.get('error_description')
    if error_description is not None and not isinstance(error_description, str):
        error_description = str(error_description)
    details = body.get('details')

    # Vendor failures always carry the vendor body in ``details``.
    if status == 400 and details is None:
        error_type: type[SchedulingError] = InputValidationError
    elif status == 401:
        error_type = UnauthenticatedError
    elif status == 408:
        error_type = RequestTimeoutError
    elif status == 502 and details is None:
        error_type = NetworkError
    else:
        error_type = VendorError

    return error_type(error, error_description=error_description, status=status, details=details)
