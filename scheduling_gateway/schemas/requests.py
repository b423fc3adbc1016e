import re
from typing import Literal

from pydantic import BaseModel, field_validator

PatientType = Literal['new', 'existing']
AppointmentUpdateType = Literal['created', 'updated', 'cancelled', 'arrived', 'no_show']

DEFAULT_CANCELLATION_REASON_TYPE = 'patient_no_longer_needs_appointment'


def _require_text(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    return normalized


class PassThroughModel(BaseModel):
    """Request body forwarded to the vendor; unknown keys are kept."""

    class Config:
        extra = 'allow'


class AuthRequest(BaseModel):
    clientId: str = ''
    clientSecret: str = ''


class PatientAddress(PassThroughModel):
    address1: str
    address2: str | None = None
    city: str
    state: str
    zip_code: str


class PatientInsurance(PassThroughModel):
    insurance_plan_id: str
    insurance_member_id: str | None = None
    insurance_group_number: str | None = None


class PatientDetails(PassThroughModel):
    first_name: str
    last_name: str
    date_of_birth: str
    sex_at_birth: str
    phone_number: str
    email_address: str | None = None
    patient_address: PatientAddress | None = None
    insurance: PatientInsurance | None = None

    @field_validator('first_name', 'last_name', 'date_of_birth')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        return _require_text(value, 'Patient name and date of birth')

    @field_validator('phone_number')
    @classmethod
    def normalize_phone_number(cls, value: str) -> str:
        digits = re.sub(r'\D', '', value)
        if not digits:
            raise ValueError('Patient phone number is required.')
        return digits


class BookingData(PassThroughModel):
    start_time: str
    visit_reason_id: str
    provider_location_id: str
    patient: PatientDetails
    patient_type: PatientType = 'new'

    @field_validator('start_time', 'visit_reason_id', 'provider_location_id')
    @classmethod
    def validate_slot_fields(cls, value: str) -> str:
        return _require_text(value, 'Start time, visit reason and provider location')


class BookingRequest(PassThroughModel):
    appointment_type: str = 'providers'
    data: BookingData


class CancelAppointmentRequest(PassThroughModel):
    appointment_id: str
    cancellation_reason: str | None = None
    cancellation_reason_type: str = DEFAULT_CANCELLATION_REASON_TYPE

    @field_validator('appointment_id')
    @classmethod
    def validate_appointment_id(cls, value: str) -> str:
        return _require_text(value, 'Appointment id')


class RescheduleAppointmentRequest(PassThroughModel):
    appointment_id: str
    start_time: str

    @field_validator('appointment_id', 'start_time')
    @classmethod
    def validate_fields(cls, value: str) -> str:
        return _require_text(value, 'Appointment id and new start time')


class WebhookMockRequest(PassThroughModel):
    webhook_url: str
    webhook_key: str
    appointment_update_type: AppointmentUpdateType = 'updated'

    @field_validator('webhook_url', 'webhook_key')
    @classmethod
    def validate_webhook_fields(cls, value: str) -> str:
        return _require_text(value, 'Webhook url and key')
