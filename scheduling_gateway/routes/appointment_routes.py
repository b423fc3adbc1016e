import logging

from fastapi import APIRouter, Depends, Query

from scheduling_gateway.errors import InputValidationError
from scheduling_gateway.schemas.requests import (
    BookingRequest,
    CancelAppointmentRequest,
    RescheduleAppointmentRequest,
    WebhookMockRequest,
)
from scheduling_gateway.vendor.client import VendorClient
from scheduling_gateway.vendor.dependencies import get_vendor_client

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)


@router.post('/appointments')
def book_appointment(data: BookingRequest, vendor: VendorClient = Depends(get_vendor_client)):
    logger.info(
        'Booking appointment at provider location %s through scheduling API',
        data.data.provider_location_id,
    )
    response = vendor.book_appointment(data.model_dump(exclude_none=True))
    appointment = response.get('data') if isinstance(response.get('data'), dict) else {}
    logger.info('Appointment booked successfully: %s', appointment.get('appointment_id'))
    return response


@router.get('/appointments')
def list_appointments(
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=10, ge=1),
    vendor: VendorClient = Depends(get_vendor_client),
):
    logger.info('Fetching appointments from scheduling API')
    response = vendor.list_appointments({'page': page, 'page_size': page_size})
    appointments = response.get('data')
    logger.info('Successfully fetched %s appointments', len(appointments) if isinstance(appointments, list) else 0)
    return response


@router.get('/appointments/{appointment_id}')
def get_appointment(appointment_id: str, vendor: VendorClient = Depends(get_vendor_client)):
    if not appointment_id.strip():
        raise InputValidationError('Missing appointment_id')

    logger.info('Fetching appointment %s from scheduling API', appointment_id)
    return vendor.get_appointment(appointment_id.strip())


@router.post('/appointments/cancel')
def cancel_appointment(data: CancelAppointmentRequest, vendor: VendorClient = Depends(get_vendor_client)):
    logger.info('Cancelling appointment %s through scheduling API', data.appointment_id)
    response = vendor.cancel_appointment(data.model_dump(exclude_none=True))
    logger.info('Appointment cancelled successfully')
    return response


@router.post('/appointments/reschedule')
def reschedule_appointment(data: RescheduleAppointmentRequest, vendor: VendorClient = Depends(get_vendor_client)):
    logger.info('Rescheduling appointment %s through scheduling API', data.appointment_id)
    response = vendor.reschedule_appointment(data.model_dump(exclude_none=True))
    logger.info('Appointment rescheduled successfully')
    return response


@router.post('/webhooks/simulate')
def simulate_webhook(data: WebhookMockRequest, vendor: VendorClient = Depends(get_vendor_client)):
    logger.info('Simulating %s webhook through scheduling API', data.appointment_update_type)
    return vendor.simulate_webhook(data.model_dump(exclude_none=True))
