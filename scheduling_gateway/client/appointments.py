import logging

from scheduling_gateway.errors import SchedulingError, UnauthenticatedError, VendorError
from scheduling_gateway.schemas.vendor import AppointmentListItem

logger = logging.getLogger(__name__)

SAMPLE_APPOINTMENTS = (
    AppointmentListItem(
        appointment_id='sample-appointment-1',
        status='confirmed',
        start_time='2025-01-06T09:00:00-05:00',
        provider_location_id='sample-location-1',
        visit_reason_id='pc_FRO-18leckytNKtruw5dLR',
        patient={'first_name': 'Sample', 'last_name': 'Patient'},
    ),
    AppointmentListItem(
        appointment_id='sample-appointment-2',
        status='pending_booking',
        start_time='2025-01-07T14:30:00-05:00',
        provider_location_id='sample-location-2',
        visit_reason_id='pc_FRO-18leckytNKtruw5dLR',
        patient={'first_name': 'Demo', 'last_name': 'Patient'},
    ),
)


def load_appointments(
    client,
    page: int = 0,
    page_size: int = 10,
    *,
    demo_mode: bool = False,
) -> list[AppointmentListItem]:
    """List appointments, fetching details only for entries without a patient.

    A 404 from the list endpoint means nothing has been booked yet. The
    sample appointments are only returned with ``demo_mode`` and only when
    the vendor returned none.
    """
    try:
        appointments = client.list_appointments(page, page_size)
    except VendorError as exc:
        if exc.status != 404:
            raise
        appointments = []

    completed = []
    for appointment in appointments:
        if appointment.has_patient_details:
            completed.append(appointment)
            continue
        try:
            completed.append(client.get_appointment(appointment.appointment_id))
        except UnauthenticatedError:
            raise
        except SchedulingError as exc:
            logger.warning(
                'Could not load details for appointment %s: %s',
                appointment.appointment_id,
                exc.user_message,
            )
            completed.append(appointment)

    if not completed and demo_mode:
        logger.info('No appointments returned; using sample appointments')
        return list(SAMPLE_APPOINTMENTS)
    return completed
