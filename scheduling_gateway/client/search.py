"""Availability-aware provider search.

A search is two vendor calls in sequence: provider locations first, then
availability for exactly those locations. The two result sets are joined by
``provider_location_id`` into a ``SearchView`` that only shows locations with
at least one open timeslot. A location the availability call did not answer
for is not an error; it is paired with an empty availability and filtered out.

Booking a slot through the view removes that slot from the view once the
vendor confirms it. Nothing is re-fetched, and a rejected booking leaves the
view exactly as it was.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

from pydantic import ValidationError

from scheduling_gateway.errors import InputValidationError, join_validation_messages
from scheduling_gateway.schemas.requests import PatientDetails, PatientType
from scheduling_gateway.schemas.vendor import (
    Availability,
    AvailabilityAwareProviderLocation,
    ProviderLocation,
    Timeslot,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


@dataclass(frozen=True)
class LocationQuery:
    zip_code: str
    visit_reason_id: str | None = None
    specialty_id: str | None = None
    insurance_plan_id: str | None = None
    max_distance_mi: float | None = None
    visit_type: str | None = None
    page: int = 0
    page_size: int = DEFAULT_PAGE_SIZE

    def validate(self) -> None:
        if not (self.zip_code or '').strip():
            raise InputValidationError('Please enter a zip code')
        if not (self.visit_reason_id or self.specialty_id):
            raise InputValidationError('Please enter a visit reason or specialty')

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            'zip_code': self.zip_code.strip(),
            'page': self.page,
            'page_size': self.page_size,
        }
        if self.visit_reason_id:
            params['visit_reason_id'] = self.visit_reason_id
        if self.specialty_id:
            params['specialty_id'] = self.specialty_id
        if self.insurance_plan_id:
            params['insurance_plan_id'] = self.insurance_plan_id
        if self.max_distance_mi:
            params['max_distance_to_patient_mi'] = self.max_distance_mi
        if self.visit_type and self.visit_type != 'all':
            params['visit_type'] = self.visit_type
        return params


def pair_with_availability(
    locations: Iterable[ProviderLocation],
    availabilities: Iterable[Availability],
) -> list[AvailabilityAwareProviderLocation]:
    """Pair every location, in order, with its availability or an empty one."""
    lookup: dict[str, Availability] = {}
    for availability in availabilities:
        # Duplicate ids should not happen; the last one wins if they do.
        lookup[availability.provider_location_id] = availability

    pairs = []
    for location in locations:
        availability = lookup.get(location.provider_location_id)
        if availability is None:
            availability = Availability.empty(location.provider_location_id)
        pairs.append(AvailabilityAwareProviderLocation(provider_location=location, availability=availability))
    return pairs


def join_availability(
    locations: Iterable[ProviderLocation],
    availabilities: Iterable[Availability],
) -> list[AvailabilityAwareProviderLocation]:
    """Locations that have at least one open timeslot, in search order."""
    return [pair for pair in pair_with_availability(locations, availabilities) if pair.availability.has_open_slots]


def build_booking_request(
    entry: AvailabilityAwareProviderLocation,
    timeslot: Timeslot,
    patient: PatientDetails | Mapping[str, Any],
    *,
    visit_reason_id: str | None = None,
    patient_type: PatientType = 'new',
) -> dict[str, Any]:
    if not isinstance(patient, PatientDetails):
        try:
            patient = PatientDetails.model_validate(dict(patient or {}))
        except ValidationError as exc:
            raise InputValidationError(
                'Invalid patient details',
                error_description=join_validation_messages(exc.errors()),
            ) from exc

    reason = timeslot.visit_reason_id or visit_reason_id
    if not reason:
        raise InputValidationError('A visit reason is required to book this timeslot')

    return {
        'appointment_type': 'providers',
        'data': {
            'start_time': timeslot.start_time,
            'visit_reason_id': reason,
            'provider_location_id': entry.provider_location_id,
            'patient': patient.model_dump(exclude_none=True),
            'patient_type': patient_type,
        },
    }


class SearchView:
    """In-memory result of one availability-aware search."""

    def __init__(
        self,
        entries: Iterable[AvailabilityAwareProviderLocation] = (),
        *,
        visit_reason_id: str | None = None,
        patient_type: PatientType = 'new',
        total_count: int = 0,
        next_url: str | None = None,
    ) -> None:
        self._entries = list(entries)
        self.visit_reason_id = visit_reason_id
        self.patient_type = patient_type
        self.total_count = total_count
        self.next_url = next_url

    @property
    def results(self) -> list[AvailabilityAwareProviderLocation]:
        return [entry for entry in self._entries if entry.availability.has_open_slots]

    def __iter__(self) -> Iterator[AvailabilityAwareProviderLocation]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def find(self, provider_location_id: str) -> AvailabilityAwareProviderLocation | None:
        for entry in self._entries:
            if entry.provider_location_id == provider_location_id:
                return entry
        return None

    def apply_booking(self, provider_location_id: str, start_time: str) -> None:
        """Drop the booked timeslot from that location only."""
        self._entries = [
            entry.model_copy(update={'availability': entry.availability.without_slot(start_time)})
            if entry.provider_location_id == provider_location_id
            else entry
            for entry in self._entries
        ]

    def book_slot(
        self,
        client,
        provider_location_id: str,
        timeslot: Timeslot,
        patient: PatientDetails | Mapping[str, Any],
    ) -> dict[str, Any]:
        """Book ``timeslot`` through ``client`` and update the view on success.

        Vendor rejections propagate unchanged and leave the view untouched;
        the vendor alone decides who gets a contested slot.
        """
        entry = self.find(provider_location_id)
        if entry is None or not entry.availability.contains(timeslot.start_time):
            raise InputValidationError('That timeslot is not part of the current search results')

        payload = build_booking_request(
            entry,
            timeslot,
            patient,
            visit_reason_id=self.visit_reason_id,
            patient_type=self.patient_type,
        )
        response = client.book_appointment(payload)

        self.apply_booking(provider_location_id, timeslot.start_time)
        logger.info('Booked %s at provider location %s', timeslot.start_time, provider_location_id)
        return response


def search_with_availability(
    client,
    query: LocationQuery,
    *,
    patient_type: PatientType = 'new',
    start_date: str | None = None,
    end_date: str | None = None,
) -> SearchView:
    """Search locations, fetch their availability and join the two."""
    query.validate()

    search_result = client.search_locations(query)
    locations = list(search_result.provider_locations)
    if not locations:
        logger.info('No provider locations found; skipping availability')
        return SearchView(
            visit_reason_id=query.visit_reason_id,
            patient_type=patient_type,
            total_count=search_result.total_count,
            next_url=search_result.next_url,
        )

    visit_reason_id = query.visit_reason_id
    if not visit_reason_id and search_result.search_parameters is not None:
        visit_reason_id = search_result.search_parameters.visit_reason_id
    if not visit_reason_id:
        raise InputValidationError('A visit reason is required to fetch availability')

    availabilities = client.get_availability(
        [location.provider_location_id for location in locations],
        visit_reason_id,
        patient_type,
        start_date=start_date,
        end_date=end_date,
    )

    entries = join_availability(locations, availabilities)
    logger.info('Found %s providers with available appointments', len(entries))
    return SearchView(
        entries,
        visit_reason_id=visit_reason_id,
        patient_type=patient_type,
        total_count=search_result.total_count,
        next_url=search_result.next_url,
    )
