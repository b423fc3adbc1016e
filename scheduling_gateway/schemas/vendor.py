"""Vendor response models.

Parsed from the scheduling vendor's JSON. Unknown keys are ignored and every
model is frozen: a search session never edits what the vendor returned, it
derives new values (see ``Availability.without_slot``).

A provider location is served either at a street address or virtually in a
state. The vendor sends that as two optional keys (``location`` and
``virtual_location``); here they are folded into a single ``venue`` tagged by
``kind`` so callers branch on the variant instead of probing both keys.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator


class VendorModel(BaseModel):
    class Config:
        extra = 'ignore'
        frozen = True


class Practice(VendorModel):
    practice_id: str = ''
    practice_name: str = ''


class BookingRequirements(VendorModel):
    required_fields: tuple[str, ...] = ()
    accepts_booking_requests_from: tuple[str, ...] = ()


class Education(VendorModel):
    institutions: tuple[str, ...] = ()


class ProviderCredentials(VendorModel):
    certifications: tuple[str, ...] = ()
    education: Education | None = None


class BaseProvider(VendorModel):
    npi: str
    first_name: str = ''
    last_name: str = ''
    title: str = ''
    full_name: str = ''
    gender_identity: str | None = None
    specialties: tuple[str, ...] = ()
    specialty_ids: tuple[str, ...] = ()
    default_visit_reason_id: str | None = None
    visit_reason_ids: tuple[str, ...] = ()
    statement: str | None = None
    provider_photo_url: str | None = None
    languages: tuple[str, ...] = ()
    credentials: ProviderCredentials | None = None

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return ' '.join(part for part in (self.first_name, self.last_name) if part)


class PhysicalVenue(VendorModel):
    kind: Literal['physical'] = 'physical'
    address1: str = ''
    address2: str | None = None
    city: str = ''
    state: str = ''
    zip_code: str = ''
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    distance_to_patient_mi: float | None = None

    @property
    def display_name(self) -> str:
        return ', '.join(part for part in (self.address1, self.city, self.state) if part)


class VirtualVenue(VendorModel):
    kind: Literal['virtual'] = 'virtual'
    state: str = ''
    location_name: str | None = None

    @property
    def display_name(self) -> str:
        return f'Virtual - {self.state}'


Venue = Annotated[Union[PhysicalVenue, VirtualVenue], Field(discriminator='kind')]


def fold_venue_keys(data: Any) -> Any:
    if not isinstance(data, dict) or 'venue' in data:
        return data

    folded = dict(data)
    location = folded.pop('location', None)
    virtual_location = folded.pop('virtual_location', None)
    if location:
        folded['venue'] = {**location, 'kind': 'physical'}
    elif virtual_location:
        folded['venue'] = {**virtual_location, 'kind': 'virtual'}
    elif 'virtual' in str(folded.get('provider_location_type', '')).lower():
        folded['venue'] = {'kind': 'virtual'}
    else:
        folded['venue'] = {'kind': 'physical'}
    return folded


class ProviderLocation(VendorModel):
    provider_location_id: str
    provider_location_type: str = ''
    accepts_patient_insurance: str | None = None
    first_availability_date_in_provider_local_time: str | None = None
    provider: BaseProvider
    practice: Practice = Practice()
    booking_requirements: BookingRequirements = BookingRequirements()
    venue: Venue

    @model_validator(mode='before')
    @classmethod
    def fold_venue(cls, data: Any) -> Any:
        return fold_venue_keys(data)

    @property
    def is_virtual(self) -> bool:
        return self.venue.kind == 'virtual'


class Timeslot(VendorModel):
    start_time: str
    visit_reason_id: str | None = None


class Availability(VendorModel):
    provider_location_id: str
    first_availability: Timeslot | None = None
    timeslots: tuple[Timeslot, ...] = ()

    @classmethod
    def empty(cls, provider_location_id: str) -> 'Availability':
        return cls(provider_location_id=provider_location_id)

    @property
    def has_open_slots(self) -> bool:
        return len(self.timeslots) > 0

    def contains(self, start_time: str) -> bool:
        return any(slot.start_time == start_time for slot in self.timeslots)

    def without_slot(self, start_time: str) -> 'Availability':
        """Copy of this availability minus every slot starting at ``start_time``."""
        remaining = tuple(slot for slot in self.timeslots if slot.start_time != start_time)
        first_availability = remaining[0] if remaining else None
        return self.model_copy(update={'timeslots': remaining, 'first_availability': first_availability})


class AvailabilityAwareProviderLocation(VendorModel):
    provider_location: ProviderLocation
    availability: Availability

    @property
    def provider_location_id(self) -> str:
        return self.provider_location.provider_location_id


class SearchParameters(VendorModel):
    specialty_id: str | None = None
    visit_reason_id: str | None = None


class ProviderLocationSearchResult(VendorModel):
    request_id: str | None = None
    page: int = 0
    page_size: int = 0
    total_count: int = 0
    next_url: str | None = None
    search_parameters: SearchParameters | None = None
    provider_locations: tuple[ProviderLocation, ...] = ()

    @model_validator(mode='before')
    @classmethod
    def unwrap_data(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get('data'), dict):
            unwrapped = {key: value for key, value in data.items() if key != 'data'}
            unwrapped.update(data['data'])
            return unwrapped
        return data


class InsuranceCarrier(VendorModel):
    id: str = ''
    name: str = ''


class CoverageArea(VendorModel):
    is_national: bool = False
    states: tuple[str, ...] = ()


class InsurancePlan(VendorModel):
    id: str
    name: str = ''
    carrier: InsuranceCarrier | None = None
    plan_type: str | None = None
    program_type: str | None = None
    care_categories: tuple[str, ...] = ()
    status: str | None = None
    coverage_area: CoverageArea | None = None


class DirectoryLocation(PhysicalVenue):
    provider_location_id: str
    accepts_patient_insurance: str | None = None
    first_availability_date_in_provider_local_time: str | None = None
    booking_requirements: BookingRequirements = BookingRequirements()
    practice: Practice | None = None


class VirtualDirectoryLocation(VirtualVenue):
    provider_location_id: str
    accepts_patient_insurance: str | None = None
    first_availability_date_in_provider_local_time: str | None = None
    booking_requirements: BookingRequirements = BookingRequirements()
    practice: Practice | None = None


class ProviderDetails(BaseProvider):
    locations: tuple[DirectoryLocation, ...] = ()
    virtual_locations: tuple[VirtualDirectoryLocation, ...] = ()
    practice: Practice | None = None


class ProvidersByNpi(VendorModel):
    npi: str
    providers: tuple[ProviderDetails, ...] = ()


class AppointmentListItem(BaseModel):
    """An appointment as listed by the vendor; extra keys are kept."""

    appointment_id: str
    status: str | None = None
    start_time: str | None = None
    provider_location_id: str | None = None
    visit_reason_id: str | None = None
    patient: dict[str, Any] | None = None

    class Config:
        extra = 'allow'

    @property
    def has_patient_details(self) -> bool:
        return bool(self.patient)
