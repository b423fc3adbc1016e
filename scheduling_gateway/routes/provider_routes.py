import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from scheduling_gateway.errors import InputValidationError
from scheduling_gateway.vendor.client import VendorClient
from scheduling_gateway.vendor.dependencies import get_vendor_client

router = APIRouter(tags=['providers'])

logger = logging.getLogger(__name__)

DEFAULT_NPI_PAGE_SIZE = 60000
DEFAULT_SEARCH_PAGE_SIZE = 50
PATIENT_TYPES = {'new', 'existing'}


def _without_empty(params: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in params.items() if value not in (None, '')}


def _count(data: dict[str, Any], *keys: str) -> int:
    value: Any = data
    for key in keys:
        if not isinstance(value, dict):
            return 0
        value = value.get(key)
    return len(value) if isinstance(value, list) else 0


@router.get('/providers/npis')
def list_provider_npis(
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=DEFAULT_NPI_PAGE_SIZE, ge=1),
    vendor: VendorClient = Depends(get_vendor_client),
):
    logger.info('Fetching NPIs from scheduling API')
    data = vendor.get_provider_npis({'page': page, 'page_size': page_size})
    logger.info('Successfully fetched %s NPIs', _count(data, 'data', 'npis'))
    return data


@router.get('/providers')
def list_providers(
    npis: str | None = Query(default=None),
    insurance_plan_id: str | None = Query(default=None),
    vendor: VendorClient = Depends(get_vendor_client),
):
    if not npis or not npis.strip():
        raise InputValidationError('Missing npis parameter')

    logger.info('Fetching provider details from scheduling API')
    data = vendor.get_providers(_without_empty({'npis': npis.strip(), 'insurance_plan_id': insurance_plan_id}))
    logger.info('Successfully fetched provider details for %s providers', _count(data, 'data'))
    return data


@router.get('/provider_locations')
def search_provider_locations(
    zip_code: str | None = Query(default=None),
    specialty_id: str | None = Query(default=None),
    visit_reason_id: str | None = Query(default=None),
    insurance_plan_id: str | None = Query(default=None),
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=DEFAULT_SEARCH_PAGE_SIZE, ge=1),
    visit_type: str | None = Query(default=None),
    max_distance_to_patient_mi: float | None = Query(default=None, gt=0),
    vendor: VendorClient = Depends(get_vendor_client),
):
    if not zip_code or not (specialty_id or visit_reason_id):
        raise InputValidationError(
            'Missing required parameters: zip_code and either specialty_id or visit_reason_id'
        )

    params = _without_empty({
        'zip_code': zip_code,
        'page': page,
        'page_size': page_size,
        'specialty_id': specialty_id,
        'visit_reason_id': visit_reason_id,
        'insurance_plan_id': insurance_plan_id,
        'visit_type': visit_type,
        'max_distance_to_patient_mi': max_distance_to_patient_mi,
    })

    logger.info('Searching provider locations from scheduling API')
    data = vendor.search_provider_locations(params)
    logger.info('Successfully found %s provider locations', _count(data, 'data', 'provider_locations'))
    return data


@router.get('/availability')
def get_availability(
    provider_location_ids: str | None = Query(default=None),
    visit_reason_id: str | None = Query(default=None),
    patient_type: str | None = Query(default=None),
    start_date_in_provider_local_time: str | None = Query(default=None),
    end_date_in_provider_local_time: str | None = Query(default=None),
    vendor: VendorClient = Depends(get_vendor_client),
):
    if not provider_location_ids or not visit_reason_id or not patient_type:
        raise InputValidationError(
            'Missing required parameters: provider_location_ids, visit_reason_id, patient_type'
        )
    if patient_type not in PATIENT_TYPES:
        raise InputValidationError("patient_type must be 'new' or 'existing'")

    # Dates are provider-local calendar dates and are forwarded verbatim.
    params = _without_empty({
        'provider_location_ids': provider_location_ids,
        'visit_reason_id': visit_reason_id,
        'patient_type': patient_type,
        'start_date_in_provider_local_time': start_date_in_provider_local_time,
        'end_date_in_provider_local_time': end_date_in_provider_local_time,
    })

    logger.info('Fetching availability from scheduling API')
    data = vendor.get_availability(params)
    logger.info('Successfully fetched availability for %s provider locations', _count(data, 'data'))
    return data


@router.get('/insurance_plans')
def list_insurance_plans(
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=100, ge=1),
    status: str = Query(default='active'),
    state: str | None = Query(default=None),
    plan_type: str | None = Query(default=None),
    program_type: str | None = Query(default=None),
    care_category: str | None = Query(default=None),
    vendor: VendorClient = Depends(get_vendor_client),
):
    params = _without_empty({
        'page': page,
        'page_size': page_size,
        'status': status,
        'state': state,
        'plan_type': plan_type,
        'program_type': program_type,
        'care_category': care_category,
    })

    logger.info('Fetching insurance plans from scheduling API')
    data = vendor.get_insurance_plans(params)
    logger.info('Successfully fetched %s insurance plans', _count(data, 'data'))
    return data
