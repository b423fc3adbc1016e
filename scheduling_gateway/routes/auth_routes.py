import logging

from fastapi import APIRouter, Depends

from scheduling_gateway.errors import InputValidationError
from scheduling_gateway.schemas.requests import AuthRequest
from scheduling_gateway.vendor.client import VendorClient
from scheduling_gateway.vendor.dependencies import get_vendor_client

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


@router.post('/auth')
def authenticate(data: AuthRequest, vendor: VendorClient = Depends(get_vendor_client)):
    client_id = data.clientId.strip()
    client_secret = data.clientSecret.strip()
    if not client_id or not client_secret:
        raise InputValidationError('Missing clientId or clientSecret')

    logger.info('Proxying authentication request to scheduling API')
    return vendor.authenticate(client_id, client_secret)
