"""Address verification endpoints."""

from fastapi import APIRouter, Depends

from salestax.core.dependencies import get_address_validator
from salestax.schemas.address import Address, AddressVerifyRequest
from salestax.services.address_validator import AddressValidator

router = APIRouter()


@router.post(
    "/verify",
    response_model=Address,
    summary="Verify address",
    responses={503: {"description": "TaxCloud not configured"}},
)
async def verify_address(
    data: AddressVerifyRequest,
    validator: AddressValidator = Depends(get_address_validator),
) -> Address:
    """Normalize a US address through TaxCloud.

    Addresses TaxCloud cannot verify are returned unchanged. When
    ``order_id`` is given the result is cached on that order.
    """
    return validator.validate(data.address, data.order_id)
