"""TaxCloud connection endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from salestax.core.dependencies import get_taxcloud_client, http_error
from salestax.core.exceptions import TaxCloudError
from salestax.schemas.address import Location
from salestax.schemas.transaction import OfflineTransaction
from salestax.services.offline_import import OfflineTransactionImporter
from salestax.services.taxcloud.client import TaxCloudClient

router = APIRouter()


@router.get(
    "/ping",
    summary="Verify TaxCloud credentials",
    responses={
        422: {"description": "Credentials rejected by TaxCloud"},
        502: {"description": "TaxCloud unreachable"},
        503: {"description": "TaxCloud not configured"},
    },
)
async def ping(client: TaxCloudClient = Depends(get_taxcloud_client)) -> dict[str, str]:
    try:
        client.ping()
    except TaxCloudError as e:
        raise http_error(e) from None
    return {"status": "ok"}


@router.get(
    "/locations",
    response_model=list[Location],
    summary="List business locations",
    responses={502: {"description": "TaxCloud unreachable"}},
)
async def list_locations(
    client: TaxCloudClient = Depends(get_taxcloud_client),
) -> list[Location]:
    """List the business locations registered with TaxCloud."""
    try:
        return client.get_locations()
    except TaxCloudError as e:
        raise http_error(e) from None


@router.post(
    "/transactions",
    summary="Import offline transactions",
    responses={
        400: {"description": "Empty import"},
        422: {"description": "Batch rejected by TaxCloud"},
    },
)
async def import_transactions(
    transactions: list[OfflineTransaction],
    client: TaxCloudClient = Depends(get_taxcloud_client),
) -> dict[str, int]:
    """Import sales made outside the store, 25 transactions per request to TaxCloud."""
    if not transactions:
        raise HTTPException(status_code=400, detail="No transactions to import")
    try:
        submitted = OfflineTransactionImporter(client).import_transactions(transactions)
    except TaxCloudError as e:
        raise http_error(e) from None
    return {"submitted": submitted}
