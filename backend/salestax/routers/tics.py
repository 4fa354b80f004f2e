"""Taxability Information Code endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from salestax.core.dependencies import get_taxcloud_client
from salestax.services.taxcloud.client import TaxCloudClient

router = APIRouter()


@router.get("/", summary="List TICs")
async def list_tics(client: TaxCloudClient = Depends(get_taxcloud_client)) -> dict[int, str]:
    """Return every TIC id with its description."""
    return client.get_tics()


@router.get(
    "/{tic_id}",
    summary="Describe a TIC",
    responses={404: {"description": "Unknown TIC"}},
)
async def get_tic(
    tic_id: int, client: TaxCloudClient = Depends(get_taxcloud_client)
) -> dict[str, int | str]:
    description = client.tic_catalog.describe(tic_id)
    if description is None:
        raise HTTPException(status_code=404, detail="TIC not found")
    return {"tic_id": tic_id, "description": description}
