"""Customer exemption certificate endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from salestax.core.dependencies import get_ledger, get_meta_store, get_taxcloud_client, http_error
from salestax.core.exceptions import TaxCloudError
from salestax.repositories.order_meta_repository import OrderMetaRepository
from salestax.schemas.certificate import (
    CertificateCreate,
    CertificateCreatedResponse,
    ExemptionCertificate,
)
from salestax.services.taxcloud.client import TaxCloudClient
from salestax.services.transaction_ledger import TransactionLedger

router = APIRouter()


@router.get(
    "/{customer_id}/certificates",
    response_model=list[ExemptionCertificate],
    summary="List exemption certificates",
    responses={502: {"description": "TaxCloud unreachable"}},
)
async def list_certificates(
    customer_id: str,
    client: TaxCloudClient = Depends(get_taxcloud_client),
) -> list[ExemptionCertificate]:
    try:
        return client.get_exempt_certificates(customer_id)
    except TaxCloudError as e:
        raise http_error(e) from None


@router.post(
    "/{customer_id}/certificates",
    response_model=CertificateCreatedResponse,
    status_code=201,
    summary="Create exemption certificate",
    responses={
        422: {"description": "Certificate rejected by TaxCloud"},
        502: {"description": "TaxCloud unreachable"},
    },
)
async def create_certificate(
    customer_id: str,
    data: CertificateCreate,
    client: TaxCloudClient = Depends(get_taxcloud_client),
) -> CertificateCreatedResponse:
    """Register a new exemption certificate for a customer with TaxCloud."""
    certificate = ExemptionCertificate(customer_id=customer_id, **data.model_dump())
    try:
        certificate_id = client.add_exempt_certificate(certificate)
    except TaxCloudError as e:
        raise http_error(e) from None
    return CertificateCreatedResponse(certificate_id=certificate_id)


@router.delete(
    "/{customer_id}/certificates/{certificate_id}",
    status_code=204,
    summary="Delete exemption certificate",
    responses={
        404: {"description": "Certificate not found"},
        422: {"description": "Deletion rejected by TaxCloud"},
    },
)
async def delete_certificate(
    customer_id: str,
    certificate_id: str,
    client: TaxCloudClient = Depends(get_taxcloud_client),
    store: OrderMetaRepository = Depends(get_meta_store),
    ledger: TransactionLedger = Depends(get_ledger),
) -> None:
    """Delete a certificate with TaxCloud and detach it from open orders."""
    try:
        client.delete_exempt_certificate(certificate_id)
    except TaxCloudError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Certificate not found") from None
        raise http_error(e) from None

    ledger.detach_certificate(certificate_id, store.find_order_ids("exempt_cert", certificate_id))
