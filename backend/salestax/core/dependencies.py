"""FastAPI dependencies wiring settings, storage and TaxCloud services together."""

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from salestax.core.config import Settings, get_settings
from salestax.core.database import get_db
from salestax.core.exceptions import (
    BatchLimitError,
    ConfigurationError,
    InvalidStateError,
    ProviderBusinessError,
    TaxCloudError,
)
from salestax.repositories.order_meta_repository import OrderMetaRepository
from salestax.services.address_validator import AddressValidator
from salestax.services.order_tax_coordinator import OrderTaxCoordinator
from salestax.services.taxcloud.client import TaxCloudClient
from salestax.services.transaction_ledger import TransactionLedger


def http_error(exc: Exception) -> HTTPException:
    """Translate a service exception into the matching HTTP error."""
    if isinstance(exc, InvalidStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, BatchLimitError):
        return HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, ProviderBusinessError):
        return HTTPException(status_code=422, detail=exc.message)
    if isinstance(exc, TaxCloudError):
        return HTTPException(status_code=502, detail=exc.message)
    return HTTPException(status_code=500, detail=str(exc))


def get_taxcloud_client(settings: Settings = Depends(get_settings)) -> TaxCloudClient:
    try:
        return TaxCloudClient.from_settings(settings)
    except ConfigurationError as e:
        raise http_error(e) from None


def get_meta_store(db: Session = Depends(get_db)) -> OrderMetaRepository:
    return OrderMetaRepository(db)


def get_ledger(store: OrderMetaRepository = Depends(get_meta_store)) -> TransactionLedger:
    return TransactionLedger(store)


def get_address_validator(
    client: TaxCloudClient = Depends(get_taxcloud_client),
    store: OrderMetaRepository = Depends(get_meta_store),
    settings: Settings = Depends(get_settings),
) -> AddressValidator:
    return AddressValidator(client, meta_store=store, enabled=settings.validate_addresses)


def get_coordinator(
    client: TaxCloudClient = Depends(get_taxcloud_client),
    ledger: TransactionLedger = Depends(get_ledger),
    validator: AddressValidator = Depends(get_address_validator),
    settings: Settings = Depends(get_settings),
) -> OrderTaxCoordinator:
    return OrderTaxCoordinator(client, ledger, validator, settings)
