from salestax.schemas.address import Address, AddressVerifyRequest, Location, parse_zip
from salestax.schemas.certificate import (
    BusinessType,
    CertificateCreate,
    CertificateCreatedResponse,
    ExemptionCertificate,
    ExemptionReason,
    OrderCertificateRequest,
    TaxId,
    TaxIdType,
)
from salestax.schemas.order import (
    SHIPPING_ITEM_ID,
    ItemType,
    LineItem,
    OrderItem,
    OrderItemType,
    OrderLookupRequest,
    OrderSnapshot,
    OrderTaxLine,
    RefundItem,
    RefundRequest,
    TaxCalculationResult,
)
from salestax.schemas.transaction import (
    OfflineTransaction,
    PackageRecord,
    TaxStatus,
    TaxTransaction,
)

__all__ = [
    "SHIPPING_ITEM_ID",
    "Address",
    "AddressVerifyRequest",
    "BusinessType",
    "CertificateCreate",
    "CertificateCreatedResponse",
    "ExemptionCertificate",
    "ExemptionReason",
    "ItemType",
    "LineItem",
    "Location",
    "OfflineTransaction",
    "OrderCertificateRequest",
    "OrderItem",
    "OrderItemType",
    "OrderLookupRequest",
    "OrderSnapshot",
    "OrderTaxLine",
    "PackageRecord",
    "RefundItem",
    "RefundRequest",
    "TaxCalculationResult",
    "TaxId",
    "TaxIdType",
    "TaxStatus",
    "TaxTransaction",
    "parse_zip",
]
