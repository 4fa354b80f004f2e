"""Order tax transaction schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from salestax.schemas.address import Address
from salestax.schemas.order import LineItem


class TaxStatus(str, Enum):
    """Lifecycle of an order's TaxCloud transaction."""

    NONE = "none"
    PENDING = "pending"  # quoted, not yet captured
    CAPTURED = "captured"
    REFUNDED = "refunded"
    ERRORED = "errored"


class PackageRecord(BaseModel):
    """One TaxCloud cart within an order; orders with several origins have several."""

    cart_id: str
    provider_order_id: str
    origin_index: int = 0
    item_ids: list[str] = Field(default_factory=list)
    quantities: dict[str, Decimal] = Field(default_factory=dict)


class TaxTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    status: TaxStatus = TaxStatus.NONE
    cart_id: str | None = None
    line_item_tax_amounts: dict[str, Decimal] = Field(default_factory=dict)
    provider_order_id: str | None = None
    captured_at: datetime | None = None
    certificate_id: str | None = None
    destination_address: Address | None = None
    packages: list[PackageRecord] = Field(default_factory=list)
    returned_tax_amounts: dict[str, Decimal] = Field(default_factory=dict)
    returned_at: datetime | None = None
    error_reason: str | None = None

    @property
    def total_tax(self) -> Decimal:
        return sum(self.line_item_tax_amounts.values(), Decimal("0"))

    def package_for_item(self, item_id: str) -> PackageRecord | None:
        for package in self.packages:
            if item_id in package.item_ids:
                return package
        return None


class OfflineTransaction(BaseModel):
    """A completed sale recorded outside the store, imported in batches."""

    customer_id: str
    cart_id: str
    order_id: str
    origin: Address
    destination: Address
    items: list[LineItem]
    item_taxes: dict[str, Decimal] = Field(default_factory=dict)
    transaction_date: datetime
    authorized_date: datetime | None = None
    captured_date: datetime | None = None
