"""Cart, order and refund schemas."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from salestax.schemas.address import Address

SHIPPING_ITEM_ID = "SHIPPING"


class ItemType(str, Enum):
    """Line item types sent to TaxCloud."""

    CART = "cart"
    SHIPPING = "shipping"
    FEE = "fee"


class OrderItemType(str, Enum):
    """Order item types reported by the host platform."""

    LINE_ITEM = "line_item"
    SHIPPING = "shipping"
    FEE = "fee"


class LineItem(BaseModel):
    """A single cart line submitted to TaxCloud.

    ``index`` is the position TaxCloud echoes back; tax amounts in the
    response are matched to items by this position, never by item ID.
    """

    index: int = Field(ge=0)
    item_id: str
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    price: Decimal
    tic: int | None = None
    item_type: ItemType = ItemType.CART
    line_total: Decimal | None = None

    @property
    def extended_price(self) -> Decimal:
        if self.line_total is not None:
            return self.line_total
        return self.price * self.quantity


class OrderItem(BaseModel):
    item_id: str
    item_type: OrderItemType = OrderItemType.LINE_ITEM
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    line_total: Decimal
    tic: int | None = None
    origin_index: int | None = None


class OrderSnapshot(BaseModel):
    """Everything needed to quote tax for one order or cart."""

    order_id: str
    customer_id: str = ""
    destination: Address
    items: list[OrderItem] = Field(default_factory=list)
    shipping_cost: Decimal = Decimal("0")
    local_pickup: bool = False


class OrderLookupRequest(BaseModel):
    customer_id: str = ""
    destination: Address
    items: list[OrderItem] = Field(default_factory=list)
    shipping_cost: Decimal = Decimal("0")
    local_pickup: bool = False


class RefundItem(BaseModel):
    item_id: str
    quantity: Decimal = Field(default=Decimal("1"), gt=0)


class RefundRequest(BaseModel):
    items: list[RefundItem] = Field(default_factory=list)


class TaxCalculationResult(BaseModel):
    order_id: str
    status: str
    tax_amounts: dict[str, Decimal] = Field(default_factory=dict)
    warning: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_tax(self) -> Decimal:
        return sum(self.tax_amounts.values(), Decimal("0"))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def shipping_tax(self) -> Decimal:
        return self.tax_amounts.get(SHIPPING_ITEM_ID, Decimal("0"))


class OrderTaxLine(BaseModel):
    """A tax row stored on a host order."""

    tax_line_id: str
    rate_id: str
    amount: Decimal
    recurring: bool = False
