"""Exemption certificate schemas."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from salestax.schemas.address import Address, parse_zip


class ExemptionReason(str, Enum):
    FEDERAL_GOVERNMENT_DEPARTMENT = "FederalGovernmentDepartment"
    STATE_OR_LOCAL_GOVERNMENT_NAME = "StateOrLocalGovernmentName"
    TRIBAL_GOVERNMENT_NAME = "TribalGovernmentName"
    FOREIGN_DIPLOMAT = "ForeignDiplomat"
    CHARITABLE_ORGANIZATION = "CharitableOrganization"
    RELIGIOUS_OR_EDUCATIONAL_ORGANIZATION = "ReligiousOrEducationalOrganization"
    RELIGIOUS_ORGANIZATION = "ReligiousOrganization"
    RESALE = "Resale"
    AGRICULTURAL_PRODUCTION = "AgriculturalProduction"
    INDUSTRIAL_PRODUCTION_OR_MANUFACTURING = "IndustrialProductionOrManufacturing"
    DIRECT_PAY_PERMIT = "DirectPayPermit"
    DIRECT_MAIL = "DirectMail"
    OTHER = "Other"


# Local reason -> v3 API reason
REASON_TO_WIRE: dict[ExemptionReason, str] = {
    ExemptionReason.FEDERAL_GOVERNMENT_DEPARTMENT: "FederalGovernment",
    ExemptionReason.STATE_OR_LOCAL_GOVERNMENT_NAME: "StateOrLocalGovernment",
    ExemptionReason.TRIBAL_GOVERNMENT_NAME: "TribalGovernment",
    ExemptionReason.FOREIGN_DIPLOMAT: "ForeignDiplomat",
    ExemptionReason.CHARITABLE_ORGANIZATION: "CharitableOrganization",
    ExemptionReason.RELIGIOUS_OR_EDUCATIONAL_ORGANIZATION: "EducationalOrganization",
    ExemptionReason.RELIGIOUS_ORGANIZATION: "ReligiousOrganization",
    ExemptionReason.RESALE: "Resale",
    ExemptionReason.AGRICULTURAL_PRODUCTION: "AgriculturalProduction",
    ExemptionReason.INDUSTRIAL_PRODUCTION_OR_MANUFACTURING: "IndustrialProductionOrManufacturing",
    ExemptionReason.DIRECT_PAY_PERMIT: "DirectPayPermit",
    ExemptionReason.DIRECT_MAIL: "DirectMail",
    ExemptionReason.OTHER: "Other",
}

REASON_FROM_WIRE: dict[str, ExemptionReason] = {v: k for k, v in REASON_TO_WIRE.items()}


class BusinessType(str, Enum):
    ACCOMMODATION_AND_FOOD_SERVICES = "AccommodationAndFoodServices"
    AGRICULTURAL_FORESTRY_FISHING_HUNTING = "Agricultural_Forestry_Fishing_Hunting"
    CONSTRUCTION = "Construction"
    FINANCE_AND_INSURANCE = "FinanceAndInsurance"
    INFORMATION_PUBLISHING_AND_COMMUNICATIONS = "Information_PublishingAndCommunications"
    MANUFACTURING = "Manufacturing"
    MINING = "Mining"
    REAL_ESTATE = "RealEstate"
    RENTAL_AND_LEASING = "RentalAndLeasing"
    RETAIL_TRADE = "RetailTrade"
    TRANSPORTATION_AND_WAREHOUSING = "TransportationAndWarehousing"
    UTILITIES = "Utilities"
    WHOLESALE_TRADE = "WholesaleTrade"
    BUSINESS_SERVICES = "BusinessServices"
    PROFESSIONAL_SERVICES = "ProfessionalServices"
    EDUCATION_AND_HEALTH_CARE_SERVICES = "EducationAndHealthCareServices"
    NONPROFIT_ORGANIZATION = "NonprofitOrganization"
    GOVERNMENT = "Government"
    NOT_A_BUSINESS = "NotABusiness"
    OTHER = "Other"


def _business_type(value: str | None) -> BusinessType:
    try:
        return BusinessType(value or "Other")
    except ValueError:
        return BusinessType.OTHER


class TaxIdType(str, Enum):
    SSN = "SSN"
    FEIN = "FEIN"
    STATE_ISSUED = "StateIssued"


class TaxId(BaseModel):
    tax_type: TaxIdType = TaxIdType.FEIN
    id_number: str = ""
    state_of_issue: str = ""


class ExemptionCertificate(BaseModel):
    """Entity exemption certificate for a customer.

    Certificates are immutable once created at TaxCloud; ``certificate_id``
    is assigned by the provider.
    """

    certificate_id: str | None = None
    customer_id: str
    exempt_states: list[str] = Field(default_factory=list)
    single_purchase: bool = False
    single_purchase_order_number: str = ""
    purchaser_first_name: str = ""
    purchaser_last_name: str = ""
    purchaser_title: str = ""
    purchaser_address: Address
    purchaser_tax_id: TaxId = Field(default_factory=TaxId)
    business_type: BusinessType = BusinessType.OTHER
    business_type_other: str = ""
    exemption_reason: ExemptionReason
    exemption_reason_other: str = ""
    created_date: datetime | None = None

    @property
    def purchaser_name(self) -> str:
        return f"{self.purchaser_first_name} {self.purchaser_last_name}".strip()

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ExemptionCertificate":
        """Build a certificate from a v3 ``exemption-certificates`` item."""
        address = data.get("address") or {}
        zip5, zip4 = parse_zip(address.get("zip"))
        name = str(data.get("customerName", "")).strip()
        first_name, _, last_name = name.partition(" ")
        reason = data.get("reason", "Other")

        return cls(
            certificate_id=data.get("certificateId"),
            customer_id=str(data.get("customerId", "")),
            exempt_states=[s["abbreviation"] for s in data.get("states", [])],
            single_purchase=bool(data.get("singlePurchase", False)),
            purchaser_first_name=first_name,
            purchaser_last_name=last_name,
            purchaser_address=Address(
                line1=address.get("line1", ""),
                line2=address.get("line2") or "",
                city=address.get("city", ""),
                state=address.get("state", ""),
                zip5=zip5,
                zip4=zip4,
            ),
            business_type=_business_type(data.get("customerBusinessType")),
            business_type_other=data.get("customerBusinessDescription") or "",
            exemption_reason=REASON_FROM_WIRE.get(reason, ExemptionReason.OTHER),
            exemption_reason_other=data.get("reasonDescription") or "",
            created_date=data.get("createdDate"),
        )


class CertificateCreate(BaseModel):
    exempt_states: list[str] = Field(min_length=1)
    single_purchase: bool = False
    purchaser_first_name: str = Field(max_length=255)
    purchaser_last_name: str = Field(max_length=255)
    purchaser_title: str = ""
    purchaser_address: Address
    purchaser_tax_id: TaxId = Field(default_factory=TaxId)
    business_type: BusinessType
    business_type_other: str = ""
    exemption_reason: ExemptionReason
    exemption_reason_other: str = ""


class CertificateCreatedResponse(BaseModel):
    certificate_id: str


class OrderCertificateRequest(BaseModel):
    certificate_id: str | None = None
