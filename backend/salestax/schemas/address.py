"""Address and location schemas."""

import hashlib
import json
import re

from pydantic import BaseModel, Field

US_COUNTRY_NAMES = {"", "us", "usa", "united states", "united states (us)"}

_ZIP5_RE = re.compile(r"^\d{5}$")


def parse_zip(zip_code: str | None) -> tuple[str, str]:
    """Split a ZIP code into its 5 and 4 digit parts.

    Postcodes that fit neither format (international) are returned unchanged
    as the zip5 part.
    """
    if not zip_code:
        return "", ""

    digits = zip_code.replace(" ", "").replace("-", "")
    if len(digits) == 5:
        return digits, ""
    if len(digits) == 4:
        return "", digits
    if len(digits) == 9:
        return digits[:5], digits[5:]
    return zip_code, ""


class Address(BaseModel):
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    zip5: str = ""
    zip4: str = ""
    country: str = "US"

    @property
    def is_us(self) -> bool:
        return self.country.strip().lower() in US_COUNTRY_NAMES

    @property
    def is_lookup_eligible(self) -> bool:
        """US address with a well-formed five digit ZIP."""
        return self.is_us and bool(_ZIP5_RE.match(self.zip5))

    @property
    def zip(self) -> str:
        if self.zip4:
            return f"{self.zip5}-{self.zip4}"
        return self.zip5

    def content_hash(self) -> str:
        """Stable hash of the address content, used as a cache key."""
        payload = json.dumps(self.model_dump(), sort_keys=True)
        return hashlib.md5(payload.encode("utf-8")).hexdigest()

    def to_wire(self) -> dict[str, str]:
        """TaxCloud v3 address representation."""
        return {
            "city": self.city,
            "countryCode": "US",
            "line1": self.line1,
            "line2": self.line2,
            "state": self.state,
            "zip": self.zip,
        }

    def to_legacy_wire(self) -> dict[str, str]:
        """TaxCloud v1 address representation."""
        return {
            "Address1": self.line1,
            "Address2": self.line2,
            "City": self.city,
            "State": self.state,
            "Zip5": self.zip5,
            "Zip4": self.zip4,
        }

    def formatted(self) -> str:
        return f"{self.line1}, {self.city}, {self.state} {self.zip5}"


class Location(BaseModel):
    """A business location registered with TaxCloud."""

    location_id: str
    address: Address


class AddressVerifyRequest(BaseModel):
    address: Address
    order_id: str | None = Field(default=None, max_length=255)
