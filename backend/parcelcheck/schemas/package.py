"""Pydantic schemas for manifest packages and manifest parsing."""

import enum
import re
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Serialized value of tracking_last4 when the manifest states there is no tracking number
NO_TRACKING_SENTINEL = "NONE"

APARTMENT_CODE_PATTERN = re.compile(r"^[A-Z][0-9]{2}[A-Z]$")


class PackageStatus(str, enum.Enum):
    PENDING = "pending"
    FOUND = "found"
    VERIFIED = "verified"
    NOT_FOUND = "not_found"


class CamelModel(BaseModel):
    """Base for records exchanged with the UI: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Package(CamelModel):
    """One expected delivery from the manifest."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    apartment: str = Field(..., description="Unit code, e.g. C02G")
    tracking_last4: str = Field(..., description="Last 4 characters of the tracking code, or NONE")
    no_tracking: bool = Field(False, description="Manifest states the package has no tracking number")
    carrier: str = ""
    recipient: str = ""
    full_tracking: str = ""
    imported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: PackageStatus = PackageStatus.PENDING

    @field_validator("apartment")
    @classmethod
    def _apartment_code(cls, value: str) -> str:
        value = value.strip().upper()
        if not APARTMENT_CODE_PATTERN.match(value):
            raise ValueError(f"'{value}' is not an apartment code (expected e.g. C02G)")
        return value

    @field_validator("tracking_last4")
    @classmethod
    def _last4_length(cls, value: str) -> str:
        if len(value) != 4:
            raise ValueError("tracking_last4 must be exactly 4 characters")
        return value

    @property
    def combo(self) -> tuple[str, str]:
        """(apartment, tracking_last4) as serialized; unique within one import."""
        return (self.apartment, self.tracking_last4)

    @property
    def match_key(self) -> tuple[str, str] | None:
        """Key used for sticker matching. No-tracking packages are never matched automatically."""
        if self.no_tracking:
            return None
        return self.combo


class ParsingError(CamelModel):
    line_number: int
    line: str
    reason: str


class ManifestImportRequest(CamelModel):
    raw_text: str = Field(..., description="Manifest text as pasted from the package management system")


class ManifestImportResponse(CamelModel):
    packages: list[Package] = Field(default_factory=list)
    errors: list[ParsingError] = Field(default_factory=list)


class PackageListResponse(CamelModel):
    packages: list[Package]
    total: int
