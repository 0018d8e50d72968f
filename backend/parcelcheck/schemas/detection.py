"""Pydantic schemas for sticker detections and the vision-oracle boundary."""

import enum
import uuid

from pydantic import BaseModel, Field, field_validator, model_validator

from parcelcheck.schemas.package import APARTMENT_CODE_PATTERN, CamelModel


class DetectionStatus(str, enum.Enum):
    MATCHED = "matched"
    DUPLICATE = "duplicate"
    ORPHAN = "orphan"
    UNREADABLE = "unreadable"
    AMBIGUOUS = "ambiguous"


def append_note(notes: str | None, note: str) -> str:
    """Append to a notes trail without overwriting what is already there."""
    if not notes or not notes.strip():
        return note
    existing = notes.rstrip()
    separator = " " if existing[-1] in ".!?]" else ". "
    return f"{existing}{separator}{note}"


class BoundingBox(BaseModel):
    """Axis-aligned box in percent of the image (0-100)."""

    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)
    width: float = Field(..., gt=0, le=100)
    height: float = Field(..., gt=0, le=100)


class Detection(CamelModel):
    """One sticker reading extracted from one photo."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    photo_id: str
    bounding_box: BoundingBox
    raw_text: str = ""
    parsed_apartment: str | None = None
    parsed_last4: str | None = None
    parsed_date: str | None = None
    parsed_initials: str | None = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    matched_package_id: str | None = None
    # Placeholder until the reconciliation engine classifies the reading
    status: DetectionStatus = DetectionStatus.ORPHAN
    notes: str | None = None

    @property
    def combo(self) -> tuple[str, str] | None:
        if not self.parsed_apartment or not self.parsed_last4:
            return None
        return (self.parsed_apartment, self.parsed_last4)


class OracleDetection(BaseModel):
    """A single sticker reading exactly as the vision oracle must return it.

    Bounding boxes arrive as [x_min, y_min, x_max, y_max] in normalized 0-1
    coordinates. Readings that cannot be a valid apartment code or a 4-character
    tracking tail are coerced to null so the engine treats them as unreadable.
    """

    raw_text: str = ""
    apartment: str | None = None
    tracking_last4: str | None = None
    date: str | None = None
    initials: str | None = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    bounding_box: tuple[float, float, float, float]
    notes: str | None = None

    @field_validator("raw_text", mode="before")
    @classmethod
    def _raw_text_not_null(cls, value):
        return "" if value is None else value

    @field_validator("apartment", "tracking_last4", "date", "initials", "notes", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value or value.lower() in ("null", "n/a"):
                return None
        return value

    @field_validator("bounding_box")
    @classmethod
    def _normalized_box(cls, value: tuple[float, float, float, float]) -> tuple[float, float, float, float]:
        x_min, y_min, x_max, y_max = value
        if any(coord < 0 or coord > 1 for coord in value):
            raise ValueError(f"bounding_box coordinates must be within 0-1, got {list(value)}")
        if x_min >= x_max or y_min >= y_max:
            raise ValueError(f"bounding_box must satisfy x_min < x_max and y_min < y_max, got {list(value)}")
        return value

    @model_validator(mode="after")
    def _coerce_unreadable_fields(self) -> "OracleDetection":
        if self.apartment is not None:
            apartment = self.apartment.upper()
            if APARTMENT_CODE_PATTERN.match(apartment):
                self.apartment = apartment
            else:
                self.notes = append_note(self.notes, f"Apartment reading '{self.apartment}' is not a valid code.")
                self.apartment = None
        if self.tracking_last4 is not None and len(self.tracking_last4) != 4:
            self.notes = append_note(
                self.notes, f"Tracking reading '{self.tracking_last4}' is not 4 characters."
            )
            self.tracking_last4 = None
        return self

    def to_bounding_box(self) -> BoundingBox:
        x_min, y_min, x_max, y_max = self.bounding_box
        return BoundingBox(
            x=x_min * 100,
            y=y_min * 100,
            width=(x_max - x_min) * 100,
            height=(y_max - y_min) * 100,
        )

    def to_detection(self, photo_id: str) -> Detection:
        return Detection(
            photo_id=photo_id,
            bounding_box=self.to_bounding_box(),
            raw_text=self.raw_text,
            parsed_apartment=self.apartment,
            parsed_last4=self.tracking_last4,
            parsed_date=self.date,
            parsed_initials=self.initials,
            confidence=self.confidence,
            notes=self.notes,
        )


class OracleSubmission(BaseModel):
    """Raw oracle output for one photo; entries are validated one by one."""

    detections: list[dict] = Field(default_factory=list)


class DetectionCorrectionRequest(CamelModel):
    apartment: str | None = None
    last4: str | None = None
    notes: str | None = None


class DetectionListResponse(CamelModel):
    detections: list[Detection]
    total: int


class ReviewQueueItem(CamelModel):
    detection: Detection
    reason: str


class ReviewQueueResponse(CamelModel):
    items: list[ReviewQueueItem]
    total: int
