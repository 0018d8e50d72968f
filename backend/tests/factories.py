"""Builders for packages, detections and oracle entries used across the tests."""

from parcelcheck.schemas.detection import BoundingBox, Detection
from parcelcheck.schemas.package import Package, PackageStatus

MANIFEST_LINE = (
    "C01K Unit\tESCARDO LLC\tUPS - #2165790850 - 1ZA8272V1341859679 MARIA ESPEJO\t3901\t1/30/2026"
)

SAMPLE_MANIFEST = "\n".join([
    MANIFEST_LINE,
    "C02G Unit\tJOHN DOE\tAMAZON - #12345 - TBA987654321 JOHN DOE\t4501\t2/1/2026 10:00:00 AM",
    "C14B Unit\tJANE SMITH\tFEDEX - #67890 - 123456789012 JANE SMITH\t2301\t2/2/2026 3:30:00 PM",
])


def make_package(apartment: str, last4: str, status: PackageStatus = PackageStatus.PENDING, **kwargs) -> Package:
    return Package(
        apartment=apartment,
        tracking_last4=last4,
        carrier=kwargs.pop("carrier", "UPS"),
        recipient=kwargs.pop("recipient", "TEST RECIPIENT"),
        full_tracking=kwargs.pop("full_tracking", f"1Z000000{last4}"),
        status=status,
        **kwargs,
    )


def make_detection(apartment: str | None, last4: str | None, confidence: float = 0.95, **kwargs) -> Detection:
    return Detection(
        photo_id=kwargs.pop("photo_id", "photo-1"),
        bounding_box=BoundingBox(x=10, y=10, width=20, height=10),
        raw_text=kwargs.pop("raw_text", f"{apartment or '?'} {last4 or '?'}"),
        parsed_apartment=apartment,
        parsed_last4=last4,
        confidence=confidence,
        **kwargs,
    )


def oracle_entry(apartment: str | None, last4: str | None, confidence: float = 0.95, **kwargs) -> dict:
    return {
        "raw_text": kwargs.get("raw_text", f"{apartment} 1/30 {last4} JN"),
        "apartment": apartment,
        "tracking_last4": last4,
        "date": kwargs.get("date", "1/30"),
        "initials": kwargs.get("initials", "JN"),
        "confidence": confidence,
        "bounding_box": kwargs.get("bounding_box", [0.1, 0.2, 0.3, 0.4]),
        "notes": kwargs.get("notes"),
    }
