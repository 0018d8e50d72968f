"""Human corrections to detections and packages.

Pure functions: each returns an updated copy. Re-matching after a detection
correction is the caller's job (see reconciliation_engine.rematch_detection).
"""

from parcelcheck.schemas.detection import Detection, append_note
from parcelcheck.schemas.package import APARTMENT_CODE_PATTERN, Package, PackageStatus

# A human-confirmed reading is fully trusted
HUMAN_CONFIDENCE = 1.0


class InvalidTransitionError(ValueError):
    """A status change that the package lifecycle does not allow."""


def _normalize_apartment(apartment: str | None) -> str | None:
    if apartment is None or not apartment.strip():
        return None
    value = apartment.strip().upper()
    if not APARTMENT_CODE_PATTERN.match(value):
        raise ValueError(f"'{apartment}' is not an apartment code (expected e.g. C02G)")
    return value


def _normalize_last4(last4: str | None) -> str | None:
    if last4 is None or not last4.strip():
        return None
    value = last4.strip()
    if len(value) != 4:
        raise ValueError(f"Tracking last 4 must be exactly 4 characters, got '{value}'")
    return value


def apply_correction(
    detection: Detection,
    *,
    apartment: str | None,
    last4: str | None,
    notes: str | None = None,
) -> Detection:
    """Replace the parsed apartment/last4 with a human reading.

    The raw oracle text is kept for audit; the correction is appended to the notes.
    """
    corrected_apartment = _normalize_apartment(apartment)
    corrected_last4 = _normalize_last4(last4)

    trail = append_note(
        detection.notes,
        f"[Corrected by user: {corrected_apartment or '?'}/{corrected_last4 or '?'}]",
    )
    if notes and notes.strip():
        trail = append_note(trail, notes.strip())

    return detection.model_copy(
        update={
            "parsed_apartment": corrected_apartment,
            "parsed_last4": corrected_last4,
            "confidence": HUMAN_CONFIDENCE,
            "notes": trail,
        }
    )


def confirm_detection(detection: Detection) -> Detection:
    """A human confirms the oracle reading is correct."""
    return detection.model_copy(
        update={
            "confidence": HUMAN_CONFIDENCE,
            "notes": append_note(detection.notes, "[Verified by user]"),
        }
    )


def reject_detection(detection: Detection) -> Detection:
    """A human marks the reading as an error.

    The parsed fields are cleared so every later matching pass classifies the
    detection as unreadable; the previous reading is kept in the notes.
    """
    previous = f"{detection.parsed_apartment or '?'}/{detection.parsed_last4 or '?'}"
    return detection.model_copy(
        update={
            "parsed_apartment": None,
            "parsed_last4": None,
            "notes": append_note(detection.notes, f"[Marked as error by user, read {previous}]"),
        }
    )


def verify_package(package: Package) -> Package:
    """Human confirmation that a package is physically here.

    Packages without a tracking number are never matched automatically, so
    they may be verified straight from pending.
    """
    if package.status == PackageStatus.VERIFIED:
        return package.model_copy()
    if package.status == PackageStatus.FOUND or (
        package.no_tracking and package.status == PackageStatus.PENDING
    ):
        return package.model_copy(update={"status": PackageStatus.VERIFIED})
    raise InvalidTransitionError(
        f"Package {package.id} is {package.status.value}; only found packages can be verified"
    )


def sweep_not_found(packages: list[Package]) -> list[Package]:
    """End-of-session sweep: every package still pending becomes not_found."""
    return [
        pkg.model_copy(update={"status": PackageStatus.NOT_FOUND})
        if pkg.status == PackageStatus.PENDING
        else pkg.model_copy()
        for pkg in packages
    ]
