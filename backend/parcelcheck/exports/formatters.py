"""
Exports of the session for the end-of-day hand-off.

- Plain text list of packages still missing (pending / not found)
- CSV of the same packages for spreadsheets
- Full session JSON for backup and debugging
"""

import csv
import io
from collections import Counter
from datetime import datetime

from parcelcheck.hitl_workflow.triggers import needs_review
from parcelcheck.schemas.package import Package, PackageStatus
from parcelcheck.schemas.session import (
    DetectionCounts,
    PackageCounts,
    SessionState,
    SessionSummary,
    utcnow,
)

EXPORT_FORMATS = ("text", "csv", "json")

CSV_HEADER = ["Apartment", "Tracking Last 4", "Carrier", "Recipient", "Full Tracking", "Status"]

REMAINING_STATUSES = (PackageStatus.PENDING, PackageStatus.NOT_FOUND)


def remaining_packages(packages: list[Package]) -> list[Package]:
    return [pkg for pkg in packages if pkg.status in REMAINING_STATUSES]


def _package_line(pkg: Package) -> str:
    return f"{pkg.apartment} - {pkg.tracking_last4} - {pkg.carrier} - {pkg.recipient}"


def export_remaining_text(packages: list[Package], generated_at: datetime | None = None) -> str:
    """Human-readable list of the packages nobody has found yet."""
    if not packages:
        return "No remaining packages to export."

    generated_at = generated_at or utcnow()
    lines = [
        "=== REMAINING PACKAGES ===",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
        f"Total: {len(packages)}",
        "",
        "---",
        "",
    ]

    for status, title in ((PackageStatus.PENDING, "PENDING"), (PackageStatus.NOT_FOUND, "NOT FOUND")):
        group = [pkg for pkg in packages if pkg.status == status]
        if not group:
            continue
        lines.append(f"{title} ({len(group)}):")
        lines.append("")
        lines.extend(_package_line(pkg) for pkg in group)
        lines.append("")

    return "\n".join(lines)


def export_packages_csv(packages: list[Package]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for pkg in packages:
        writer.writerow(
            [pkg.apartment, pkg.tracking_last4, pkg.carrier, pkg.recipient, pkg.full_tracking, pkg.status.value]
        )
    return buffer.getvalue()


def export_session_json(state: SessionState) -> str:
    return state.model_dump_json(indent=2, by_alias=True)


def summarize(state: SessionState, *, confidence_threshold: float = 0.9) -> SessionSummary:
    """Counts by status for packages and detections, plus the review-queue size."""
    package_counts = Counter(pkg.status.value for pkg in state.packages)
    detection_counts = Counter(det.status.value for det in state.detections)
    flagged = sum(
        1
        for det in state.detections
        if needs_review(det, confidence_threshold=confidence_threshold)[0]
    )

    return SessionSummary(
        session_id=state.session_id,
        version=state.version,
        packages=PackageCounts(total=len(state.packages), **package_counts),
        detections=DetectionCounts(total=len(state.detections), **detection_counts),
        photos=len(state.photos),
        needs_review=flagged,
        last_modified=state.last_modified,
    )
