"""ReviewTriggers — pure functions to determine if detections need human review.

No DB or service dependencies, easy to unit test.
"""

from parcelcheck.schemas.detection import Detection, DetectionStatus

REVIEW_FILTERS = ("low_confidence", "orphan", "ambiguous", "unreadable")


def needs_review(
    detection: Detection,
    *,
    confidence_threshold: float = 0.9,
) -> tuple[bool, str]:
    """Determine if a detection should be shown in the review queue.

    Returns (needs_review, reason).
    """
    if detection.status == DetectionStatus.UNREADABLE:
        return True, "Apartment or tracking number could not be read"

    if detection.status == DetectionStatus.AMBIGUOUS:
        return True, "Multiple packages match this sticker"

    if detection.status == DetectionStatus.ORPHAN:
        return True, "Sticker not in the imported package list"

    if detection.confidence < confidence_threshold:
        return True, f"Low confidence ({detection.confidence:.2f} < {confidence_threshold})"

    return False, "No review needed"


def matches_filter(
    detection: Detection,
    review_filter: str | None,
    *,
    confidence_threshold: float = 0.9,
) -> bool:
    """Apply one of the review-queue filters; None keeps every flagged detection."""
    if review_filter is None:
        return True
    if review_filter == "low_confidence":
        return detection.confidence < confidence_threshold
    return detection.status.value == review_filter


def build_review_queue(
    detections: list[Detection],
    review_filter: str | None = None,
    *,
    confidence_threshold: float = 0.9,
) -> list[tuple[Detection, str]]:
    """Flagged detections with their reason, lowest confidence first."""
    if review_filter is not None and review_filter not in REVIEW_FILTERS:
        raise ValueError(f"Unknown review filter '{review_filter}'. Allowed: {', '.join(REVIEW_FILTERS)}")

    queue: list[tuple[Detection, str]] = []
    for detection in detections:
        flagged, reason = needs_review(detection, confidence_threshold=confidence_threshold)
        if flagged and matches_filter(detection, review_filter, confidence_threshold=confidence_threshold):
            queue.append((detection, reason))

    queue.sort(key=lambda item: item[0].confidence)
    return queue
