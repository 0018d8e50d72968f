"""Pure matching functions for sticker reconciliation — no DB or Claude dependency.

A detection is matched to a manifest package by the (apartment, last4) combo.
The first detection of a combo in input order wins; later ones are duplicates.
Inputs are never mutated: every function works on copies and returns them.
"""

import logging
from collections import Counter
from dataclasses import dataclass

from parcelcheck.schemas.detection import Detection, DetectionStatus, append_note
from parcelcheck.schemas.package import Package, PackageStatus

logger = logging.getLogger("parcelcheck.reconciliation")

# Package statuses that mean "this manifest entry is already satisfied"
CLAIMING_STATUSES = frozenset({PackageStatus.FOUND, PackageStatus.VERIFIED})

ORPHAN_NOTE = "Sticker not found in imported package list."
AMBIGUOUS_NOTE = "Multiple packages match this apartment and tracking number."


@dataclass
class MatchOutcome:
    updated_packages: list[Package]
    updated_detections: list[Detection]


@dataclass
class RematchOutcome:
    updated_packages: list[Package]
    updated_detection: Detection


def _note_once(notes: str | None, note: str) -> str:
    if notes and note in notes:
        return notes
    return append_note(notes, note)


class _ClaimLedger:
    """Tracks which combos are satisfied during one matching pass.

    Operates on package copies owned by the caller of the pass.
    """

    def __init__(self, packages: list[Package]):
        self.packages = packages
        self.by_id = {pkg.id: pkg for pkg in packages}
        self.claimed: set[tuple[str, str]] = {
            pkg.match_key
            for pkg in packages
            if pkg.status in CLAIMING_STATUSES and pkg.match_key is not None
        }
        # Package ids already held by a matched detection in this pass
        self.held: set[str] = set()

    def claim(self, detection: Detection) -> None:
        """Record an existing match from a detection outside this pass."""
        if detection.combo is not None:
            self.claimed.add(detection.combo)
        if detection.matched_package_id is not None:
            self.held.add(detection.matched_package_id)

    def _holds_claim(self, detection: Detection) -> bool:
        if detection.status != DetectionStatus.MATCHED or detection.matched_package_id is None:
            return False
        if detection.matched_package_id in self.held:
            return False
        pkg = self.by_id.get(detection.matched_package_id)
        return (
            pkg is not None
            and pkg.status in CLAIMING_STATUSES
            and pkg.match_key is not None
            and pkg.match_key == detection.combo
        )

    def classify(self, detection: Detection) -> None:
        """Assign exactly one terminal status to a detection copy, in place."""
        combo = detection.combo

        if combo is None:
            detection.status = DetectionStatus.UNREADABLE
            detection.matched_package_id = None
            return

        # Re-run over an earlier result: the detection that found the package keeps it
        if self._holds_claim(detection):
            self.held.add(detection.matched_package_id)
            return

        if combo in self.claimed:
            detection.status = DetectionStatus.DUPLICATE
            detection.matched_package_id = None
            return

        candidates = [
            pkg
            for pkg in self.packages
            if pkg.status == PackageStatus.PENDING and pkg.match_key == combo
        ]

        if len(candidates) == 1:
            pkg = candidates[0]
            pkg.status = PackageStatus.FOUND
            detection.status = DetectionStatus.MATCHED
            detection.matched_package_id = pkg.id
            self.claimed.add(combo)
            self.held.add(pkg.id)
        elif len(candidates) > 1:
            # Needs a human to pick the right package
            detection.status = DetectionStatus.AMBIGUOUS
            detection.matched_package_id = None
            detection.notes = _note_once(detection.notes, AMBIGUOUS_NOTE)
        else:
            detection.status = DetectionStatus.ORPHAN
            detection.matched_package_id = None
            detection.notes = _note_once(detection.notes, ORPHAN_NOTE)


def match_detections(
    packages: list[Package],
    detections: list[Detection],
) -> MatchOutcome:
    """Classify every detection against the manifest, in input order.

    Returns new package and detection lists of the same length as the inputs.
    """
    updated_packages = [pkg.model_copy(deep=True) for pkg in packages]
    updated_detections = [det.model_copy(deep=True) for det in detections]

    ledger = _ClaimLedger(updated_packages)
    for detection in updated_detections:
        ledger.classify(detection)

    if logger.isEnabledFor(logging.DEBUG):
        counts = Counter(det.status.value for det in updated_detections)
        logger.debug("Matched %d detections: %s", len(updated_detections), dict(counts))

    return MatchOutcome(updated_packages=updated_packages, updated_detections=updated_detections)


def rematch_detection(
    packages: list[Package],
    detections: list[Detection],
    detection_id: str,
) -> RematchOutcome:
    """Re-classify one detection after a human changed its parsed fields.

    The claimed combos are rebuilt from found/verified packages and the other
    detections that are currently matched, so the result agrees with a full
    re-run. If the detection held a package under a different combo, that
    package goes back to pending unless it was already verified.
    """
    updated_packages = [pkg.model_copy(deep=True) for pkg in packages]
    target = next((det for det in detections if det.id == detection_id), None)
    if target is None:
        raise ValueError(f"Detection {detection_id} not found")
    target = target.model_copy(deep=True)

    ledger = _ClaimLedger(updated_packages)
    others = [det for det in detections if det.id != detection_id]

    previous = None
    if target.status == DetectionStatus.MATCHED and target.matched_package_id is not None:
        previous = ledger.by_id.get(target.matched_package_id)

    if previous is not None and previous.match_key != target.combo:
        still_held = any(
            det.status == DetectionStatus.MATCHED and det.matched_package_id == previous.id
            for det in others
        )
        if previous.status == PackageStatus.FOUND and not still_held:
            previous.status = PackageStatus.PENDING
            ledger.claimed.discard(previous.match_key)
        target.matched_package_id = None
        target.status = DetectionStatus.ORPHAN

    for det in others:
        if det.status == DetectionStatus.MATCHED:
            ledger.claim(det)

    ledger.classify(target)
    return RematchOutcome(updated_packages=updated_packages, updated_detection=target)


def release_packages(packages: list[Package], package_ids: set[str]) -> list[Package]:
    """Return copies where the given found packages are pending again.

    Used when the detections that found them are deleted; verified packages
    stay verified because a human confirmed them.
    """
    return [
        pkg.model_copy(update={"status": PackageStatus.PENDING})
        if pkg.id in package_ids and pkg.status == PackageStatus.FOUND
        else pkg.model_copy()
        for pkg in packages
    ]
