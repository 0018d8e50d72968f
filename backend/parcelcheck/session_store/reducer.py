"""Pure state transitions for the session document.

Each function takes the current SessionState and returns a new one with the
version bumped. States are never modified in place, so a loaded snapshot can
be shared freely between readers.
"""

from parcelcheck.reconciliation_engine.matchers import MatchOutcome
from parcelcheck.schemas.detection import Detection
from parcelcheck.schemas.package import Package
from parcelcheck.schemas.session import Photo, SessionState, utcnow


def _next(state: SessionState, **changes) -> SessionState:
    return state.model_copy(
        update={**changes, "version": state.version + 1, "last_modified": utcnow()}
    )


def _find_photo(state: SessionState, photo_id: str) -> Photo:
    for photo in state.photos:
        if photo.id == photo_id:
            return photo
    raise ValueError(f"Photo {photo_id} not found")


def replace_packages(state: SessionState, packages: list[Package]) -> SessionState:
    return _next(state, packages=list(packages))


def replace_package(state: SessionState, package: Package) -> SessionState:
    if not any(pkg.id == package.id for pkg in state.packages):
        raise ValueError(f"Package {package.id} not found")
    return _next(
        state,
        packages=[package if pkg.id == package.id else pkg for pkg in state.packages],
    )


def add_photo(state: SessionState, photo: Photo) -> SessionState:
    return _next(state, photos=[*state.photos, photo])


def add_detections(state: SessionState, photo_id: str, detections: list[Detection]) -> SessionState:
    """Attach a processed photo's detections; they go to the end of the flat list."""
    photo = _find_photo(state, photo_id)
    processed = photo.model_copy(
        update={
            "processed": True,
            "detection_ids": [*photo.detection_ids, *(det.id for det in detections)],
        }
    )
    return _next(
        state,
        photos=[processed if p.id == photo_id else p for p in state.photos],
        detections=[*state.detections, *detections],
    )


def apply_match(state: SessionState, outcome: MatchOutcome) -> SessionState:
    """Replace packages and detections wholesale with a matching result."""
    if len(outcome.updated_detections) != len(state.detections):
        raise ValueError("Match outcome does not cover every detection in the session")
    return _next(
        state,
        packages=list(outcome.updated_packages),
        detections=list(outcome.updated_detections),
    )


def replace_detection(state: SessionState, detection: Detection) -> SessionState:
    if not any(det.id == detection.id for det in state.detections):
        raise ValueError(f"Detection {detection.id} not found")
    return _next(
        state,
        detections=[detection if det.id == detection.id else det for det in state.detections],
    )


def delete_photo(state: SessionState, photo_id: str) -> SessionState:
    """Remove a photo together with every detection it produced."""
    _find_photo(state, photo_id)
    return _next(
        state,
        photos=[p for p in state.photos if p.id != photo_id],
        detections=[det for det in state.detections if det.photo_id != photo_id],
    )


def new_session(state: SessionState) -> SessionState:
    """Start an empty session; the version keeps counting so snapshots stay ordered."""
    return SessionState(version=state.version + 1)
