"""SessionService: every change to the check-in session goes through here.

Each operation loads the latest snapshot, runs pure reducer and engine
functions over it, and saves the result as the next version. Two requests
that start from the same version cannot both be saved; the second one gets
StaleSessionError.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from parcelcheck.config import Settings
from parcelcheck.exports.formatters import summarize
from parcelcheck.hitl_workflow import corrections
from parcelcheck.hitl_workflow.triggers import build_review_queue
from parcelcheck.manifest_parser.parser import ManifestParser, ParseResult
from parcelcheck.reconciliation_engine.matchers import (
    match_detections,
    rematch_detection,
    release_packages,
)
from parcelcheck.schemas.detection import Detection, DetectionStatus
from parcelcheck.schemas.package import Package, PackageStatus
from parcelcheck.schemas.session import Photo, SessionState, SessionSummary
from parcelcheck.services.claude_service import OracleResult, StickerVisionService, validate_oracle_entries
from parcelcheck.session_store import reducer
from parcelcheck.session_store.repository import SessionRepository

logger = logging.getLogger("parcelcheck.session")


class NotFoundError(ValueError):
    """No package, photo or detection with that id in the current session."""


def find_package(state: SessionState, package_id: str) -> Package:
    for pkg in state.packages:
        if pkg.id == package_id:
            return pkg
    raise NotFoundError(f"Package {package_id} not found")


def find_detection(state: SessionState, detection_id: str) -> Detection:
    for det in state.detections:
        if det.id == detection_id:
            return det
    raise NotFoundError(f"Detection {detection_id} not found")


def find_photo(state: SessionState, photo_id: str) -> Photo:
    for photo in state.photos:
        if photo.id == photo_id:
            return photo
    raise NotFoundError(f"Photo {photo_id} not found")


def _rematch_all(state: SessionState) -> SessionState:
    return reducer.apply_match(state, match_detections(state.packages, state.detections))


def _released_any(before: list[Package], after: list[Package]) -> bool:
    """True when a package that was found is pending again."""
    found = {pkg.id for pkg in before if pkg.status == PackageStatus.FOUND}
    return any(pkg.id in found and pkg.status == PackageStatus.PENDING for pkg in after)


class SessionService:
    """Loads, changes and saves the session document."""

    def __init__(self, settings: Settings):
        self.parser = ManifestParser(settings.apartment_prefixes)
        self.review_threshold = settings.review_confidence_threshold
        self.repository = SessionRepository(history_limit=settings.session_history_limit)

    async def get_state(self, db: AsyncSession) -> SessionState:
        """Latest snapshot, or an unsaved empty session at version 0."""
        state = await self.repository.load_latest(db)
        return state if state is not None else SessionState()

    async def _save(self, db: AsyncSession, loaded: SessionState, state: SessionState) -> SessionState:
        # One saved version per operation, however many reducer steps it took
        final = state.model_copy(update={"version": loaded.version + 1})
        return await self.repository.save(db, final)

    # ── Manifest ──

    def preview_manifest(self, raw_text: str) -> ParseResult:
        return self.parser.parse(raw_text)

    async def import_manifest(self, db: AsyncSession, raw_text: str) -> tuple[SessionState, ParseResult]:
        """Replace the package list and re-match every detection against it."""
        loaded = await self.get_state(db)
        result = self.parser.parse(raw_text)

        state = reducer.replace_packages(loaded, result.packages)
        state = _rematch_all(state)

        logger.info(
            "Imported manifest: %d packages, %d errors, %d detections re-matched",
            len(result.packages),
            len(result.errors),
            len(state.detections),
        )
        return await self._save(db, loaded, state), result

    # ── Photos & detections ──

    async def add_photo(
        self,
        db: AsyncSession,
        *,
        filename: str | None = None,
        file_path: str | None = None,
    ) -> tuple[SessionState, Photo]:
        loaded = await self.get_state(db)
        photo = Photo(filename=filename, file_path=file_path)
        state = reducer.add_photo(loaded, photo)
        return await self._save(db, loaded, state), photo

    async def record_detections(
        self,
        db: AsyncSession,
        photo_id: str,
        oracle: OracleResult,
    ) -> tuple[SessionState, list[Detection]]:
        """Attach a photo's oracle readings and run the engine over all detections."""
        loaded = await self.get_state(db)
        find_photo(loaded, photo_id)

        new_detections = [entry.to_detection(photo_id) for entry in oracle.detections]
        state = reducer.add_detections(loaded, photo_id, new_detections)
        state = _rematch_all(state)
        saved = await self._save(db, loaded, state)

        new_ids = {det.id for det in new_detections}
        matched = [det for det in saved.detections if det.id in new_ids]
        logger.info(
            "Photo %s: %d detections recorded (%d matched)",
            photo_id,
            len(matched),
            sum(1 for det in matched if det.status == DetectionStatus.MATCHED),
        )
        return saved, matched

    async def submit_oracle_output(
        self,
        db: AsyncSession,
        photo_id: str,
        entries: list,
    ) -> tuple[SessionState, list[Detection], list[str]]:
        """Record oracle output produced outside this service."""
        oracle = validate_oracle_entries(entries)
        state, detections = await self.record_detections(db, photo_id, oracle)
        return state, detections, oracle.rejected

    async def process_photo(
        self,
        db: AsyncSession,
        vision: StickerVisionService,
        photo_id: str,
        image_b64: str,
        media_type: str,
    ) -> tuple[SessionState, list[Detection], list[str]]:
        """Send a stored photo to the vision oracle and record what it read."""
        oracle = await vision.detect_stickers(image_b64, media_type)
        state, detections = await self.record_detections(db, photo_id, oracle)
        return state, detections, oracle.rejected

    async def delete_photo(self, db: AsyncSession, photo_id: str) -> tuple[SessionState, Photo]:
        """Drop a photo and its detections; packages they found go back to pending."""
        loaded = await self.get_state(db)
        photo = find_photo(loaded, photo_id)

        released = {
            det.matched_package_id
            for det in loaded.detections
            if det.photo_id == photo_id
            and det.status == DetectionStatus.MATCHED
            and det.matched_package_id is not None
        }

        state = reducer.delete_photo(loaded, photo_id)
        state = reducer.replace_packages(state, release_packages(state.packages, released))
        state = _rematch_all(state)
        return await self._save(db, loaded, state), photo

    # ── Human review ──

    async def _update_detection(
        self,
        db: AsyncSession,
        loaded: SessionState,
        updated: Detection,
        *,
        rematch: bool,
    ) -> tuple[SessionState, Detection]:
        state = reducer.replace_detection(loaded, updated)
        if rematch:
            outcome = rematch_detection(state.packages, state.detections, updated.id)
            state = reducer.replace_packages(state, outcome.updated_packages)
            state = reducer.replace_detection(state, outcome.updated_detection)
            if _released_any(loaded.packages, outcome.updated_packages):
                # A freed package goes to the first duplicate still reading its combo
                state = _rematch_all(state)
        saved = await self._save(db, loaded, state)
        return saved, find_detection(saved, updated.id)

    async def correct_detection(
        self,
        db: AsyncSession,
        detection_id: str,
        *,
        apartment: str | None,
        last4: str | None,
        notes: str | None = None,
    ) -> tuple[SessionState, Detection]:
        loaded = await self.get_state(db)
        detection = find_detection(loaded, detection_id)
        corrected = corrections.apply_correction(detection, apartment=apartment, last4=last4, notes=notes)
        return await self._update_detection(db, loaded, corrected, rematch=True)

    async def confirm_detection(self, db: AsyncSession, detection_id: str) -> tuple[SessionState, Detection]:
        loaded = await self.get_state(db)
        confirmed = corrections.confirm_detection(find_detection(loaded, detection_id))
        return await self._update_detection(db, loaded, confirmed, rematch=False)

    async def reject_detection(self, db: AsyncSession, detection_id: str) -> tuple[SessionState, Detection]:
        loaded = await self.get_state(db)
        rejected = corrections.reject_detection(find_detection(loaded, detection_id))
        return await self._update_detection(db, loaded, rejected, rematch=True)

    def review_queue(self, state: SessionState, review_filter: str | None = None) -> list[tuple[Detection, str]]:
        return build_review_queue(state.detections, review_filter, confidence_threshold=self.review_threshold)

    # ── Packages ──

    async def verify_package(self, db: AsyncSession, package_id: str) -> tuple[SessionState, Package]:
        loaded = await self.get_state(db)
        verified = corrections.verify_package(find_package(loaded, package_id))
        state = reducer.replace_package(loaded, verified)
        return await self._save(db, loaded, state), verified

    async def sweep_not_found(self, db: AsyncSession) -> SessionState:
        """Close the session: every package nobody found becomes not_found."""
        loaded = await self.get_state(db)
        state = reducer.replace_packages(loaded, corrections.sweep_not_found(loaded.packages))
        swept = sum(1 for pkg in state.packages if pkg.status == PackageStatus.NOT_FOUND)
        logger.info("Swept session %s: %d packages not found", loaded.session_id, swept)
        return await self._save(db, loaded, state)

    # ── Session ──

    def summarize(self, state: SessionState) -> SessionSummary:
        return summarize(state, confidence_threshold=self.review_threshold)

    async def clear(self, db: AsyncSession) -> SessionState:
        loaded = await self.get_state(db)
        state = reducer.new_session(loaded)
        logger.info("Started new session %s (previous %s)", state.session_id, loaded.session_id)
        return await self._save(db, loaded, state)
