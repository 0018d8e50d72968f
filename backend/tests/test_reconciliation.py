"""Tests for the reconciliation engine (sticker-to-manifest matching)."""

import pytest

from factories import make_detection, make_package
from parcelcheck.reconciliation_engine.matchers import (
    AMBIGUOUS_NOTE,
    ORPHAN_NOTE,
    match_detections,
    rematch_detection,
    release_packages,
)
from parcelcheck.schemas.detection import DetectionStatus
from parcelcheck.schemas.package import Package, PackageStatus


# ── Single-detection classification ──


class TestMatch:
    """A well-formed combo against one pending package."""

    def test_exact_match(self):
        pkg = make_package("C01K", "1234")
        det = make_detection("C01K", "1234")

        result = match_detections([pkg], [det])

        assert result.updated_packages[0].status == PackageStatus.FOUND
        assert result.updated_detections[0].status == DetectionStatus.MATCHED
        assert result.updated_detections[0].matched_package_id == pkg.id

    def test_multiple_detections_multiple_packages(self):
        packages = [make_package("C01K", "1234"), make_package("C02G", "5678"), make_package("C03H", "9012")]
        detections = [make_detection("C03H", "9012"), make_detection("C01K", "1234")]

        result = match_detections(packages, detections)

        assert [p.status for p in result.updated_packages] == [
            PackageStatus.FOUND,
            PackageStatus.PENDING,
            PackageStatus.FOUND,
        ]
        assert result.updated_detections[0].matched_package_id == packages[2].id
        assert result.updated_detections[1].matched_package_id == packages[0].id

    def test_match_is_case_sensitive_on_last4(self):
        result = match_detections([make_package("C01K", "abCD")], [make_detection("C01K", "ABCD")])
        assert result.updated_detections[0].status == DetectionStatus.ORPHAN


class TestDuplicate:
    def test_package_already_found(self):
        pkg = make_package("C01K", "1234", PackageStatus.FOUND)
        det = make_detection("C01K", "1234")

        result = match_detections([pkg], [det])

        assert result.updated_detections[0].status == DetectionStatus.DUPLICATE
        assert result.updated_detections[0].matched_package_id is None
        assert result.updated_packages[0].status == PackageStatus.FOUND

    def test_package_already_verified(self):
        pkg = make_package("C01K", "1234", PackageStatus.VERIFIED)
        result = match_detections([pkg], [make_detection("C01K", "1234")])

        assert result.updated_detections[0].status == DetectionStatus.DUPLICATE
        assert result.updated_packages[0].status == PackageStatus.VERIFIED

    def test_found_combo_blocks_other_pending_package(self):
        packages = [make_package("C01K", "1234", PackageStatus.FOUND), make_package("C01K", "1234")]
        result = match_detections(packages, [make_detection("C01K", "1234")])

        assert result.updated_detections[0].status == DetectionStatus.DUPLICATE
        assert result.updated_packages[1].status == PackageStatus.PENDING

    def test_first_in_batch_wins(self):
        pkg = make_package("C01K", "1234")
        first = make_detection("C01K", "1234", confidence=0.6)
        second = make_detection("C01K", "1234", confidence=0.99)

        result = match_detections([pkg], [first, second])

        assert result.updated_detections[0].status == DetectionStatus.MATCHED
        assert result.updated_detections[1].status == DetectionStatus.DUPLICATE

    def test_order_decides_the_winner(self):
        pkg = make_package("C01K", "1234")
        a = make_detection("C01K", "1234")
        b = make_detection("C01K", "1234")

        result = match_detections([pkg], [b, a])

        assert result.updated_detections[0].id == b.id
        assert result.updated_detections[0].status == DetectionStatus.MATCHED


class TestOrphan:
    def test_no_packages(self):
        result = match_detections([], [make_detection("C99Z", "0000")])

        det = result.updated_detections[0]
        assert det.status == DetectionStatus.ORPHAN
        assert "not found in imported package list" in det.notes

    def test_apartment_matches_last4_does_not(self):
        result = match_detections([make_package("C01K", "1234")], [make_detection("C01K", "9999")])
        assert result.updated_detections[0].status == DetectionStatus.ORPHAN
        assert result.updated_packages[0].status == PackageStatus.PENDING

    def test_last4_matches_apartment_does_not(self):
        result = match_detections([make_package("C01K", "1234")], [make_detection("C02G", "1234")])
        assert result.updated_detections[0].status == DetectionStatus.ORPHAN

    def test_not_found_package_is_not_matched(self):
        pkg = make_package("C01K", "1234", PackageStatus.NOT_FOUND)
        result = match_detections([pkg], [make_detection("C01K", "1234")])

        assert result.updated_detections[0].status == DetectionStatus.ORPHAN
        assert result.updated_packages[0].status == PackageStatus.NOT_FOUND

    def test_oracle_notes_are_kept(self):
        det = make_detection("C99Z", "0000", notes="partially obscured")
        result = match_detections([], [det])
        assert result.updated_detections[0].notes == f"partially obscured. {ORPHAN_NOTE}"


class TestAmbiguous:
    def test_two_pending_packages_same_combo(self):
        packages = [make_package("C01K", "1234"), make_package("C01K", "1234")]

        result = match_detections(packages, [make_detection("C01K", "1234")])

        det = result.updated_detections[0]
        assert det.status == DetectionStatus.AMBIGUOUS
        assert "Multiple packages match" in det.notes
        assert det.matched_package_id is None
        assert all(p.status == PackageStatus.PENDING for p in result.updated_packages)

    def test_ambiguous_does_not_claim(self):
        packages = [make_package("C01K", "1234"), make_package("C01K", "1234")]
        detections = [make_detection("C01K", "1234"), make_detection("C01K", "1234")]

        result = match_detections(packages, detections)

        assert [d.status for d in result.updated_detections] == [DetectionStatus.AMBIGUOUS] * 2


class TestUnreadable:
    def test_apartment_missing(self):
        result = match_detections([make_package("C01K", "1234")], [make_detection(None, "1234")])
        assert result.updated_detections[0].status == DetectionStatus.UNREADABLE
        assert result.updated_packages[0].status == PackageStatus.PENDING

    def test_last4_missing(self):
        result = match_detections([make_package("C01K", "1234")], [make_detection("C01K", None)])
        assert result.updated_detections[0].status == DetectionStatus.UNREADABLE

    def test_both_missing(self):
        result = match_detections([], [make_detection(None, None)])
        assert result.updated_detections[0].status == DetectionStatus.UNREADABLE

    def test_unreadable_does_not_claim(self):
        pkg = make_package("C01K", "1234")
        result = match_detections([pkg], [make_detection(None, "1234"), make_detection("C01K", "1234")])

        assert result.updated_detections[1].status == DetectionStatus.MATCHED


class TestNoTrackingPackages:
    """Packages the manifest lists without a tracking number."""

    def _no_tracking(self, apartment: str) -> Package:
        return Package(apartment=apartment, tracking_last4="NONE", no_tracking=True, full_tracking="NO TRK")

    def test_sticker_reading_none_is_not_matched_to_sentinel(self):
        result = match_detections([self._no_tracking("C01K")], [make_detection("C01K", "NONE")])

        assert result.updated_detections[0].status == DetectionStatus.ORPHAN
        assert result.updated_packages[0].status == PackageStatus.PENDING

    def test_real_last4_none_still_matches(self):
        pkg = make_package("C01K", "NONE", full_tracking="1ZABCNONE")
        result = match_detections([pkg], [make_detection("C01K", "NONE")])
        assert result.updated_detections[0].status == DetectionStatus.MATCHED


# ── Batch behavior ──


class TestMixedBatch:
    def test_all_statuses_in_one_batch(self):
        packages = [
            make_package("C01K", "1234"),
            make_package("C02G", "5678", PackageStatus.FOUND),
            make_package("C03H", "1111"),
            make_package("C03H", "1111"),
        ]
        detections = [
            make_detection("C01K", "1234"),
            make_detection("C01K", "1234"),
            make_detection("C02G", "5678"),
            make_detection("C99Z", "0000"),
            make_detection(None, None),
            make_detection("C03H", "1111"),
        ]

        result = match_detections(packages, detections)

        assert [d.status for d in result.updated_detections] == [
            DetectionStatus.MATCHED,
            DetectionStatus.DUPLICATE,
            DetectionStatus.DUPLICATE,
            DetectionStatus.ORPHAN,
            DetectionStatus.UNREADABLE,
            DetectionStatus.AMBIGUOUS,
        ]

    def test_empty_inputs(self):
        assert match_detections([], []).updated_detections == []
        result = match_detections([make_package("C01K", "1234")], [])
        assert result.updated_packages[0].status == PackageStatus.PENDING
        assert match_detections([], [make_detection("C01K", "1234")]).updated_packages == []


class TestInvariants:
    def _batch(self):
        packages = [make_package("C01K", "1234"), make_package("C02G", "5678"), make_package("C03H", "0001")]
        detections = [
            make_detection("C01K", "1234"),
            make_detection("C02G", "5678"),
            make_detection("C01K", "1234"),
            make_detection("C99Z", "0000"),
            make_detection(None, "0001"),
        ]
        return packages, detections

    def test_inputs_are_not_mutated(self):
        packages, detections = self._batch()
        before_packages = [p.model_dump() for p in packages]
        before_detections = [d.model_dump() for d in detections]

        match_detections(packages, detections)

        assert [p.model_dump() for p in packages] == before_packages
        assert [d.model_dump() for d in detections] == before_detections

    def test_output_lengths_equal_input_lengths(self):
        packages, detections = self._batch()
        result = match_detections(packages, detections)

        assert len(result.updated_packages) == len(packages)
        assert len(result.updated_detections) == len(detections)

    def test_every_match_points_at_a_found_package_with_the_same_combo(self):
        packages, detections = self._batch()
        result = match_detections(packages, detections)

        by_id = {p.id: p for p in result.updated_packages}
        for det in result.updated_detections:
            if det.status == DetectionStatus.MATCHED:
                pkg = by_id[det.matched_package_id]
                assert pkg.status == PackageStatus.FOUND
                assert pkg.combo == det.combo

    def test_idempotent(self):
        packages, detections = self._batch()
        first = match_detections(packages, detections)
        second = match_detections(first.updated_packages, first.updated_detections)

        assert [p.model_dump() for p in second.updated_packages] == [
            p.model_dump() for p in first.updated_packages
        ]
        assert [d.model_dump() for d in second.updated_detections] == [
            d.model_dump() for d in first.updated_detections
        ]

    def test_notes_are_not_repeated_on_rerun(self):
        packages = [make_package("C01K", "1234"), make_package("C01K", "1234")]
        first = match_detections(packages, [make_detection("C01K", "1234")])
        second = match_detections(first.updated_packages, first.updated_detections)

        assert second.updated_detections[0].notes.count(AMBIGUOUS_NOTE) == 1


# ── Single-detection rematch and release ──


class TestRematchDetection:
    def test_corrected_orphan_now_matches(self):
        pkg = make_package("C01K", "1234")
        det = make_detection("C01K", "1234")
        orphan = make_detection("C02G", "9999")
        first = match_detections([pkg, make_package("C02G", "5678")], [det, orphan])

        corrected = first.updated_detections[1].model_copy(update={"parsed_last4": "5678"})
        outcome = rematch_detection(first.updated_packages, [first.updated_detections[0], corrected], corrected.id)

        assert outcome.updated_detection.status == DetectionStatus.MATCHED
        assert outcome.updated_packages[1].status == PackageStatus.FOUND
        assert outcome.updated_packages[0].status == PackageStatus.FOUND

    def test_correction_away_releases_held_package(self):
        pkg = make_package("C01K", "1234")
        first = match_detections([pkg], [make_detection("C01K", "1234")])

        corrected = first.updated_detections[0].model_copy(update={"parsed_apartment": "C02G"})
        outcome = rematch_detection(first.updated_packages, [corrected], corrected.id)

        assert outcome.updated_packages[0].status == PackageStatus.PENDING
        assert outcome.updated_detection.status == DetectionStatus.ORPHAN
        assert outcome.updated_detection.matched_package_id is None

    def test_released_package_is_taken_by_the_next_duplicate(self):
        pkg = make_package("C01K", "1234")
        first = match_detections([pkg], [make_detection("C01K", "1234"), make_detection("C01K", "1234")])

        corrected = first.updated_detections[0].model_copy(update={"parsed_last4": None})
        outcome = rematch_detection(
            first.updated_packages, [corrected, first.updated_detections[1]], corrected.id
        )

        assert outcome.updated_detection.status == DetectionStatus.UNREADABLE
        assert outcome.updated_packages[0].status == PackageStatus.PENDING

        settled = match_detections(outcome.updated_packages, [outcome.updated_detection, first.updated_detections[1]])

        assert [d.status for d in settled.updated_detections] == [DetectionStatus.UNREADABLE, DetectionStatus.MATCHED]
        assert settled.updated_detections[1].matched_package_id == pkg.id
        assert settled.updated_packages[0].status == PackageStatus.FOUND

    def test_verified_package_is_not_released(self):
        pkg = make_package("C01K", "1234")
        first = match_detections([pkg], [make_detection("C01K", "1234")])
        verified = [p.model_copy(update={"status": PackageStatus.VERIFIED}) for p in first.updated_packages]

        corrected = first.updated_detections[0].model_copy(update={"parsed_apartment": "C02G"})
        outcome = rematch_detection(verified, [corrected], corrected.id)

        assert outcome.updated_packages[0].status == PackageStatus.VERIFIED

    def test_other_matched_detection_claims_its_combo(self):
        packages = [make_package("C01K", "1234")]
        first = match_detections(packages, [make_detection("C01K", "1234"), make_detection(None, "1234")])

        corrected = first.updated_detections[1].model_copy(update={"parsed_apartment": "C01K"})
        outcome = rematch_detection(
            first.updated_packages, [first.updated_detections[0], corrected], corrected.id
        )

        assert outcome.updated_detection.status == DetectionStatus.DUPLICATE

    def test_unchanged_match_keeps_its_package(self):
        pkg = make_package("C01K", "1234")
        first = match_detections([pkg], [make_detection("C01K", "1234")])

        outcome = rematch_detection(first.updated_packages, first.updated_detections, first.updated_detections[0].id)

        assert outcome.updated_detection.status == DetectionStatus.MATCHED
        assert outcome.updated_detection.matched_package_id == pkg.id

    def test_unknown_detection(self):
        with pytest.raises(ValueError, match="not found"):
            rematch_detection([], [], "missing")


class TestReleasePackages:
    def test_only_found_packages_are_released(self):
        packages = [
            make_package("C01K", "1234", PackageStatus.FOUND),
            make_package("C02G", "5678", PackageStatus.VERIFIED),
            make_package("C03H", "9012", PackageStatus.FOUND),
        ]
        released = release_packages(packages, {packages[0].id, packages[1].id})

        assert [p.status for p in released] == [PackageStatus.PENDING, PackageStatus.VERIFIED, PackageStatus.FOUND]
        assert packages[0].status == PackageStatus.FOUND
