"""
Manifest parser that turns pasted package-list text into Package records.

Handles the whitespace conventions seen in copy-pasted manifests:
- Tab-separated columns
- Columns separated by runs of 2+ spaces
- Single-space lines, segmented on the " - #<ref> - " reference anchor
- Several records run together on one line (single-space format only)

Expected record shape:
    C01K Unit    ESCARDO LLC    UPS - #2165790850 - 1ZA8272V1341859679 MARIA ESPEJO    3901    1/30/2026

Malformed lines never raise; each one becomes a ParsingError and the rest of
the manifest is still parsed.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from parcelcheck.schemas.package import NO_TRACKING_SENTINEL, Package, ParsingError

logger = logging.getLogger("parcelcheck.parser")

# Minimum columns: apartment, entity, carrier/tracking
MIN_FIELDS = 3

MIN_TRACKING_LENGTH = 4

UNKNOWN_RECIPIENT = "UNKNOWN RECIPIENT"

MULTI_SPACE = re.compile(r"\s{2,}")

# "<apartment entity carrier> - #<ref> - <tracking recipient ...>"
REFERENCE_ANCHOR = re.compile(r"^(?P<head>.+?)\s+-\s+#(?P<ref>\d+)\s+-\s+(?P<tail>.*)$")
ANCHOR_TOKEN = re.compile(r"\s-\s#\d+\s-\s")

# Start of the next record in a run-on line: "<apartment> Unit"
RECORD_START = re.compile(r"\s+(?=[A-Za-z][0-9]{2}[A-Za-z]\s+Unit\b)", re.IGNORECASE | re.ASCII)

NO_TRACKING = re.compile(
    r"^(?P<phrase>NO\s+TRACKING(?:\s+NUMBER)?|NO\s+TRK)(?=$|[\s-])[\s-]*(?P<recipient>.*)$",
    re.IGNORECASE,
)


class ManifestLineError(Exception):
    """A manifest line failed one of the parsing stages."""


@dataclass
class ParseResult:
    """Packages that parsed cleanly plus one diagnostic per rejected line."""

    packages: list[Package] = field(default_factory=list)
    errors: list[ParsingError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


def build_apartment_pattern(prefixes: str = "") -> re.Pattern:
    """Apartment code regex: one letter, exactly two digits, one letter.

    `prefixes` restricts the first letter (e.g. "CN"); empty allows any letter.
    """
    letters = "".join(sorted({c.upper() for c in prefixes if c.isascii() and c.isalpha()}))
    first = f"[{letters}]" if letters else "[A-Z]"
    return re.compile(rf"^({first}[0-9]{{2}}[A-Z])\b", re.IGNORECASE | re.ASCII)


def split_run_on_records(line: str) -> list[str]:
    """Split a single-space line holding several records into one string per record.

    Only lines with more than one reference anchor are split; a fragment
    without its own anchor stays attached to the record before it.
    """
    if "\t" in line or len(ANCHOR_TOKEN.findall(line)) < 2:
        return [line]

    records: list[str] = []
    for piece in RECORD_START.split(line):
        if records and not ANCHOR_TOKEN.search(piece):
            records[-1] = f"{records[-1]} {piece}"
        else:
            records.append(piece)
    return records


class ManifestParser:
    """Parses raw manifest text into validated packages and per-line errors."""

    def __init__(self, apartment_prefixes: str = ""):
        self.apartment_pattern = build_apartment_pattern(apartment_prefixes)

    def parse(self, raw_text: str) -> ParseResult:
        result = ParseResult()
        seen_combos: set[tuple[str, str]] = set()
        imported_at = datetime.now(timezone.utc)

        for index, line in enumerate(raw_text.split("\n")):
            line_number = index + 1
            trimmed = line.strip()
            if not trimmed:
                continue

            for record in split_run_on_records(trimmed):
                try:
                    package = self._parse_record(record, imported_at)
                    if package.combo in seen_combos:
                        raise ManifestLineError(
                            f"Duplicate entry ({package.apartment} + {package.tracking_last4} already exists)"
                        )
                    seen_combos.add(package.combo)
                    result.packages.append(package)
                except ManifestLineError as e:
                    result.errors.append(ParsingError(line_number=line_number, line=record, reason=str(e)))
                except Exception as e:
                    logger.warning("Unexpected error parsing manifest line %d: %s", line_number, e)
                    result.errors.append(
                        ParsingError(line_number=line_number, line=record, reason=f"Parsing error: {e}")
                    )

        logger.info(
            "Parsed manifest: %d packages, %d errors",
            len(result.packages),
            len(result.errors),
        )
        return result

    def _parse_record(self, record: str, imported_at: datetime) -> Package:
        fields = self._segment(record)
        apartment = self._extract_apartment(fields[0])
        carrier, full_tracking, recipient, no_tracking = self._decompose_carrier_field(fields[2])

        return Package(
            apartment=apartment,
            tracking_last4=NO_TRACKING_SENTINEL if no_tracking else full_tracking[-4:],
            no_tracking=no_tracking,
            carrier=carrier,
            recipient=recipient,
            full_tracking=full_tracking,
            imported_at=imported_at,
        )

    def _segment(self, record: str) -> list[str]:
        """Split a record into [apartment field, entity, carrier field, ...]."""
        if "\t" in record:
            fields = [f.strip() for f in record.split("\t")]
        else:
            fields = [f.strip() for f in MULTI_SPACE.split(record)]

        if len(fields) >= MIN_FIELDS:
            return fields

        # Single-space line: only segmentable around the reference anchor
        anchor = REFERENCE_ANCHOR.match(record)
        if anchor is None:
            raise ManifestLineError(f"Insufficient fields (expected at least {MIN_FIELDS})")

        head = anchor.group("head").split()
        carrier_field = f"{head[-1]} - #{anchor.group('ref')} - {anchor.group('tail').strip()}"
        return [" ".join(head[:-1]), " ".join(head[1:-1]), carrier_field]

    def _extract_apartment(self, value: str) -> str:
        match = self.apartment_pattern.match(value)
        if match is None:
            raise ManifestLineError(
                f"No valid apartment code found in '{value}' "
                "(expected one letter, two digits, one letter, e.g. C02G)"
            )
        return match.group(1).upper()

    def _decompose_carrier_field(self, value: str) -> tuple[str, str, str, bool]:
        """Split "CARRIER - #REF - TRACKING RECIPIENT" into (carrier, tracking, recipient, no_tracking)."""
        parts = value.split(" - ", 2)
        if len(parts) < 3 or not parts[0].strip():
            raise ManifestLineError(
                f"Invalid carrier/tracking format: '{value}' "
                "(expected CARRIER - #REF - TRACKING RECIPIENT)"
            )

        carrier = parts[0].strip().upper()
        # parts[1] is the internal reference number; it is not kept
        tail = parts[2].strip()

        no_tracking = NO_TRACKING.match(tail)
        if no_tracking is not None:
            recipient = " ".join(no_tracking.group("recipient").split()) or UNKNOWN_RECIPIENT
            return carrier, no_tracking.group("phrase"), recipient, True

        tokens = tail.split()
        if not tokens:
            raise ManifestLineError(
                f"Invalid carrier/tracking format: '{value}' (no tracking number after the reference)"
            )

        tracking = tokens[0]
        if len(tracking) < MIN_TRACKING_LENGTH:
            raise ManifestLineError(
                f"Tracking number too short: '{tracking}' (need at least {MIN_TRACKING_LENGTH} characters)"
            )

        recipient = " ".join(tokens[1:]) or UNKNOWN_RECIPIENT
        return carrier, tracking, recipient, False


def parse_manifest(raw_text: str, apartment_prefixes: str = "") -> ParseResult:
    """Parse manifest text; see ManifestParser."""
    return ManifestParser(apartment_prefixes).parse(raw_text)
