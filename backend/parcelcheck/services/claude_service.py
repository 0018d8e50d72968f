"""
Claude API service for reading package stickers in shelf photos.

The model acts as the vision oracle: it returns one JSON entry per visible
sticker. Entries are validated one by one at this boundary so that a single
malformed reading never takes the rest of the photo down with it.
"""

import json
import logging
from dataclasses import dataclass, field

import anthropic
from pydantic import ValidationError

from parcelcheck.config import Settings
from parcelcheck.schemas.detection import OracleDetection

logger = logging.getLogger("parcelcheck.claude")

DETECTION_SYSTEM_PROMPT = """You are a package room assistant. You read the handwritten or printed label stickers that staff attach to packages on shelves.

Respond with valid JSON only, no additional text."""

DETECTION_PROMPT = """You are analyzing a photo of packages on shelves. Each package has a white label sticker containing:
- Apartment code (one letter, two digits, one letter, e.g. C02G, N14K)
- Date (various formats)
- Last 4 characters of the tracking number plus staff initials (e.g. "3728 JN")

For each visible sticker, extract the information and its bounding box.

Return JSON in this exact format:

{
  "detections": [
    {
      "raw_text": "full text exactly as written on the sticker",
      "apartment": "apartment code or null if unreadable",
      "tracking_last4": "4 characters or null if unreadable",
      "date": "date or null",
      "initials": "staff initials or null",
      "confidence": 0.95,
      "bounding_box": [x_min, y_min, x_max, y_max],
      "notes": "issues such as 'partially obscured' or 'handwritten', or null"
    }
  ]
}

Bounding boxes use normalized coordinates from 0.0 to 1.0, with x_min < x_max
and y_min < y_max, drawn tightly around each individual sticker.

Detect each sticker separately and include partially visible ones. If text is
unclear, make a best guess and lower the confidence. Apartment codes are
always uppercase."""


@dataclass
class OracleResult:
    """Validated sticker readings for one photo plus the entries that were rejected."""

    detections: list[OracleDetection] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)


def _parse_json_response(response_text: str) -> dict | list:
    """Parse JSON from Claude response, handling markdown code blocks."""
    text = response_text.strip()
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()

    try:
        return json.loads(text)
    except (json.JSONDecodeError, IndexError) as e:
        logger.error("Failed to parse Claude response as JSON: %s", e)
        raise ValueError(f"Claude response was not valid JSON: {e}") from e


def _detection_entries(payload: dict | list) -> list:
    """The list of raw entries, whether wrapped in {"detections": [...]} or bare."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("detections"), list):
        return payload["detections"]
    raise ValueError("Claude response has no 'detections' list")


def validate_oracle_entries(entries: list) -> OracleResult:
    """Validate raw oracle entries; invalid ones are quarantined, not raised."""
    result = OracleResult()
    for index, entry in enumerate(entries):
        try:
            result.detections.append(OracleDetection.model_validate(entry))
        except ValidationError as e:
            reasons = "; ".join(err["msg"] for err in e.errors())
            logger.warning("Rejected oracle entry %d: %s", index, reasons)
            result.rejected.append(f"Entry {index}: {reasons}")
    return result


class StickerVisionService:
    def __init__(self, settings: Settings):
        self.client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = settings.claude_model
        self.max_tokens = settings.claude_max_tokens

    async def detect_stickers(self, image_b64: str, media_type: str = "image/png") -> OracleResult:
        """Ask Claude for every sticker in one photo.

        Raises ValueError when the response is not JSON or has no detections
        list; anthropic.APIError propagates unchanged.
        """
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=DETECTION_SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": media_type, "data": image_b64},
                        },
                        {"type": "text", "text": DETECTION_PROMPT},
                    ],
                }
            ],
        )

        entries = _detection_entries(_parse_json_response(message.content[0].text))
        result = validate_oracle_entries(entries)
        logger.info(
            "Oracle returned %d stickers (%d rejected)",
            len(result.detections),
            len(result.rejected),
        )
        return result
