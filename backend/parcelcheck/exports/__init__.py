from parcelcheck.exports.formatters import (
    EXPORT_FORMATS,
    export_packages_csv,
    export_remaining_text,
    export_session_json,
    remaining_packages,
    summarize,
)

__all__ = [
    "EXPORT_FORMATS",
    "export_packages_csv",
    "export_remaining_text",
    "export_session_json",
    "remaining_packages",
    "summarize",
]
