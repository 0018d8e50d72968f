from parcelcheck.manifest_parser.parser import ManifestParser, ParseResult, parse_manifest

__all__ = ["ManifestParser", "ParseResult", "parse_manifest"]
