"""Timestamp extraction from free-text selections."""

from extractors.date_extractor import extract_timestamp, extract_timestamp_with_matcher, MATCHERS

__all__ = ["extract_timestamp", "extract_timestamp_with_matcher", "MATCHERS"]
