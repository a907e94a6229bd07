# coding=utf-8
"""Landmark-based audio fingerprinting and matching."""

__version__ = "20261019"

from singerprint.core.analyzer import Analyzer
from singerprint.core.fingerprint import Fingerprint
from singerprint.core.fingerprint_store import DatabaseType
from singerprint.core.matcher import FingerprintMatcher

__all__ = [
    "Analyzer",
    "Fingerprint",
    "FingerprintMatcher",
    "DatabaseType",
    "__version__",
]
