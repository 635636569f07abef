"""Vulnerability pattern library: data, not logic."""

from vulnscope.analysis.patterns.catalog import CATALOG
from vulnscope.analysis.patterns.library import (
    PatternDetection,
    PatternLibrary,
    PatternMatch,
    VulnerabilityPattern,
)

__all__ = [
    "CATALOG",
    "PatternDetection",
    "PatternLibrary",
    "PatternMatch",
    "VulnerabilityPattern",
]
