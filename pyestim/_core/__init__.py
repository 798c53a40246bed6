"""
Core algorithms (backend-agnostic).
"""

from .golden_section import golden_section_search, GoldenSectionResult
from .svd import SVDDecomposition, DEFAULT_CONDITION

__all__ = [
    "golden_section_search",
    "GoldenSectionResult",
    "SVDDecomposition",
    "DEFAULT_CONDITION",
]
