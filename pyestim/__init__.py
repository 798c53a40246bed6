"""
PyEstim: numerical primitives for estimation and optimization pipelines.

Golden section line minimization and weighted least squares in
information form, on NumPy or PyTorch.

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Import main user-facing API
from .wls import WeightedLeastSquares, WLS, combine_systems
from ._core import golden_section_search, GoldenSectionResult, SVDDecomposition

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'golden_section_search',
    'GoldenSectionResult',
    'WeightedLeastSquares',
    'WLS',
    'combine_systems',
    'SVDDecomposition',
    'get_backend',
    'list_available_backends',
]
