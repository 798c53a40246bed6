"""
CPU backend using NumPy + SciPy.

This is the reference implementation; state lives in host NumPy arrays.
"""

import numpy as np
from scipy.linalg import svd

from .base import CPUBackendBase


_DTYPES = {
    'fp32': np.float32,
    'fp64': np.float64,
}


class CPUBackend(CPUBackendBase):
    """
    CPU backend using NumPy + SciPy (LAPACK gesdd).

    Parameters
    ----------
    precision : str
        'fp64' (default) or 'fp32'
    """

    def __init__(self, precision: str = 'fp64'):
        if precision not in _DTYPES:
            raise ValueError(
                f"Unknown precision: '{precision}'\n"
                f"Valid options: 'fp32', 'fp64'"
            )
        self.name = f"cpu_{precision}"
        self.precision = precision
        self.dtype = _DTYPES[precision]

    @property
    def eps(self) -> float:
        return float(np.finfo(self.dtype).eps)

    def asarray(self, x) -> np.ndarray:
        if hasattr(x, 'detach'):
            # torch tensor, possibly on a device
            x = x.detach().cpu().numpy()
        return np.asarray(x, dtype=self.dtype)

    def to_numpy(self, x) -> np.ndarray:
        return np.asarray(x)

    def zeros(self, *shape) -> np.ndarray:
        return np.zeros(shape, dtype=self.dtype)

    def eye(self, n: int) -> np.ndarray:
        return np.eye(n, dtype=self.dtype)

    def copy(self, x) -> np.ndarray:
        return x.copy()

    def outer(self, u, v) -> np.ndarray:
        return np.outer(u, v)

    def add_to_diagonal(self, M, values) -> None:
        idx = np.diag_indices(M.shape[0])
        M[idx] += values

    def svd(self, M):
        U, s, Vt = svd(M, full_matrices=False)
        return U, s, Vt

    def inverse_singular_values(self, s, condition: float) -> np.ndarray:
        inv = np.zeros_like(s)
        if s.shape[0] == 0:
            return inv
        keep = s * condition > s[0]
        np.divide(1.0, s, out=inv, where=keep)
        return inv

    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': self.precision,
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
