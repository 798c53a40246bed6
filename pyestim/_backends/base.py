"""
Abstract base classes for backends.

A backend is the storage strategy for estimator state: it owns the native
array type (NumPy on the host, torch tensors on a device), the scalar
precision, and the handful of dense primitives the estimators consume.
"""

from abc import ABC, abstractmethod
from typing import Any, Tuple


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name: str
    precision: str           # 'fp32' or 'fp64'

    @property
    @abstractmethod
    def eps(self) -> float:
        """Machine epsilon of the working precision."""
        pass

    @abstractmethod
    def asarray(self, x) -> Any:
        """Convert numbers, arrays or tensors to the native type and precision."""
        pass

    @abstractmethod
    def to_numpy(self, x):
        """Convert a native array back to NumPy."""
        pass

    @abstractmethod
    def zeros(self, *shape) -> Any:
        pass

    @abstractmethod
    def eye(self, n: int) -> Any:
        pass

    @abstractmethod
    def copy(self, x) -> Any:
        pass

    @abstractmethod
    def outer(self, u, v) -> Any:
        pass

    @abstractmethod
    def add_to_diagonal(self, M, values) -> None:
        """In place: M[i, i] += values (scalar or vector)."""
        pass

    @abstractmethod
    def svd(self, M) -> Tuple[Any, Any, Any]:
        """
        Thin singular value decomposition.

        Returns
        -------
        (U, s, Vt)
            Singular values in descending order
        """
        pass

    @abstractmethod
    def inverse_singular_values(self, s, condition: float) -> Any:
        """
        1/s for singular values above s[0] / condition, zero otherwise.
        """
        pass

    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass

    def __repr__(self):
        return f"{type(self).__name__}(name='{self.name}')"


class CPUBackendBase(BackendBase):
    """CPU backend base class."""
    pass


class GPUBackendBase(BackendBase):
    """GPU backend base class."""
    pass
