"""
Singular value decomposition with pseudo-inverse back-substitution.

Backend-agnostic wrapper around the backend's thin SVD.
"""

from typing import Optional

# Largest ratio s[0] / s[i] for which s[i] is treated as non-zero
DEFAULT_CONDITION = 1e9


class SVDDecomposition:
    """
    SVD of a square matrix, M = U diag(s) Vt.

    Solves M x = b through the pseudo-inverse, so rank-deficient and
    near-singular systems give the minimum-norm solution instead of an
    error. Singular values below s[0] / condition are discarded.

    Parameters
    ----------
    backend : BackendBase, optional
        Computational backend (CPU if omitted)
    """

    def __init__(self, backend=None):
        if backend is None:
            from .._backends import get_backend
            backend = get_backend('cpu')
        self.backend = backend
        self.U = None
        self.s = None
        self.Vt = None

    @property
    def is_computed(self) -> bool:
        return self.s is not None

    @property
    def singular_values(self):
        """Singular values, largest first."""
        self._require_computed()
        return self.s

    def compute(self, matrix) -> 'SVDDecomposition':
        """Decompose matrix, replacing any previous decomposition."""
        self.U, self.s, self.Vt = self.backend.svd(matrix)
        return self

    def default_condition(self) -> float:
        """
        Condition cut-off for the working precision.

        1e9 in double precision; capped at 1 / (n eps) so that single
        precision does not invert rounding noise.
        """
        n = max(int(self.s.shape[0]), 1) if self.s is not None else 1
        return min(DEFAULT_CONDITION, 1.0 / (n * self.backend.eps))

    def _inverse_diagonal(self, condition: Optional[float]):
        self._require_computed()
        if condition is None:
            condition = self.default_condition()
        return self.backend.inverse_singular_values(self.s, condition)

    def backsub(self, rhs, condition: Optional[float] = None):
        """
        Solve M x = rhs via the pseudo-inverse.

        Parameters
        ----------
        rhs : array, shape (n,) or (n, k)
            Right-hand side, backend-native
        condition : float, optional
            Condition cut-off (see default_condition)

        Returns
        -------
        x : array, same shape as rhs
        """
        inv_s = self._inverse_diagonal(condition)
        projected = self.U.T @ rhs
        if projected.ndim == 1:
            projected = projected * inv_s
        else:
            projected = projected * inv_s.reshape(-1, 1)
        return self.Vt.T @ projected

    def pseudo_inverse(self, condition: Optional[float] = None):
        """Moore-Penrose pseudo-inverse, V diag(1/s) U^T."""
        inv_s = self._inverse_diagonal(condition)
        return self.Vt.T @ (inv_s.reshape(-1, 1) * self.U.T)

    def rank(self, condition: Optional[float] = None) -> int:
        """Number of singular values kept at this condition cut-off."""
        inv_s = self._inverse_diagonal(condition)
        return int((inv_s != 0).sum())

    def determinant(self) -> float:
        """Product of the singular values, i.e. |det M|."""
        self._require_computed()
        return float(self.s.prod())

    def condition_number(self) -> float:
        """s[0] / s[-1], inf when singular."""
        self._require_computed()
        smallest = float(self.s[-1])
        if smallest == 0.0:
            return float('inf')
        return float(self.s[0]) / smallest

    def copy(self) -> 'SVDDecomposition':
        other = SVDDecomposition(self.backend)
        if self.is_computed:
            other.U = self.backend.copy(self.U)
            other.s = self.backend.copy(self.s)
            other.Vt = self.backend.copy(self.Vt)
        return other

    def _require_computed(self):
        if not self.is_computed:
            raise RuntimeError(
                "SVD has not been computed.\n"
                "Call compute() first."
            )

    def __repr__(self):
        if not self.is_computed:
            return "SVDDecomposition(not computed)"
        return f"SVDDecomposition(n={self.s.shape[0]}, rank={self.rank()})"
