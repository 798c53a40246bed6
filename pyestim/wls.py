"""
Weighted least squares in information form.

Accumulates the normal equations of a linear (or Gauss-Newton linearized)
Gaussian estimation problem, then solves them through an SVD
pseudo-inverse.
"""

from functools import lru_cache
from typing import Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from ._backends import BackendBase, get_backend
from ._core.svd import SVDDecomposition
from ._utils import check_matrix, check_square, check_vector


class WeightedLeastSquares:
    """
    Weighted least squares accumulator (information form).

    Holds the information matrix C (inverse covariance) and the information
    vector v. Measurements and priors are added to both; compute() then
    solves C x = v with the pseudo-inverse of C. Accumulation never
    triggers a solve: call compute() once everything has been added, and
    again after any further accumulation.

    Two systems of the same size can be merged with combine() (or +=,
    or +). Merging is associative and commutative, so large measurement
    sets can be accumulated in partitions and reduced afterwards.

    Examples
    --------
    >>> from pyestim import WeightedLeastSquares
    >>>
    >>> wls = WeightedLeastSquares(2)
    >>> wls.add_measurement(3.0, [1.0, 0.0])
    >>> wls.add_measurement(4.0, [0.0, 1.0], weight=2.0)
    >>> wls.compute()
    >>> wls.solution            # array([3., 4.])
    >>>
    >>> # Size fixed by the class instead of the instance
    >>> WLS3 = WeightedLeastSquares.of_size(3)
    >>> wls = WLS3(prior=1e-6)
    """

    # Fixed dimension for classes made by of_size(); None means runtime-sized
    SIZE: Optional[int] = None

    def __init__(
        self,
        size: Optional[int] = None,
        prior: float = 0.0,
        backend: Union[str, BackendBase] = 'cpu',
        use_fp64: Optional[bool] = None,
        parameter_names: Optional[List[str]] = None,
    ):
        """
        Create an empty system.

        Parameters
        ----------
        size : int, optional
            Number of parameters. Required unless the class was made by
            of_size(), in which case it must be omitted or match.
        prior : float
            Initial regularisation, see clear()
        backend : str or BackendBase
            Storage and compute backend: 'cpu', 'auto', 'gpu', 'pytorch'
        use_fp64 : bool, optional
            Precision preference, passed to get_backend()
        parameter_names : list of str, optional
            Labels for the estimate (default p0, p1, ...)
        """
        fixed = type(self).SIZE
        if size is None:
            size = fixed
        if size is None:
            raise ValueError(
                "Must provide size for a runtime-sized system, "
                "or use WeightedLeastSquares.of_size(n)"
            )
        if fixed is not None and size != fixed:
            raise ValueError(f"{type(self).__name__} has fixed size {fixed}, got {size}")
        if size < 1:
            raise ValueError(f"size must be positive, got {size}")

        if parameter_names is None:
            parameter_names = [f'p{i}' for i in range(size)]
        elif len(parameter_names) != size:
            raise ValueError(
                f"Expected {size} parameter names, got {len(parameter_names)}"
            )

        self._size = int(size)
        self._backend = get_backend(backend, use_fp64=use_fp64)
        self.parameter_names = list(parameter_names)

        self.clear(prior)

    @classmethod
    def of_size(cls, size: int) -> type:
        """
        Subclass with the dimension fixed at class level.

        Repeated calls with the same size return the same class.
        """
        return _sized_class(cls, int(size))

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def clear(self, prior: float = 0.0):
        """
        Clear all measurements and apply a constant regularisation term.

        Equates to a prior that says all the parameters are zero with
        variance 1 / prior.
        """
        backend = self._backend
        self._C_inv = backend.eye(self._size) * backend.asarray(prior)
        self._vector = backend.zeros(self._size)
        self._mu = backend.zeros(self._size)
        self._svd = SVDDecomposition(backend)

    def add_prior(self, prior):
        """
        Add a regularisation term to the information matrix.

        Parameters
        ----------
        prior : float, vector or matrix
            - scalar: C += prior * I, every parameter is zero with
              variance 1 / prior
            - vector, shape (size,): C[i, i] += prior[i], a separate
              strength per parameter
            - matrix, shape (size, size): C += prior, a full inverse
              covariance
        """
        prior = self._backend.asarray(prior)
        if prior.ndim == 0:
            self._backend.add_to_diagonal(self._C_inv, prior)
        elif prior.ndim == 1:
            check_vector(prior, 'prior', size=self._size)
            self._backend.add_to_diagonal(self._C_inv, prior)
        else:
            check_square(prior, 'prior', size=self._size)
            self._C_inv += prior

    def add_measurement(self, m: float, J, weight: float = 1.0):
        """
        Add a single scalar measurement.

        Parameters
        ----------
        m : float
            The value of the measurement
        J : array, shape (size,)
            The Jacobian dm / dparam_i
        weight : float
            The inverse variance of the measurement
        """
        J = check_vector(self._backend.asarray(J), 'J', size=self._size)
        self._C_inv += self._backend.outer(J, J) * weight
        self._vector += J * (weight * m)

    def add_measurements(self, m, J, invcov):
        """
        Add N correlated measurements at once.

        Equivalent to N calls of add_measurement() when invcov is
        diagonal, but also takes a full inverse covariance and does the
        work in two matrix products.

        Parameters
        ----------
        m : array, shape (N,)
            The measurements
        J : array, shape (size, N)
            The Jacobian dm_j / dparam_i, one column per measurement
        invcov : array, shape (N, N)
            Inverse covariance of the measurements
        """
        backend = self._backend
        m = check_vector(backend.asarray(m), 'm')
        n = m.shape[0]
        J = check_matrix(backend.asarray(J), 'J', shape=(self._size, n))
        invcov = check_square(backend.asarray(invcov), 'invcov', size=n)

        J_invcov = J @ invcov
        update = J_invcov @ J.T
        self._C_inv += 0.5 * (update + update.T)
        self._vector += J_invcov @ m

    def combine(self, other: 'WeightedLeastSquares') -> 'WeightedLeastSquares':
        """
        Merge the measurements of another system into this one.

        The other system may live on a different backend; its state is
        converted to this system's precision and device.
        """
        if not isinstance(other, WeightedLeastSquares):
            raise TypeError(
                f"Can only combine with WeightedLeastSquares, got {type(other).__name__}"
            )
        if other.size != self._size:
            raise ValueError(
                f"Cannot combine systems of size {self._size} and {other.size}"
            )
        self._C_inv += self._backend.asarray(other._C_inv)
        self._vector += self._backend.asarray(other._vector)
        return self

    def __iadd__(self, other):
        return self.combine(other)

    def __add__(self, other):
        if not isinstance(other, WeightedLeastSquares):
            return NotImplemented
        return self.copy().combine(other)

    def __radd__(self, other):
        # Lets sum() start from its default 0
        if isinstance(other, int) and other == 0:
            return self.copy()
        return NotImplemented

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def compute(self, condition: Optional[float] = None):
        """
        Solve for the estimate.

        Decomposes the information matrix and sets
        solution = pinv(C) v. Singular directions (weak priors,
        rank-deficient measurements) get the minimum-norm answer.

        Parameters
        ----------
        condition : float, optional
            Condition cut-off for the pseudo-inverse, see
            SVDDecomposition.default_condition()

        Returns
        -------
        solution : array, shape (size,)
        """
        self._svd.compute(self._C_inv)
        self._mu = self._svd.backsub(self._vector, condition=condition)
        return self._mu

    def covariance(self, condition: Optional[float] = None):
        """
        Covariance of the estimate, pinv(C), from the last compute().
        """
        return self._svd.pseudo_inverse(condition)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return self._size

    @property
    def backend(self) -> BackendBase:
        return self._backend

    @property
    def information_matrix(self):
        """The inverse covariance matrix C (live, mutable)."""
        return self._C_inv

    @information_matrix.setter
    def information_matrix(self, M):
        M = check_square(self._backend.asarray(M), 'information_matrix', size=self._size)
        self._C_inv = self._backend.copy(M)

    @property
    def information_vector(self):
        """The information vector v (live, mutable)."""
        return self._vector

    @information_vector.setter
    def information_vector(self, v):
        v = check_vector(self._backend.asarray(v), 'information_vector', size=self._size)
        self._vector = self._backend.copy(v)

    @property
    def solution(self):
        """The estimate from the last compute(); zeros before the first."""
        return self._mu

    @solution.setter
    def solution(self, mu):
        mu = check_vector(self._backend.asarray(mu), 'solution', size=self._size)
        self._mu = self._backend.copy(mu)

    @property
    def decomposition(self) -> SVDDecomposition:
        """The SVD of the information matrix from the last compute()."""
        return self._svd

    @decomposition.setter
    def decomposition(self, svd: SVDDecomposition):
        if not isinstance(svd, SVDDecomposition):
            raise TypeError(f"Expected SVDDecomposition, got {type(svd).__name__}")
        self._svd = svd

    @property
    def estimate(self) -> pd.Series:
        """Named solution (pandas Series)."""
        return pd.Series(
            self._backend.to_numpy(self._mu),
            index=self.parameter_names,
            name='estimate',
        )

    def copy(self) -> 'WeightedLeastSquares':
        """Independent copy of the system, decomposition included."""
        other = type(self)(
            self._size,
            backend=self._backend,
            parameter_names=self.parameter_names,
        )
        other._C_inv = self._backend.copy(self._C_inv)
        other._vector = self._backend.copy(self._vector)
        other._mu = self._backend.copy(self._mu)
        other._svd = self._svd.copy()
        return other

    def summary(self):
        """
        Print the estimate with standard errors from pinv(C).

        Standard errors are meaningful when measurement weights are
        inverse variances. Call after compute().
        """
        svd = self._svd
        to_numpy = self._backend.to_numpy

        print()
        print("=" * 60)
        print("WEIGHTED LEAST SQUARES")
        print("=" * 60)
        print()
        print(f"Parameters: {self._size}")
        print(f"Backend:    {self._backend.name}")

        if not svd.is_computed:
            print()
            print("Not computed - call compute() first")
            print("=" * 60)
            print()
            return

        mu = to_numpy(self._mu)
        std_errors = np.sqrt(np.clip(np.diag(to_numpy(svd.pseudo_inverse())), 0, None))

        print(f"Rank:       {svd.rank()}")
        print(f"Condition:  {svd.condition_number():.4e}")
        print()
        print("-" * 60)
        print(f"{'Parameter':<20} {'Estimate':>16} {'Std. Error':>16}")
        print("-" * 60)
        for name, value, se in zip(self.parameter_names, mu, std_errors):
            print(f"{name:<20} {value:>16.6g} {se:>16.6g}")
        print("-" * 60)
        print()

    def __repr__(self):
        return (
            f"{type(self).__name__}(size={self._size}, "
            f"backend={self._backend.name})"
        )


WLS = WeightedLeastSquares


@lru_cache(maxsize=None)
def _sized_class(cls: type, size: int) -> type:
    if size < 1:
        raise ValueError(f"size must be positive, got {size}")
    return type(
        f"{cls.__name__}{size}",
        (cls,),
        {
            'SIZE': size,
            '__module__': cls.__module__,
            '__doc__': f"{cls.__name__} with the size fixed at {size}.",
        },
    )


def combine_systems(systems: Iterable[WeightedLeastSquares]) -> WeightedLeastSquares:
    """
    Reduce independently accumulated systems into a new one.

    The inputs are left untouched; the result takes the first system's
    class, backend and parameter names.

    Examples
    --------
    >>> parts = [accumulate(chunk) for chunk in chunks]   # e.g. in workers
    >>> total = combine_systems(parts)
    >>> total.compute()
    """
    systems = iter(systems)
    try:
        total = next(systems).copy()
    except StopIteration:
        raise ValueError("Need at least one system to combine") from None

    for system in systems:
        total.combine(system)
    return total
