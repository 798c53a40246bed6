"""
Test the weighted least squares accumulator.

Covers the information-form updates, the pseudo-inverse solve, merging
partitioned systems, and the fixed-size / runtime-sized interface.
"""

import pytest
import numpy as np
import pandas as pd

from pyestim import WeightedLeastSquares, WLS, combine_systems, SVDDecomposition


def two_measurement_system(**kwargs):
    wls = WeightedLeastSquares(2, **kwargs)
    wls.add_measurement(3.0, [1.0, 0.0])
    wls.add_measurement(4.0, [0.0, 1.0])
    return wls


class TestSolve:
    """Test solutions of simple systems."""

    def test_two_parameter_system(self):
        """Independent measurements of each parameter are recovered."""
        wls = two_measurement_system()
        wls.compute()

        np.testing.assert_allclose(wls.solution, [3.0, 4.0], rtol=1e-12)
        np.testing.assert_allclose(wls.information_matrix, np.eye(2))
        np.testing.assert_allclose(wls.information_vector, [3.0, 4.0])

    def test_compute_returns_solution(self):
        """compute() returns the same array it stores."""
        wls = two_measurement_system()
        mu = wls.compute()

        assert mu is wls.solution

    def test_matches_weighted_lstsq(self):
        """Scalar measurements reproduce weighted least squares."""
        np.random.seed(42)
        n, p = 60, 4
        X = np.random.randn(n, p)
        beta_true = np.array([1.0, -2.0, 0.5, 3.0])
        y = X @ beta_true + 0.1 * np.random.randn(n)
        w = np.random.uniform(0.5, 2.0, n)

        wls = WeightedLeastSquares(p)
        for xi, yi, wi in zip(X, y, w):
            wls.add_measurement(yi, xi, weight=wi)
        wls.compute()

        sw = np.sqrt(w)
        expected, *_ = np.linalg.lstsq(X * sw[:, None], y * sw, rcond=None)
        np.testing.assert_allclose(wls.solution, expected, rtol=1e-10)

    def test_prior_shrinks_towards_zero(self):
        """A scalar prior is ridge regularisation."""
        np.random.seed(0)
        X = np.random.randn(30, 3)
        y = np.random.randn(30)
        lam = 5.0

        wls = WeightedLeastSquares(3, prior=lam)
        wls.add_measurements(y, X.T, np.eye(30))
        wls.compute()

        expected = np.linalg.solve(X.T @ X + lam * np.eye(3), X.T @ y)
        np.testing.assert_allclose(wls.solution, expected, rtol=1e-10)

    def test_no_information_gives_zero(self):
        """Solving an empty system does not raise."""
        wls = WeightedLeastSquares(3)
        wls.compute()

        np.testing.assert_array_equal(wls.solution, np.zeros(3))
        assert wls.decomposition.rank() == 0

    def test_solution_before_compute_is_zero(self):
        """The solution is only filled by compute()."""
        wls = two_measurement_system()

        np.testing.assert_array_equal(wls.solution, np.zeros(2))
        assert not wls.decomposition.is_computed

    def test_recompute_after_accumulation(self):
        """compute() is explicit; new data needs a new compute()."""
        wls = two_measurement_system()
        wls.compute()
        first = wls.solution.copy()

        wls.add_measurement(5.0, [1.0, 0.0])
        np.testing.assert_array_equal(wls.solution, first)

        wls.compute()
        np.testing.assert_allclose(wls.solution, [4.0, 4.0], rtol=1e-12)


class TestRankDeficient:
    """Test the pseudo-inverse solution of singular systems."""

    def test_single_measurement_two_parameters(self):
        """One measurement of x + y gives the minimum-norm split."""
        wls = WeightedLeastSquares(2)
        wls.add_measurement(2.0, [1.0, 1.0])
        wls.compute()

        np.testing.assert_allclose(wls.solution, [1.0, 1.0], rtol=1e-12)
        assert wls.decomposition.rank() == 1

    def test_projection_property(self):
        """C x equals the projection of v onto the range of C."""
        np.random.seed(7)
        basis = np.random.randn(4, 2)

        wls = WeightedLeastSquares(4)
        for _ in range(6):
            J = basis @ np.random.randn(2)
            wls.add_measurement(np.random.randn(), J, weight=np.random.uniform(0.5, 2.0))
        wls.compute()

        C = wls.information_matrix
        v = wls.information_vector
        U, s, _ = np.linalg.svd(C)
        U_r = U[:, :2]
        projection = U_r @ (U_r.T @ v)

        np.testing.assert_allclose(C @ wls.solution, projection, atol=1e-10)
        pinv_v = U_r @ ((U_r.T @ v) / s[:2])
        np.testing.assert_allclose(wls.solution, pinv_v, atol=1e-10)
        assert wls.decomposition.rank() == 2

    def test_solution_orthogonal_to_null_space(self):
        """Minimum norm: no component along unconstrained directions."""
        wls = WeightedLeastSquares(3)
        wls.add_measurement(1.0, [1.0, 0.0, 0.0])
        wls.add_measurement(2.0, [0.0, 1.0, 0.0])
        wls.compute()

        np.testing.assert_allclose(wls.solution, [1.0, 2.0, 0.0], atol=1e-12)


class TestPriors:
    """Test regularisation terms."""

    def test_scalar_prior_is_linear(self):
        """add_prior(v) k times equals add_prior(k v)."""
        a = WeightedLeastSquares(3)
        b = WeightedLeastSquares(3)
        for _ in range(4):
            a.add_prior(0.25)
        b.add_prior(1.0)

        np.testing.assert_allclose(a.information_matrix, b.information_matrix)
        np.testing.assert_allclose(a.information_matrix, np.eye(3))

    def test_vector_prior(self):
        """A vector prior adds to the diagonal only."""
        wls = WeightedLeastSquares(3, prior=1.0)
        wls.add_prior(np.array([1.0, 2.0, 3.0]))

        np.testing.assert_allclose(wls.information_matrix, np.diag([2.0, 3.0, 4.0]))

    def test_matrix_prior(self):
        """A matrix prior is added whole."""
        M = np.array([[2.0, 0.5], [0.5, 1.0]])
        wls = WeightedLeastSquares(2)
        wls.add_prior(M)
        wls.add_prior(M)

        np.testing.assert_allclose(wls.information_matrix, 2 * M)

    def test_prior_wrong_shape(self):
        """Priors must match the system size."""
        wls = WeightedLeastSquares(2)
        with pytest.raises(ValueError, match="length 2"):
            wls.add_prior([1.0, 2.0, 3.0])
        with pytest.raises(ValueError, match="2 x 2"):
            wls.add_prior(np.eye(3))


class TestClear:
    """Test reset behaviour."""

    def test_clear_discards_state(self):
        """clear(prior) leaves prior * I and a zero vector."""
        wls = two_measurement_system()
        wls.add_prior(np.array([1.0, 5.0]))
        wls.compute()

        wls.clear(2.5)

        np.testing.assert_array_equal(wls.information_matrix, 2.5 * np.eye(2))
        np.testing.assert_array_equal(wls.information_vector, np.zeros(2))
        np.testing.assert_array_equal(wls.solution, np.zeros(2))
        assert not wls.decomposition.is_computed

    def test_constructor_prior(self):
        """The constructor prior is the clear() prior."""
        wls = WeightedLeastSquares(3, prior=0.1)

        np.testing.assert_array_equal(wls.information_matrix, 0.1 * np.eye(3))


class TestBatchedMeasurements:
    """Test add_measurements against the scalar form."""

    def test_diagonal_invcov_matches_sequential(self):
        """Diagonal inverse covariance equals N single updates."""
        np.random.seed(3)
        size, n = 3, 5
        m = np.random.randn(n)
        J = np.random.randn(size, n)
        w = np.random.uniform(0.5, 2.0, n)

        batched = WeightedLeastSquares(size)
        batched.add_measurements(m, J, np.diag(w))

        sequential = WeightedLeastSquares(size)
        for j in range(n):
            sequential.add_measurement(m[j], J[:, j], weight=w[j])

        np.testing.assert_allclose(batched.information_matrix,
                                   sequential.information_matrix, rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(batched.information_vector,
                                   sequential.information_vector, rtol=1e-12, atol=1e-12)

    def test_full_invcov(self):
        """Correlated measurements use J W J^T and J W m."""
        np.random.seed(4)
        size, n = 2, 3
        m = np.random.randn(n)
        J = np.random.randn(size, n)
        A = np.random.randn(n, n)
        W = A @ A.T + np.eye(n)

        wls = WeightedLeastSquares(size)
        wls.add_measurements(m, J, W)

        np.testing.assert_allclose(wls.information_matrix, J @ W @ J.T, rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(wls.information_vector, J @ W @ m, rtol=1e-12, atol=1e-12)

    def test_information_matrix_stays_symmetric(self):
        """Every update adds an exactly symmetric term."""
        np.random.seed(5)
        wls = WeightedLeastSquares(4, prior=1.0)
        for _ in range(25):
            A = np.random.randn(3, 3)
            wls.add_measurements(np.random.randn(3), np.random.randn(4, 3), A @ A.T)
            wls.add_measurement(np.random.randn(), np.random.randn(4),
                                weight=np.random.uniform(0.1, 3.0))
        wls.add_prior(np.random.uniform(size=4))

        C = wls.information_matrix
        np.testing.assert_array_equal(C, C.T)

    def test_jacobian_shape_checked(self):
        """J must be size x N."""
        wls = WeightedLeastSquares(2)
        with pytest.raises(ValueError, match="J must have shape"):
            wls.add_measurements(np.zeros(3), np.zeros((3, 2)), np.eye(3))

    def test_single_jacobian_shape_checked(self):
        """J must have one entry per parameter."""
        wls = WeightedLeastSquares(2)
        with pytest.raises(ValueError, match="J must have length 2"):
            wls.add_measurement(1.0, [1.0, 2.0, 3.0])


class TestCombine:
    """Test merging independently accumulated systems."""

    def test_split_equals_single(self):
        """Partitioned accumulation then combine equals one system."""
        a = WeightedLeastSquares(2)
        a.add_measurement(3.0, [1.0, 0.0])
        b = WeightedLeastSquares(2)
        b.add_measurement(4.0, [0.0, 1.0])

        a.combine(b)
        a.compute()

        single = two_measurement_system()
        single.compute()
        np.testing.assert_allclose(a.solution, single.solution, rtol=1e-12)

    def test_operators(self):
        """+= merges in place, + makes a new system."""
        a = WeightedLeastSquares(2)
        a.add_measurement(3.0, [1.0, 0.0])
        b = WeightedLeastSquares(2)
        b.add_measurement(4.0, [0.0, 1.0])

        c = a + b
        assert c is not a
        np.testing.assert_allclose(a.information_vector, [3.0, 0.0])
        np.testing.assert_allclose(c.information_vector, [3.0, 4.0])

        a += b
        np.testing.assert_allclose(a.information_matrix, c.information_matrix)

    def test_order_does_not_matter(self):
        """Merging is commutative and associative."""
        np.random.seed(11)
        parts = []
        for _ in range(4):
            part = WeightedLeastSquares(3)
            part.add_measurements(np.random.randn(5), np.random.randn(3, 5), np.eye(5))
            parts.append(part)

        forward = combine_systems(parts)
        backward = combine_systems(reversed(parts))
        nested = (parts[0] + parts[1]) + (parts[2] + parts[3])

        np.testing.assert_allclose(forward.information_matrix, backward.information_matrix)
        np.testing.assert_allclose(forward.information_matrix, nested.information_matrix)
        np.testing.assert_allclose(forward.information_vector, nested.information_vector)

    def test_builtin_sum(self):
        """sum() works from its default start value."""
        a = WeightedLeastSquares(2)
        a.add_measurement(3.0, [1.0, 0.0])
        b = WeightedLeastSquares(2)
        b.add_measurement(4.0, [0.0, 1.0])

        total = sum([a, b])
        total.compute()

        np.testing.assert_allclose(total.solution, [3.0, 4.0], rtol=1e-12)

    def test_combine_systems_leaves_inputs(self):
        """The reduction copies the first system."""
        a = WeightedLeastSquares(2)
        a.add_measurement(3.0, [1.0, 0.0])
        b = WeightedLeastSquares(2)
        b.add_measurement(4.0, [0.0, 1.0])

        combine_systems([a, b])

        np.testing.assert_allclose(a.information_vector, [3.0, 0.0])

    def test_combine_systems_empty(self):
        """An empty reduction has nothing to return."""
        with pytest.raises(ValueError, match="at least one"):
            combine_systems([])

    def test_size_mismatch(self):
        """Only systems of equal size merge."""
        with pytest.raises(ValueError, match="size 2 and 3"):
            WeightedLeastSquares(2).combine(WeightedLeastSquares(3))


class TestFixedSize:
    """Test class-level vs runtime dimension."""

    def test_of_size(self):
        """of_size() fixes the dimension on the class."""
        WLS2 = WeightedLeastSquares.of_size(2)
        wls = WLS2()

        assert wls.size == 2
        assert WLS2.SIZE == 2
        assert isinstance(wls, WeightedLeastSquares)
        assert WeightedLeastSquares.of_size(2) is WLS2

    def test_same_operations(self):
        """Fixed and runtime systems agree."""
        WLS2 = WeightedLeastSquares.of_size(2)
        fixed = WLS2(prior=1.0)
        runtime = WeightedLeastSquares(2, prior=1.0)
        for wls in (fixed, runtime):
            wls.add_measurement(3.0, [1.0, 0.0])
            wls.add_measurements(np.array([4.0]), np.array([[0.0], [1.0]]), np.eye(1))
            wls.compute()

        np.testing.assert_allclose(fixed.solution, runtime.solution)
        fixed += runtime
        assert fixed.size == 2

    def test_fixed_size_mismatch(self):
        """A fixed class rejects a different size."""
        WLS2 = WeightedLeastSquares.of_size(2)
        with pytest.raises(ValueError, match="fixed size 2"):
            WLS2(3)

    def test_runtime_needs_size(self):
        """A runtime-sized system needs its size."""
        with pytest.raises(ValueError, match="Must provide size"):
            WeightedLeastSquares()

    def test_alias(self):
        """WLS is the same class."""
        assert WLS is WeightedLeastSquares


class TestAccessors:
    """Test read/write state accessors."""

    def test_setters_copy(self):
        """Assigned state is copied, not aliased."""
        M = np.eye(2)
        wls = WeightedLeastSquares(2)
        wls.information_matrix = M
        wls.add_prior(1.0)

        np.testing.assert_array_equal(M, np.eye(2))
        np.testing.assert_array_equal(wls.information_matrix, 2 * np.eye(2))

    def test_external_manipulation(self):
        """Callers can edit the state and solve it."""
        wls = WeightedLeastSquares(2)
        wls.information_matrix = [[2.0, 0.0], [0.0, 4.0]]
        wls.information_vector = [2.0, 8.0]
        wls.compute()

        np.testing.assert_allclose(wls.solution, [1.0, 2.0])

    def test_getter_is_live(self):
        """The getter returns the stored array."""
        wls = WeightedLeastSquares(2)
        wls.information_matrix[0, 0] = 3.0

        assert wls.information_matrix[0, 0] == 3.0

    def test_setter_shape_checked(self):
        """Assigned state must match the size."""
        wls = WeightedLeastSquares(2)
        with pytest.raises(ValueError):
            wls.information_matrix = np.eye(3)
        with pytest.raises(ValueError):
            wls.information_vector = np.zeros(3)
        with pytest.raises(ValueError):
            wls.solution = np.zeros((2, 2))

    def test_decomposition(self):
        """The decomposition is the SVD of the information matrix."""
        wls = two_measurement_system()
        wls.add_prior(np.array([1.0, 3.0]))
        wls.compute()

        svd = wls.decomposition
        assert isinstance(svd, SVDDecomposition)
        np.testing.assert_allclose(svd.singular_values, [4.0, 2.0])
        np.testing.assert_allclose(svd.determinant(), 8.0)

        wls.decomposition = SVDDecomposition()
        assert not wls.decomposition.is_computed

    def test_covariance(self):
        """Covariance is the inverse of a full-rank information matrix."""
        wls = WeightedLeastSquares(2)
        wls.add_prior(np.array([[4.0, 1.0], [1.0, 2.0]]))
        wls.compute()

        np.testing.assert_allclose(wls.covariance(),
                                   np.linalg.inv(wls.information_matrix), rtol=1e-12)

    def test_copy_is_independent(self):
        """copy() shares no state."""
        wls = two_measurement_system()
        wls.compute()
        other = wls.copy()

        other.add_measurement(10.0, [1.0, 1.0])
        other.compute()

        np.testing.assert_allclose(wls.information_vector, [3.0, 4.0])
        np.testing.assert_allclose(wls.solution, [3.0, 4.0])
        assert not np.allclose(other.solution, wls.solution)


class TestPresentation:
    """Test labelled output."""

    def test_estimate_series(self):
        """estimate is a named pandas Series."""
        wls = two_measurement_system(parameter_names=['slope', 'offset'])
        wls.compute()

        est = wls.estimate
        assert isinstance(est, pd.Series)
        assert list(est.index) == ['slope', 'offset']
        assert est['offset'] == pytest.approx(4.0)

    def test_default_names(self):
        """Parameters default to p0, p1, ..."""
        wls = WeightedLeastSquares(3)

        assert list(wls.estimate.index) == ['p0', 'p1', 'p2']

    def test_names_length_checked(self):
        """One name per parameter."""
        with pytest.raises(ValueError, match="parameter names"):
            WeightedLeastSquares(2, parameter_names=['a'])

    def test_summary(self, capsys):
        """summary() prints the estimate table."""
        wls = two_measurement_system(parameter_names=['alpha', 'beta'])
        wls.compute()
        wls.summary()

        out = capsys.readouterr().out
        assert 'WEIGHTED LEAST SQUARES' in out
        assert 'alpha' in out
        assert 'Rank:       2' in out

    def test_summary_before_compute(self, capsys):
        """summary() says when nothing has been solved."""
        WeightedLeastSquares(2).summary()

        assert 'Not computed' in capsys.readouterr().out

    def test_repr(self):
        """repr shows size and backend."""
        assert repr(WeightedLeastSquares(2)) == "WeightedLeastSquares(size=2, backend=cpu_fp64)"


class TestSinglePrecision:
    """Test float32 state on the CPU backend."""

    def test_float32_state(self):
        """use_fp64=False keeps every array in float32."""
        wls = two_measurement_system(use_fp64=False)
        wls.add_prior(np.float64(1e-6))
        wls.compute()

        assert wls.information_matrix.dtype == np.float32
        assert wls.information_vector.dtype == np.float32
        assert wls.solution.dtype == np.float32
        np.testing.assert_allclose(wls.solution, [3.0, 4.0], rtol=1e-3)
