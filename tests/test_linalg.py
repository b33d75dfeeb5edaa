import math

import numpy as np
import numpy.testing as npt
import pytest

from flashanalysis.exceptions import ConfigurationError, DimensionMismatchError, SingularMatrixError
from flashanalysis.keywords import Keyword
from flashanalysis.linalg.matrix import Matrix, SquareMatrix, outer_product
from flashanalysis.linalg.parameters import Parameter, ParameterVector
from flashanalysis.linalg.segment import Segment
from flashanalysis.linalg.transforms import (
    AbsTransform,
    LogTransform,
    PeriodicTransform,
    StickTransform,
    create_transform,
)
from flashanalysis.linalg.vector import Vector


def well_conditioned(n, seed=0):
    rng = np.random.default_rng(seed)
    return rng.uniform(-1.0, 1.0, size=(n, n)) + n * np.eye(n)


class TestVector:

    def test_arithmetic(self):
        a = Vector([1.0, 2.0, 3.0])
        b = Vector([0.5, -1.0, 2.0])
        npt.assert_allclose((a + b).to_numpy(), [1.5, 1.0, 5.0])
        npt.assert_allclose((a - b).to_numpy(), [0.5, 3.0, 1.0])
        npt.assert_allclose((a * 2.0).to_numpy(), [2.0, 4.0, 6.0])
        npt.assert_allclose((-a).to_numpy(), [-1.0, -2.0, -3.0])
        assert a.dot(b) == pytest.approx(0.5 - 2.0 + 6.0)
        assert a.length() == pytest.approx(math.sqrt(14.0))

    def test_zero_vector_from_dimension(self):
        v = Vector(4)
        assert v.dimension == 4
        assert v.length() == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            Vector([1.0, 2.0]) + Vector([1.0, 2.0, 3.0])

    def test_values_are_read_only(self):
        v = Vector([1.0, 2.0])
        with pytest.raises(ValueError):
            v.values[0] = 5.0

    def test_is_finite(self):
        assert Vector([1.0, 2.0]).is_finite()
        assert not Vector([1.0, math.nan]).is_finite()


class TestMatrix:

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 7])
    def test_inverse(self, n):
        a = SquareMatrix(well_conditioned(n, seed=n))
        npt.assert_allclose(a.multiply(a.inverse()).to_numpy(), np.eye(n), atol=1e-12)

    @pytest.mark.parametrize("n", [2, 3, 4])
    def test_closed_form_matches_lu(self, n):
        values = well_conditioned(n, seed=10 + n)
        npt.assert_allclose(SquareMatrix(values).inverse().to_numpy(), np.linalg.inv(values), rtol=1e-10)

    def test_general_inverse_agrees_with_closed_form_on_embedding(self):
        values = well_conditioned(4, seed=42)
        embedded = np.eye(5)
        embedded[:4, :4] = values
        general = SquareMatrix(embedded).inverse().to_numpy()
        closed = SquareMatrix(values).inverse().to_numpy()
        npt.assert_allclose(general[:4, :4], closed, atol=1e-10)
        npt.assert_allclose(general[4], [0.0, 0.0, 0.0, 0.0, 1.0], atol=1e-12)

    @pytest.mark.parametrize("n", [2, 3, 4, 5])
    def test_singular_matrix_raises(self, n):
        values = np.ones((n, n))
        with pytest.raises(SingularMatrixError):
            SquareMatrix(values).inverse()

    def test_determinant(self):
        values = well_conditioned(4, seed=3)
        assert SquareMatrix(values).determinant() == pytest.approx(np.linalg.det(values))
        values = well_conditioned(6, seed=3)
        assert SquareMatrix(values).determinant() == pytest.approx(np.linalg.det(values))

    @pytest.mark.parametrize("n", [3, 6])
    def test_solve(self, n):
        values = well_conditioned(n, seed=20 + n)
        rhs = Vector(np.arange(1.0, n + 1.0))
        x = SquareMatrix(values).solve(rhs)
        npt.assert_allclose(values @ x.to_numpy(), rhs.to_numpy(), atol=1e-12)

    def test_products_and_shapes(self):
        m = Matrix([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        assert m.transpose().shape == (3, 2)
        product = m.multiply(m.transpose())
        assert isinstance(product, SquareMatrix)
        npt.assert_allclose(product.to_numpy(), [[14.0, 32.0], [32.0, 77.0]])
        v = m.multiply(Vector([1.0, 0.0, -1.0]))
        assert isinstance(v, Vector)
        npt.assert_allclose(v.to_numpy(), [-2.0, -2.0])
        with pytest.raises(DimensionMismatchError):
            m.multiply(m)

    def test_outer_product_and_diagonal(self):
        a = Vector([1.0, 2.0])
        outer = outer_product(a, a)
        npt.assert_allclose(outer.to_numpy(), [[1.0, 2.0], [2.0, 4.0]])
        npt.assert_allclose(outer.diagonal_part().to_numpy(), [[1.0, 0.0], [0.0, 4.0]])
        assert SquareMatrix.diagonal(a) == SquareMatrix([[1.0, 0.0], [0.0, 2.0]])

    def test_non_square_rejected(self):
        with pytest.raises(DimensionMismatchError):
            SquareMatrix([[1.0, 2.0]])


class TestSegment:

    def test_out_of_order(self):
        with pytest.raises(ConfigurationError):
            Segment(1.0, 0.0)

    def test_bounding_and_contains(self):
        s = Segment.bounding(3.0, -1.0)
        assert s == Segment(-1.0, 3.0)
        assert s.contains(3.0)
        assert not s.contains(3.0001)
        assert s.mid_point() == 1.0
        assert s.length() == 4.0


class TestTransforms:

    def test_stick_clamps_both_ways(self):
        t = StickTransform(Segment(0.0, 1.0))
        assert t.transform(1.5) == 1.0
        assert t.transform(-0.5) == 0.0
        assert t.inverse(0.3) == 0.3

    def test_abs(self):
        assert AbsTransform().inverse(-2.0) == 2.0

    def test_log_round_trip(self):
        t = LogTransform()
        assert t.inverse(t.transform(3.5)) == pytest.approx(3.5)
        with pytest.raises(ConfigurationError):
            t.transform(0.0)

    def test_periodic_wraps(self):
        t = PeriodicTransform(Segment(0.0, 2.0 * math.pi))
        assert t.transform(2.5 * math.pi) == pytest.approx(0.5 * math.pi)
        assert t.transform(-0.5 * math.pi) == pytest.approx(1.5 * math.pi)

    def test_unknown_transform(self):
        with pytest.raises(ConfigurationError):
            create_transform("sigmoid")

    def test_stick_requires_bounds(self):
        with pytest.raises(ConfigurationError):
            StickTransform().transform(1.0)


class TestParameterVector:

    def make(self):
        parameters = [
            Parameter.default(Keyword.DIFFUSIVITY, Segment(1e-7, 1e-4)),
            Parameter.default(Keyword.OPTICAL_THICKNESS),
            Parameter.default(Keyword.TIME_SHIFT),
        ]
        return ParameterVector.from_physical(parameters, [1e-5, 10.0, 0.0])

    def test_transforms_applied(self):
        v = self.make()
        assert v.get(1) == pytest.approx(math.log(10.0))
        assert v.inverse_transform(1) == pytest.approx(10.0)
        assert v.physical_values()[Keyword.DIFFUSIVITY] == pytest.approx(1e-5)

    def test_metadata(self):
        v = self.make()
        assert v.keywords == [Keyword.DIFFUSIVITY, Keyword.OPTICAL_THICKNESS, Keyword.TIME_SHIFT]
        assert v.index_of(Keyword.TIME_SHIFT) == 2
        assert v.is_discrete(2)
        assert not v.is_discrete(0)
        bounds = v.transformed_bounds(1)
        assert bounds.minimum == pytest.approx(math.log(1e-4))
        assert bounds.maximum == pytest.approx(math.log(1e4))

    def test_arithmetic_keeps_metadata_through_with_values(self):
        v = self.make()
        shifted = v.with_values(v + Vector([0.0, 1.0, 0.0]))
        assert isinstance(shifted, ParameterVector)
        assert shifted.keywords == v.keywords
        assert shifted.inverse_transform(1) == pytest.approx(10.0 * math.e)
        # the original is untouched
        assert v.inverse_transform(1) == pytest.approx(10.0)

    def test_find_malformed(self):
        v = self.make()
        assert v.find_malformed() == []
        v.set(1, math.log(1e5))
        assert v.find_malformed() == [Keyword.OPTICAL_THICKNESS]
        v.set(1, math.nan)
        assert v.find_malformed() == [Keyword.OPTICAL_THICKNESS]

    def test_copy_is_independent(self):
        v = self.make()
        c = v.copy()
        c.set(0, 2e-5)
        assert v.get(0) == pytest.approx(1e-5)
        assert c != v
