"""
Linear Algebra Primitives
=========================
Vectors, small dense matrices, bounds and parameter vectors shared by the
forward schemes and the optimisers.
"""
from flashanalysis.linalg.matrix import Matrix, SquareMatrix, outer_product
from flashanalysis.linalg.parameters import Parameter, ParameterVector
from flashanalysis.linalg.segment import Segment
from flashanalysis.linalg.vector import Vector

__all__ = ["Matrix", "SquareMatrix", "outer_product", "Parameter", "ParameterVector", "Segment", "Vector"]
