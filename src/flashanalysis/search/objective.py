"""
Objective Seam
==============
The only view an optimiser has of the problem it minimises.

Why is this file needed?
------------------------
1. Decoupling: Optimisers know parameter vectors and scalar costs; they never
   see grids, schemes or curves. Schemes in turn never see a cost. A
   ``SearchTask`` implements this interface by running the forward model, and
   tests implement it with closed-form functions.
2. Failure policy: ``trial_cost`` evaluates a *candidate* point. A candidate
   that makes the forward model unstable or breaks a parameter bound is given
   an infinite cost so that the step is rejected. Failures at the committed
   point (``cost``) propagate and end the run.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from flashanalysis.exceptions import IllegalParametersError, InstabilityError

if TYPE_CHECKING:
    import numpy as np
    import numpy.typing as npt

    from flashanalysis.linalg.parameters import ParameterVector

logger = logging.getLogger(__name__)


class Objective(ABC):

    @abstractmethod
    def search_vector(self) -> ParameterVector:
        """A copy of the currently assigned parameter vector."""
        pass

    @abstractmethod
    def assign(self, vector: ParameterVector) -> None:
        """Make ``vector`` the current point."""
        pass

    @abstractmethod
    def cost(self) -> float:
        """Evaluate the cost at the current point."""
        pass

    @abstractmethod
    def residuals(self) -> npt.NDArray[np.float64]:
        """Residual vector of the last evaluation (for least-squares methods)."""
        pass

    def trial_cost(self, vector: ParameterVector) -> float:
        """
        Assign a candidate point and evaluate it.

        Returns:
            The cost, or ``inf`` if the candidate is illegal or destabilises the model.
        """
        try:
            self.assign(vector)
            return self.cost()
        except (InstabilityError, IllegalParametersError) as e:
            logger.debug(f"Candidate rejected: {e.details()}")
            return math.inf
