"""
Problem Statements
==================
Physical models, heating curves and baselines.
"""
from flashanalysis.problem.baseline import Baseline, FlatBaseline, LinearBaseline
from flashanalysis.problem.curves import ExperimentalData, HeatingCurve
from flashanalysis.problem.properties import ThermalProperties
from flashanalysis.problem.statements import (
    PROBLEMS,
    ClassicalProblem,
    DiathermicProblem,
    NonlinearProblem,
    ParticipatingMediumProblem,
    Problem,
    TwoDimensionalProblem,
    create_problem,
)

__all__ = [
    "Baseline",
    "ClassicalProblem",
    "DiathermicProblem",
    "ExperimentalData",
    "FlatBaseline",
    "HeatingCurve",
    "LinearBaseline",
    "NonlinearProblem",
    "PROBLEMS",
    "ParticipatingMediumProblem",
    "Problem",
    "ThermalProperties",
    "TwoDimensionalProblem",
    "create_problem",
]
