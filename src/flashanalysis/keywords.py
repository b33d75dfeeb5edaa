"""
Optimisable Quantities
======================
Names every physical quantity that a search can adjust, together with the
metadata needed to build a parameter vector for it.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Dict, Tuple


class Keyword(StrEnum):
    DIFFUSIVITY = "diffusivity"
    HEAT_LOSS = "heat_loss"
    HEAT_LOSS_SIDE = "heat_loss_side"
    MAXTEMP = "maximum_temperature"
    TIME_SHIFT = "time_shift"
    BASELINE_INTERCEPT = "baseline_intercept"
    BASELINE_SLOPE = "baseline_slope"
    OPTICAL_THICKNESS = "optical_thickness"
    PLANCK_NUMBER = "planck_number"
    EMISSIVITY = "emissivity"
    DIATHERMIC_COEFFICIENT = "diathermic_coefficient"


@dataclass(frozen=True)
class KeywordMetadata:
    label: str
    unit: str
    bounds: Tuple[float, float]
    transform: str = "stick"
    discrete: bool = False


# Problem statements narrow some of these bounds from the measured data
KEYWORD_METADATA: Dict[Keyword, KeywordMetadata] = {
    Keyword.DIFFUSIVITY: KeywordMetadata(label="Thermal diffusivity", unit="m²/s", bounds=(1e-10, 1e-3)),
    Keyword.HEAT_LOSS: KeywordMetadata(label="Biot number (faces)", unit="-", bounds=(0.0, 2.0)),
    Keyword.HEAT_LOSS_SIDE: KeywordMetadata(label="Biot number (side)", unit="-", bounds=(0.0, 2.0)),
    Keyword.MAXTEMP: KeywordMetadata(label="Maximum temperature rise", unit="K", bounds=(1e-6, 1e3)),
    Keyword.TIME_SHIFT: KeywordMetadata(label="Time shift", unit="s", bounds=(-1.0, 1.0), discrete=True),
    Keyword.BASELINE_INTERCEPT: KeywordMetadata(label="Baseline intercept", unit="K", bounds=(-100.0, 100.0)),
    Keyword.BASELINE_SLOPE: KeywordMetadata(label="Baseline slope", unit="K/s", bounds=(-1000.0, 1000.0)),
    Keyword.OPTICAL_THICKNESS: KeywordMetadata(
        label="Optical thickness", unit="-", bounds=(1e-4, 1e4), transform="log"
    ),
    Keyword.PLANCK_NUMBER: KeywordMetadata(label="Planck number", unit="-", bounds=(1e-5, 1e5), transform="log"),
    Keyword.EMISSIVITY: KeywordMetadata(label="Emissivity", unit="-", bounds=(0.01, 1.0)),
    Keyword.DIATHERMIC_COEFFICIENT: KeywordMetadata(label="Diathermic coefficient", unit="-", bounds=(0.0, 1.0)),
}
