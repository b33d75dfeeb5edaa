"""
Thermal Properties
==================
The physical description of a laser-flash sample. Every attribute is a
validating descriptor: assigning an out-of-range or non-numeric value raises
``ConfigurationError`` immediately instead of being clamped.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from flashanalysis.config import PARKERS_COEFFICIENT, STEFAN_BOLTZMANN
from flashanalysis.exceptions import ConfigurationError


class Bounded:
    """
    A numeric attribute constrained to an interval.

    Args:
        minimum: Lower limit.
        maximum: Upper limit.
        strict_minimum: If True the lower limit itself is rejected.
        optional: If True, None is accepted.
    """

    def __init__(
        self,
        minimum: float = -math.inf,
        maximum: float = math.inf,
        strict_minimum: bool = False,
        optional: bool = False,
    ) -> None:
        self.minimum = minimum
        self.maximum = maximum
        self.strict_minimum = strict_minimum
        self.optional = optional

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.private_name = "_" + name

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        return getattr(instance, self.private_name)

    def __set__(self, instance: Any, value: Any) -> None:
        if value is None and self.optional:
            setattr(instance, self.private_name, None)
            return
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"{self.name} must be a number, got {type(value).__name__}.")
        value = float(value)
        too_low = value <= self.minimum if self.strict_minimum else value < self.minimum
        if not math.isfinite(value) or too_low or value > self.maximum:
            bracket = "(" if self.strict_minimum else "["
            raise ConfigurationError(
                f"{self.name} = {value} is outside {bracket}{self.minimum}, {self.maximum}]."
            )
        setattr(instance, self.private_name, value)


class ThermalProperties:
    """
    Properties of the sample and the experimental conditions (SI units).

    The attributes after ``test_temperature`` are only used by the problem
    statements that need them (2-D, nonlinear, participating and diathermic).
    """

    thickness = Bounded(0.0, 1.0, strict_minimum=True)
    diffusivity = Bounded(0.0, 1.0, strict_minimum=True)
    maximum_temperature = Bounded(0.0, 1e4, strict_minimum=True)
    heat_loss = Bounded(0.0, 10.0)
    test_temperature = Bounded(0.0, 5000.0, strict_minimum=True)

    diameter = Bounded(0.0, 1.0, strict_minimum=True)
    fov_outer = Bounded(0.0, 1.0)
    fov_inner = Bounded(0.0, 1.0)
    heat_loss_side = Bounded(0.0, 10.0)

    optical_thickness = Bounded(0.0, 1e6, strict_minimum=True)
    planck_number = Bounded(0.0, 1e6, strict_minimum=True)
    emissivity = Bounded(0.0, 1.0)
    diathermic_coefficient = Bounded(0.0, 1.0)
    geometric_factor = Bounded(0.0, 1.0)

    density = Bounded(0.0, 1e5, strict_minimum=True, optional=True)
    specific_heat = Bounded(0.0, 1e5, strict_minimum=True, optional=True)

    def __init__(
        self,
        thickness: float = 1e-3,
        diffusivity: float = 1e-6,
        maximum_temperature: float = 1.0,
        heat_loss: float = 0.0,
        test_temperature: float = 298.15,
        diameter: float = 10e-3,
        fov_outer: float = 8.5e-3,
        fov_inner: float = 0.0,
        heat_loss_side: float = 0.0,
        optical_thickness: float = 1.0,
        planck_number: float = 1.0,
        emissivity: float = 0.85,
        diathermic_coefficient: float = 0.1,
        geometric_factor: float = 1.0,
        density: Optional[float] = None,
        specific_heat: Optional[float] = None,
    ) -> None:
        self.thickness = thickness
        self.diffusivity = diffusivity
        self.maximum_temperature = maximum_temperature
        self.heat_loss = heat_loss
        self.test_temperature = test_temperature
        self.diameter = diameter
        self.fov_outer = fov_outer
        self.fov_inner = fov_inner
        self.heat_loss_side = heat_loss_side
        self.optical_thickness = optical_thickness
        self.planck_number = planck_number
        self.emissivity = emissivity
        self.diathermic_coefficient = diathermic_coefficient
        self.geometric_factor = geometric_factor
        self.density = density
        self.specific_heat = specific_heat

    def characteristic_time(self) -> float:
        """The diffusion time scale l²/a (s)."""
        return self.thickness ** 2 / self.diffusivity

    def parker_diffusivity(self, half_rise_time: float) -> float:
        """Diffusivity estimate from the half-rise time (adiabatic Parker formula)."""
        return PARKERS_COEFFICIENT * self.thickness ** 2 / half_rise_time

    def thermal_mass(self) -> Optional[float]:
        if self.density is None or self.specific_heat is None:
            return None
        return self.density * self.specific_heat

    def thermal_conductivity(self) -> Optional[float]:
        mass = self.thermal_mass()
        return None if mass is None else self.diffusivity * mass

    def radiation_biot(self) -> Optional[float]:
        """Biot number of linearised radiative losses, 4εσT³l/λ."""
        conductivity = self.thermal_conductivity()
        if conductivity is None:
            return None
        return 4.0 * self.emissivity * STEFAN_BOLTZMANN * self.test_temperature ** 3 * self.thickness / conductivity

    def maximum_heating(self, laser_energy: Optional[float], spot_diameter: float) -> float:
        """
        Adiabatic temperature rise caused by the absorbed pulse energy.

        Args:
            laser_energy: Pulse energy (J), or None if unknown.
            spot_diameter: Laser spot diameter (m).

        Returns:
            4εQ / (π d² l ρc), or ``maximum_temperature`` if energy or thermal mass are unknown.
        """
        mass = self.thermal_mass()
        if laser_energy is None or mass is None:
            return self.maximum_temperature
        return 4.0 * self.emissivity * laser_energy / (math.pi * spot_diameter ** 2 * self.thickness * mass)

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in _FIELDS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ThermalProperties:
        return cls(**{k: v for k, v in data.items() if k in _FIELDS})

    def copy(self) -> ThermalProperties:
        return ThermalProperties.from_dict(self.to_dict())

    def __repr__(self) -> str:
        return (f"ThermalProperties(l={self.thickness:.4g} m, a={self.diffusivity:.4g} m²/s, "
                f"dT={self.maximum_temperature:.4g} K, Bi={self.heat_loss:.4g})")


_FIELDS = (
    "thickness", "diffusivity", "maximum_temperature", "heat_loss", "test_temperature",
    "diameter", "fov_outer", "fov_inner", "heat_loss_side",
    "optical_thickness", "planck_number", "emissivity", "diathermic_coefficient", "geometric_factor",
    "density", "specific_heat",
)
