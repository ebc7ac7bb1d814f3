"""
Charge carrier mobility models for silicon.

Every model is evaluated as mobility(type, |E|, doping) in cm^2/(V s), with
|E| in V/cm and the effective doping in 1/cm^3. Temperature dependence is
folded into the parameters when the model is constructed.

Available models:
    jacoboni, canali     Jacoboni-Canali velocity saturation
    hamburg              Hamburg model (low-field parameter set)
    hamburg_highfield    Hamburg model (high-field parameter set)
    masetti              Masetti doping dependence (needs doping profile)
    arora                Arora doping/temperature dependence (needs doping profile)
    constant             fixed mobilities from configuration

References:
    - Jacoboni et al., Solid-State Electronics 20 (1977) 77-89
    - Scharf et al., NIM A 968 (2020) 163955 (Hamburg model)
    - Masetti et al., IEEE Trans. Electron Devices 30 (1983) 764-769
    - Arora et al., IEEE Trans. Electron Devices 29 (1982) 292-295
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numba
import numpy as np

from carrier_mc.core.carrier import CarrierType
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.exceptions import (
    InvalidModelError, InvalidValueError, ModelError, ModelUnsuitable
)

logger = logging.getLogger(__name__)


# ============================================================================
# Numba kernels
# ============================================================================

@numba.njit(fastmath=True, cache=True)
def saturation_mobility(efield_mag: float, v_m: float, e_c: float, beta: float) -> float:
    """
    Jacoboni-Canali mobility:
        μ = (v_m / E_c) / (1 + (E / E_c)^β)^(1/β)
    """
    return v_m / e_c / (1.0 + (efield_mag / e_c) ** beta) ** (1.0 / beta)


@numba.njit(fastmath=True, cache=True)
def hamburg_electron_mobility(efield_mag: float, mu0: float, v_sat: float) -> float:
    """1/μ = 1/μ0 + E/v_sat"""
    return 1.0 / (1.0 / mu0 + efield_mag / v_sat)


@numba.njit(fastmath=True, cache=True)
def hamburg_hole_mobility(efield_mag: float, mu0: float, a: float, b: float, e0: float) -> float:
    """1/μ = 1/μ0 + a (E - E0) + b (E - E0)^2 above E0, μ0 below."""
    if efield_mag < e0:
        return mu0
    delta = efield_mag - e0
    return 1.0 / (1.0 / mu0 + a * delta + b * delta * delta)


@numba.njit(fastmath=True, cache=True)
def masetti_mobility(doping: float, mu_min1: float, mu_min2: float, mu_max: float,
                     c_r: float, c_s: float, alpha: float, beta: float,
                     mu1: float, p_c: float) -> float:
    """
    Masetti low-field mobility:
        μ = μmin1 exp(-Pc/N) + (μmax - μmin2) / (1 + (N/Cr)^α) - μ1 / (1 + (Cs/N)^β)
    """
    n = abs(doping)
    if n < 1.0:
        # Undoped limit, all doping terms vanish
        return mu_max
    return (mu_min1 * np.exp(-p_c / n)
            + (mu_max - mu_min2) / (1.0 + (n / c_r) ** alpha)
            - mu1 / (1.0 + (c_s / n) ** beta))


@numba.njit(fastmath=True, cache=True)
def arora_mobility(doping: float, mu_min: float, mu_0: float, n_ref: float, alpha: float) -> float:
    """μ = μmin + μ0 / (1 + (N/Nref)^α)"""
    return mu_min + mu_0 / (1.0 + (abs(doping) / n_ref) ** alpha)


# ============================================================================
# Model variants
# ============================================================================

@dataclass(frozen=True)
class JacoboniCanali:
    """Velocity saturation model, parameters per carrier as (v_m, E_c, β)."""
    electron: Tuple[float, float, float]
    hole: Tuple[float, float, float]

    @classmethod
    def from_temperature(cls, temperature: float) -> 'JacoboniCanali':
        T = temperature
        return cls(
            electron=(1.53e9 * T ** -0.87, 1.01 * T ** 1.55, 2.57e-2 * T ** 0.66),
            hole=(1.62e8 * T ** -0.52, 1.24 * T ** 1.68, 0.46 * T ** 0.17),
        )

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float = 0.0) -> float:
        v_m, e_c, beta = self.electron if carrier_type is CarrierType.ELECTRON else self.hole
        return saturation_mobility(efield_mag, v_m, e_c, beta)


@dataclass(frozen=True)
class Hamburg:
    """Hamburg model: electrons (μ0, v_sat), holes (μ0, a, b, E0)."""
    electron: Tuple[float, float]
    hole: Tuple[float, float, float, float]

    @classmethod
    def from_temperature(cls, temperature: float, high_field: bool = False) -> 'Hamburg':
        t = temperature / 300.0
        if high_field:
            electron = (1430.0 * t ** -1.99, 1.05e7 * t ** -0.302)
            hole = (457.0 * t ** -2.80, 9.57e-8 * t ** -0.155, -8.91e-13, 2970.0 * t ** 5.63)
        else:
            electron = (1530.0 * t ** -2.42, 1.03e7 * t ** -0.226)
            hole = (464.0 * t ** -2.20, 9.57e-8 * t ** -0.101, -3.31e-13, 2970.0 * t ** 5.63)
        return cls(electron=electron, hole=hole)

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float = 0.0) -> float:
        if carrier_type is CarrierType.ELECTRON:
            return hamburg_electron_mobility(efield_mag, *self.electron)
        return hamburg_hole_mobility(efield_mag, *self.hole)


@dataclass(frozen=True)
class Masetti:
    """
    Masetti doping-dependent low-field mobility.

    Parameters per carrier: (μmin1, μmin2, μmax, Cr, Cs, α, β, μ1, Pc).
    μmax scales with (T/300)^-2.5 for electrons and ^-2.2 for holes.
    """
    electron: Tuple[float, ...]
    hole: Tuple[float, ...]

    @classmethod
    def from_temperature(cls, temperature: float) -> 'Masetti':
        t = temperature / 300.0
        return cls(
            electron=(52.2, 52.2, 1417.0 * t ** -2.5, 9.68e16, 3.43e20, 0.68, 2.0, 43.4, 0.0),
            hole=(44.9, 0.0, 470.5 * t ** -2.2, 2.23e17, 6.1e20, 0.719, 2.0, 29.0, 9.23e16),
        )

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float = 0.0) -> float:
        params = self.electron if carrier_type is CarrierType.ELECTRON else self.hole
        return masetti_mobility(doping, *params)


@dataclass(frozen=True)
class Arora:
    """Arora mobility, parameters per carrier as (μmin, μ0, Nref, α)."""
    electron: Tuple[float, float, float, float]
    hole: Tuple[float, float, float, float]

    @classmethod
    def from_temperature(cls, temperature: float) -> 'Arora':
        t = temperature / 300.0
        alpha = 0.88 * t ** -0.146
        return cls(
            electron=(88.0 * t ** -0.57, 7.4e8 * temperature ** -2.33, 1.26e17 * t ** 2.4, alpha),
            hole=(54.3 * t ** -0.57, 1.36e8 * temperature ** -2.23, 2.35e17 * t ** 2.4, alpha),
        )

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float = 0.0) -> float:
        params = self.electron if carrier_type is CarrierType.ELECTRON else self.hole
        return arora_mobility(doping, *params)


@dataclass(frozen=True)
class ConstantMobility:
    electron: float
    hole: float

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float = 0.0) -> float:
        return self.electron if carrier_type is CarrierType.ELECTRON else self.hole


def _require_doping(doping: bool):
    if not doping:
        raise ModelUnsuitable("No doping profile available")


def _make_constant(config: PropagationConfig, doping: bool):
    return ConstantMobility(config.require('mobility_electron'), config.require('mobility_hole'))


def _make_masetti(config: PropagationConfig, doping: bool):
    _require_doping(doping)
    return Masetti.from_temperature(config.temperature)


def _make_arora(config: PropagationConfig, doping: bool):
    _require_doping(doping)
    return Arora.from_temperature(config.temperature)


MODELS: Dict[str, Callable] = {
    'jacoboni': lambda config, doping: JacoboniCanali.from_temperature(config.temperature),
    'canali': lambda config, doping: JacoboniCanali.from_temperature(config.temperature),
    'hamburg': lambda config, doping: Hamburg.from_temperature(config.temperature),
    'hamburg_highfield': lambda config, doping: Hamburg.from_temperature(config.temperature, high_field=True),
    'masetti': _make_masetti,
    'arora': _make_arora,
    'constant': _make_constant,
}


class Mobility:
    """
    Mobility model selected by name.

    Usage:
        mobility = Mobility(config, doping=detector.has_doping_profile)
        mu = mobility(CarrierType.ELECTRON, 2e4, 0.0)   # cm^2/(V s)
    """

    def __init__(self, config: PropagationConfig, doping: bool = False):
        """
        Parameters:
            config: Propagation configuration ('mobility_model', 'temperature', ...)
            doping: Whether a doping profile is available
        """
        self.name = config.mobility_model
        try:
            if self.name not in MODELS:
                raise InvalidModelError(self.name, MODELS.keys())
            self.model = MODELS[self.name](config, doping)
        except ModelError as e:
            raise InvalidValueError('mobility_model', str(e)) from e
        logger.info("Selected mobility model \"%s\"", self.name)

    def __call__(self, carrier_type: CarrierType, efield_mag: float, doping: float = 0.0) -> float:
        return self.model(carrier_type, efield_mag, doping)

    def __repr__(self) -> str:
        return f"Mobility({self.name!r})"


# ============================================================================
# Example Usage
# ============================================================================

if __name__ == "__main__":
    config = PropagationConfig(temperature=293.15)

    print("\n" + "="*70)
    print("Mobility Models @ 293 K")
    print("="*70)

    fields_V_cm = [1e2, 1e3, 1e4, 1e5]
    for name in ('jacoboni', 'hamburg', 'hamburg_highfield'):
        config.mobility_model = name
        mobility = Mobility(config)
        print(f"\n{name}:")
        for E in fields_V_cm:
            mu_e = mobility(CarrierType.ELECTRON, E)
            mu_h = mobility(CarrierType.HOLE, E)
            print(f"  E = {E:8.0e} V/cm: mu_e = {mu_e:7.1f}, mu_h = {mu_h:7.1f} cm²/Vs")
