"""
Charge carrier recombination models.

A carrier group survives a step of length dt unless the uniform draw falls
below the recombination probability 1 - exp(-dt / τ). Lifetimes in [s],
doping in [1/cm^3] (positive: n-type).

Available models:
    none                no recombination
    srh                 Shockley-Read-Hall, doping dependent lifetime
    auger               Auger recombination of minority carriers
    srh_auger/combined  SRH and Auger lifetimes combined for minority carriers
    constant            fixed lifetimes from configuration

References:
    - Fossum et al., Solid-State Electronics 25 (1982) 741-747
    - Fossum, Solid-State Electronics 19 (1976) 269-277
    - Klaassen, Solid-State Electronics 35 (1992) 125-129 (T scaling)
    - Dziewior and Schmid, Appl. Phys. Lett. 31 (1977) 346 (Auger coefficient)
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict

from carrier_mc.core.carrier import CarrierType
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.exceptions import (
    InvalidModelError, InvalidValueError, ModelError, ModelUnsuitable
)

logger = logging.getLogger(__name__)


def recombination_probability(timestep: float, lifetime: float) -> float:
    """Probability to recombine within one step."""
    return 1.0 - math.exp(-timestep / lifetime)


def minority_type(doping: float) -> CarrierType:
    """Minority carrier for the given effective doping (n-type if positive)."""
    return CarrierType.HOLE if doping > 0 else CarrierType.ELECTRON


@dataclass(frozen=True)
class NoRecombination:
    def __call__(self, carrier_type: CarrierType, doping: float, survival_prob: float,
                 timestep: float) -> bool:
        return False


@dataclass(frozen=True)
class ShockleyReadHall:
    """
    SRH lifetime τ = τ_ref / (1 + |N| / N_ref) * (300/T)^1.5.
    """
    temperature_scaling: float
    electron_lifetime_reference: float = 1e-5
    electron_doping_reference: float = 1e16
    hole_lifetime_reference: float = 4.0e-4
    hole_doping_reference: float = 7.1e15

    @classmethod
    def from_temperature(cls, temperature: float) -> 'ShockleyReadHall':
        return cls(temperature_scaling=(300.0 / temperature) ** 1.5)

    def lifetime(self, carrier_type: CarrierType, doping: float) -> float:
        if carrier_type is CarrierType.ELECTRON:
            tau, n_ref = self.electron_lifetime_reference, self.electron_doping_reference
        else:
            tau, n_ref = self.hole_lifetime_reference, self.hole_doping_reference
        return tau / (1.0 + abs(doping) / n_ref) * self.temperature_scaling

    def __call__(self, carrier_type: CarrierType, doping: float, survival_prob: float,
                 timestep: float) -> bool:
        return survival_prob < recombination_probability(timestep, self.lifetime(carrier_type, doping))


@dataclass(frozen=True)
class Auger:
    """Auger lifetime τ = 1 / (C N^2), C = 3.8e-31 cm^6/s; minority carriers only."""
    auger_coefficient: float = 3.8e-31

    def lifetime(self, carrier_type: CarrierType, doping: float) -> float:
        if doping == 0.0:
            return math.inf
        return 1.0 / (self.auger_coefficient * doping * doping)

    def __call__(self, carrier_type: CarrierType, doping: float, survival_prob: float,
                 timestep: float) -> bool:
        if carrier_type is not minority_type(doping):
            return False
        return survival_prob < recombination_probability(timestep, self.lifetime(carrier_type, doping))


@dataclass(frozen=True)
class ShockleyReadHallAuger:
    """
    SRH and Auger together.

    Majority carriers only see SRH; for minority carriers the lifetimes add
    harmonically, 1/τ = 1/τ_SRH + 1/τ_Auger.
    """
    srh: ShockleyReadHall
    auger: Auger

    def __call__(self, carrier_type: CarrierType, doping: float, survival_prob: float,
                 timestep: float) -> bool:
        if carrier_type is not minority_type(doping):
            return self.srh(carrier_type, doping, survival_prob, timestep)
        combined_lifetime = 1.0 / (1.0 / self.srh.lifetime(carrier_type, doping)
                                   + 1.0 / self.auger.lifetime(carrier_type, doping))
        return survival_prob < recombination_probability(timestep, combined_lifetime)


@dataclass(frozen=True)
class ConstantLifetime:
    electron_lifetime: float
    hole_lifetime: float

    def __call__(self, carrier_type: CarrierType, doping: float, survival_prob: float,
                 timestep: float) -> bool:
        lifetime = self.electron_lifetime if carrier_type is CarrierType.ELECTRON else self.hole_lifetime
        return survival_prob < recombination_probability(timestep, lifetime)


def _require_doping(doping: bool):
    if not doping:
        raise ModelUnsuitable("No doping profile available")


def _make_none(config: PropagationConfig, doping: bool):
    logger.info("No charge carrier recombination model chosen, finite lifetime not simulated")
    return NoRecombination()


def _make_srh(config: PropagationConfig, doping: bool):
    _require_doping(doping)
    return ShockleyReadHall.from_temperature(config.temperature)


def _make_auger(config: PropagationConfig, doping: bool):
    _require_doping(doping)
    return Auger()


def _make_combined(config: PropagationConfig, doping: bool):
    _require_doping(doping)
    return ShockleyReadHallAuger(ShockleyReadHall.from_temperature(config.temperature), Auger())


def _make_constant(config: PropagationConfig, doping: bool):
    lifetimes = []
    for key in ('lifetime_electron', 'lifetime_hole'):
        lifetime = config.require(key)
        if lifetime <= 0:
            raise InvalidValueError(key, 'must be positive')
        lifetimes.append(lifetime)
    return ConstantLifetime(*lifetimes)


MODELS: Dict[str, Callable] = {
    'none': _make_none,
    'srh': _make_srh,
    'auger': _make_auger,
    'srh_auger': _make_combined,
    'combined': _make_combined,
    'constant': _make_constant,
}


class Recombination:
    """
    Recombination model selected by name.

    Usage:
        recombination = Recombination(config, doping=detector.has_doping_profile)
        if recombination(carrier_type, doping, rng.uniform(), timestep):
            state = CarrierState.RECOMBINED
    """

    def __init__(self, config: PropagationConfig, doping: bool = False):
        self.name = config.recombination_model
        try:
            if self.name not in MODELS:
                raise InvalidModelError(self.name, MODELS.keys())
            self.model = MODELS[self.name](config, doping)
        except ModelError as e:
            raise InvalidValueError('recombination_model', str(e)) from e
        logger.info("Selected recombination model \"%s\"", self.name)

    def __call__(self, carrier_type: CarrierType, doping: float, survival_prob: float,
                 timestep: float) -> bool:
        return self.model(carrier_type, doping, survival_prob, timestep)

    def __repr__(self) -> str:
        return f"Recombination({self.name!r})"
