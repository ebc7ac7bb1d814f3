"""
Charge carrier data model.

Deposited charges come in from the deposition stage, propagated charges go
out to whatever consumes the event. Both are immutable records; positions are
stored as float64 numpy arrays [cm], times in [s].
"""

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

import numpy as np


class CarrierType(enum.IntEnum):
    """Carrier type; the value is the sign used in drift velocity formulas."""

    ELECTRON = -1
    HOLE = 1

    @classmethod
    def parse(cls, value: Union[str, int, 'CarrierType']) -> 'CarrierType':
        """Accept 'e', 'electron', 'h', 'hole', +/-1 or a CarrierType."""
        if isinstance(value, CarrierType):
            return value
        if isinstance(value, str):
            names = {
                'e': cls.ELECTRON,
                'electron': cls.ELECTRON,
                'electrons': cls.ELECTRON,
                'h': cls.HOLE,
                'hole': cls.HOLE,
                'holes': cls.HOLE,
            }
            key = value.strip().lower()
            if key not in names:
                raise ValueError(f"Unknown carrier type '{value}'")
            return names[key]
        return cls(int(value))

    @property
    def sign(self) -> int:
        return int(self)

    def __str__(self) -> str:
        return self.name.lower()


class CarrierState(enum.Enum):
    """Lifecycle state of a propagated charge carrier group."""

    MOTION = 'motion'
    HALTED = 'halted'
    RECOMBINED = 'recombined'
    TRAPPED = 'trapped'
    UNKNOWN = 'unknown'

    @property
    def is_terminal(self) -> bool:
        return self is not CarrierState.MOTION

    def __str__(self) -> str:
        return self.value


def _vector(value) -> np.ndarray:
    vec = np.array(value, dtype=np.float64).reshape(3)
    vec.setflags(write=False)
    return vec


@dataclass(frozen=True, eq=False)
class DepositedCharge:
    """
    Charge deposited in the sensor by the upstream deposition stage.

    Parameters:
        local_position: Position in sensor-local coordinates [cm]
        carrier_type: Electron or hole
        charge: Number of carriers in this deposit
        local_time: Time since the particle entered the sensor [s]
        global_time: Time since the start of the event [s]
        global_position: Position in global coordinates [cm], defaults to local
    """
    local_position: np.ndarray
    carrier_type: CarrierType
    charge: int
    local_time: float = 0.0
    global_time: float = 0.0
    global_position: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, 'local_position', _vector(self.local_position))
        object.__setattr__(self, 'carrier_type', CarrierType.parse(self.carrier_type))
        if self.global_position is None:
            object.__setattr__(self, 'global_position', self.local_position)
        else:
            object.__setattr__(self, 'global_position', _vector(self.global_position))
        if int(self.charge) < 0:
            raise ValueError(f"Deposited charge must not be negative, got {self.charge}")
        object.__setattr__(self, 'charge', int(self.charge))


@dataclass(frozen=True)
class ChargeGroup:
    """A bounded share of one deposit, propagated as a single trajectory."""
    size: int
    deposit: DepositedCharge


@dataclass(frozen=True, eq=False)
class PropagatedCharge:
    """
    Charge carrier group after propagation.

    The charge includes the multiplication gain of the group,
    charge = round(group size * gain).
    """
    local_position: np.ndarray
    global_position: np.ndarray
    carrier_type: CarrierType
    charge: int
    local_time: float
    global_time: float
    state: CarrierState
    deposit: Optional[DepositedCharge] = field(default=None, repr=False)
    gain: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, 'local_position', _vector(self.local_position))
        object.__setattr__(self, 'global_position', _vector(self.global_position))


@dataclass(frozen=True, eq=False)
class PropagationResult:
    """Outcome of propagating one charge group."""
    position: np.ndarray
    time: float
    gain: float
    state: CarrierState
    steps: int = 0
