"""
Propagation configuration.

Defaults follow the generic propagation settings used for silicon sensors.
Values may be given as numbers in internal units or as unit strings:

    spatial_precision: 0.25nm
    timestep_start: 0.01ns
    integration_time: 25ns
    mobility_model: jacoboni
    propagate_holes: true
"""

import math
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from carrier_mc.core import units
from carrier_mc.core.exceptions import ConfigurationError, InvalidValueError


@dataclass
class PropagationConfig:
    """
    Settings for the propagation engine.

    Times in [s], lengths in [cm], fields in [V/cm], temperature in [K].
    Model parameters are only read by the models that need them.
    """
    spatial_precision: float = units.get(0.25, 'nm')
    timestep_start: float = units.get(0.01, 'ns')
    timestep_min: float = units.get(0.001, 'ns')
    timestep_max: float = units.get(0.5, 'ns')
    integration_time: float = units.get(25, 'ns')
    charge_per_step: int = 10
    max_charge_groups: int = 1000
    temperature: float = 293.15

    mobility_model: str = 'jacoboni'
    recombination_model: str = 'none'
    trapping_model: str = 'none'
    detrapping_model: str = 'none'
    multiplication_model: str = 'none'
    multiplication_threshold: float = units.get(100, 'kV/cm')

    propagate_electrons: bool = True
    propagate_holes: bool = False
    ignore_magnetic_field: bool = False

    # Diagnostic trajectory recording
    output_linegraphs: bool = False
    output_plots_step: Optional[float] = None

    # Model parameters
    mobility_electron: Optional[float] = None
    mobility_hole: Optional[float] = None
    lifetime_electron: Optional[float] = None
    lifetime_hole: Optional[float] = None
    trapping_time_electron: Optional[float] = None
    trapping_time_hole: Optional[float] = None
    detrapping_time_electron: Optional[float] = None
    detrapping_time_hole: Optional[float] = None
    fluence: Optional[float] = None

    def __post_init__(self):
        self.validate()
        if self.output_plots_step is None:
            self.output_plots_step = self.timestep_max

    def validate(self):
        """Check consistency; raises ConfigurationError on the first problem."""
        if not self.propagate_electrons and not self.propagate_holes:
            raise InvalidValueError(
                'propagate_electrons',
                "No charge carriers selected for propagation, "
                "enable 'propagate_electrons' or 'propagate_holes'.")
        for key in ('spatial_precision', 'timestep_min', 'integration_time', 'temperature'):
            if getattr(self, key) <= 0:
                raise InvalidValueError(key, 'must be positive')
        if self.charge_per_step < 1:
            raise InvalidValueError('charge_per_step', 'must be at least one')
        if self.max_charge_groups < 0:
            raise InvalidValueError('max_charge_groups', 'must not be negative (0 = unlimited)')
        # Unit conversion leaves values such as 0.001 ns and 1 ps one ulp apart
        if self.timestep_min > self.timestep_max and not math.isclose(self.timestep_min, self.timestep_max):
            raise InvalidValueError('timestep_min', 'larger than timestep_max')
        self.timestep_min = min(self.timestep_min, self.timestep_max)
        if not (self.timestep_min <= self.timestep_start <= self.timestep_max
                or math.isclose(self.timestep_start, self.timestep_min)
                or math.isclose(self.timestep_start, self.timestep_max)):
            raise InvalidValueError('timestep_start', 'outside [timestep_min, timestep_max]')
        self.timestep_start = min(max(self.timestep_start, self.timestep_min), self.timestep_max)
        if self.output_plots_step is not None and self.output_plots_step <= 0:
            raise InvalidValueError('output_plots_step', 'must be positive')

    def require(self, key: str) -> float:
        """Return a model parameter that has no default."""
        value = getattr(self, key)
        if value is None:
            raise InvalidValueError(key, 'required by the selected model but not set')
        return value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PropagationConfig':
        """Build a configuration from a mapping, parsing unit strings."""
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        values = {}
        for key, raw in data.items():
            kind = known[key].type
            if raw is None:
                values[key] = None
            elif kind is bool or kind == 'bool':
                values[key] = _to_bool(key, raw)
            elif kind is str or kind == 'str':
                values[key] = str(raw).strip().lower()
            elif kind is int or kind == 'int':
                values[key] = _to_int(key, raw)
            else:
                try:
                    values[key] = units.parse(raw)
                except ValueError as e:
                    raise InvalidValueError(key, str(e)) from e
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_bool(key: str, raw) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ('true', 'yes', 'on', '1'):
        return True
    if isinstance(raw, str) and raw.strip().lower() in ('false', 'no', 'off', '0'):
        return False
    if isinstance(raw, int):
        return bool(raw)
    raise InvalidValueError(key, f"cannot interpret '{raw}' as boolean")


def _to_int(key: str, raw) -> int:
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise InvalidValueError(key, f"cannot interpret '{raw}' as integer") from e
    if value != int(value):
        raise InvalidValueError(key, f"expected an integer, got {raw}")
    return int(value)


def load_config(path: Union[str, Path]) -> PropagationConfig:
    """
    Load a propagation configuration from YAML.

    The file is either a flat mapping of options or has them below a
    top-level 'propagation' key.
    """
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Top-level YAML must be a mapping")
    if 'propagation' in data:
        data = data['propagation']
        if not isinstance(data, dict):
            raise ConfigurationError("'propagation' section must be a mapping")
    return PropagationConfig.from_dict(data)
