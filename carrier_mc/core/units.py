"""
Unit handling for carrier propagation.

All quantities are stored in one internal system:
    length      cm
    time        s
    potential   V
    temperature K
    B field     V s / cm^2   (1 T = 1e-4 V s / cm^2)

Mobilities then come out in cm^2/(V s), velocities in cm/s and fields in V/cm,
which is the system most semiconductor parameterizations are published in.

Usage:
    get(0.25, 'nm')        -> 2.5e-08
    parse('25ns')          -> 2.5e-08
    convert(1e-4, 'um')    -> 1.0
"""

import re
from typing import Union

# Base units expressed in internal units
UNITS = {
    # length
    'cm': 1.0,
    'm': 1e2,
    'mm': 1e-1,
    'um': 1e-4,
    'nm': 1e-7,
    # time
    's': 1.0,
    'ms': 1e-3,
    'us': 1e-6,
    'ns': 1e-9,
    'ps': 1e-12,
    # potential
    'V': 1.0,
    'kV': 1e3,
    'MV': 1e6,
    # temperature
    'K': 1.0,
    # magnetic field
    'T': 1e-4,
    'mT': 1e-7,
}

_QUANTITY = re.compile(r'^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*([A-Za-z/*^0-9\-]*)\s*$')


def _factor(unit: str) -> float:
    """Resolve a compound unit like 'kV/cm' or 'cm*cm/V/s'."""
    factor = 1.0
    # Split on / and * while keeping the operator that precedes each piece
    for op, name in re.findall(r'([*/]?)([^*/]+)', unit):
        name = name.strip()
        power = 1
        if '^' in name:
            name, exponent = name.split('^')
            power = int(exponent)
        if name not in UNITS:
            raise ValueError(f"Unknown unit '{name}'. Available: {list(UNITS.keys())}")
        value = UNITS[name] ** power
        factor = factor / value if op == '/' else factor * value
    return factor


def get(value: float, unit: str) -> float:
    """Convert a value given in `unit` into internal units."""
    if not unit:
        return float(value)
    return float(value) * _factor(unit)


def convert(value: float, unit: str) -> float:
    """Convert a value in internal units into `unit`."""
    return float(value) / _factor(unit)


def parse(quantity: Union[str, float, int]) -> float:
    """
    Parse a quantity such as '0.25nm', '100 kV/cm' or a bare number.

    Bare numbers are taken to be in internal units already.
    """
    if isinstance(quantity, (int, float)):
        return float(quantity)

    match = _QUANTITY.match(str(quantity))
    if match is None:
        raise ValueError(f"Cannot parse quantity '{quantity}'")
    number, unit = match.groups()
    return get(float(number), unit)


def display(value: float, unit: str) -> str:
    """Format an internal value in the given unit for log messages."""
    return f"{convert(value, unit):.4g} {unit}"
