"""
Test physics models.

Validates:
1. Model factories - unknown names and unsuitable models fail at construction
2. Mobility - field and doping dependence
3. Recombination, trapping, detrapping - survival tests per step
4. Impact ionization - threshold and gain
5. Diffusion - Einstein relation
"""

import math

import numpy as np
import pytest

from carrier_mc.core import units
from carrier_mc.core.carrier import CarrierType
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.exceptions import InvalidValueError
from carrier_mc.physics.diffusion import Diffusion, thermal_voltage
from carrier_mc.physics.mobility import Mobility
from carrier_mc.physics.multiplication import ImpactIonization
from carrier_mc.physics.recombination import Recombination
from carrier_mc.physics.trapping import Detrapping, Trapping

ELECTRON = CarrierType.ELECTRON
HOLE = CarrierType.HOLE


# ============================================================================
# Factories
# ============================================================================

@pytest.mark.parametrize('factory, key', [
    (lambda c: Mobility(c), 'mobility_model'),
    (lambda c: Recombination(c), 'recombination_model'),
    (lambda c: Trapping(c), 'trapping_model'),
    (lambda c: Detrapping(c), 'detrapping_model'),
    (lambda c: ImpactIonization(c), 'multiplication_model'),
])
def test_unknown_model_name(factory, key):
    config = PropagationConfig(**{key: 'does_not_exist'})
    with pytest.raises(InvalidValueError) as excinfo:
        factory(config)
    assert excinfo.value.key == key
    assert 'does_not_exist' in str(excinfo.value)


@pytest.mark.parametrize('name', ['masetti', 'arora'])
def test_doping_mobility_requires_profile(name):
    config = PropagationConfig(mobility_model=name)
    with pytest.raises(InvalidValueError, match='doping'):
        Mobility(config, doping=False)
    assert Mobility(config, doping=True).name == name


@pytest.mark.parametrize('name', ['srh', 'auger', 'srh_auger', 'combined'])
def test_doping_recombination_requires_profile(name):
    config = PropagationConfig(recombination_model=name)
    with pytest.raises(InvalidValueError, match='doping'):
        Recombination(config, doping=False)
    Recombination(config, doping=True)


def test_constant_models_require_parameters():
    with pytest.raises(InvalidValueError, match='mobility_electron'):
        Mobility(PropagationConfig(mobility_model='constant'))
    with pytest.raises(InvalidValueError, match='lifetime_electron'):
        Recombination(PropagationConfig(recombination_model='constant'))
    with pytest.raises(InvalidValueError, match='fluence'):
        Trapping(PropagationConfig(trapping_model='ljubljana'))
    with pytest.raises(InvalidValueError, match='fluence'):
        Trapping(PropagationConfig(trapping_model='cmstracker', fluence=-1e14))


def test_constant_models_reject_non_positive_times():
    """Zero or negative times fail at construction, not mid-event."""
    with pytest.raises(InvalidValueError, match='lifetime_electron'):
        Recombination(PropagationConfig(recombination_model='constant',
                                        lifetime_electron=0.0, lifetime_hole=1e-9))
    with pytest.raises(InvalidValueError, match='lifetime_hole'):
        Recombination(PropagationConfig(recombination_model='constant',
                                        lifetime_electron=1e-9, lifetime_hole=-1e-9))
    with pytest.raises(InvalidValueError, match='trapping_time_hole'):
        Trapping(PropagationConfig(trapping_model='constant',
                                   trapping_time_electron=5e-9, trapping_time_hole=0.0))
    with pytest.raises(InvalidValueError, match='detrapping_time_electron'):
        Detrapping(PropagationConfig(detrapping_model='constant',
                                     detrapping_time_electron=-1e-9, detrapping_time_hole=1e-9))


# ============================================================================
# Mobility
# ============================================================================

@pytest.mark.parametrize('name', ['jacoboni', 'canali', 'hamburg', 'hamburg_highfield'])
def test_field_dependent_mobility(name):
    mobility = Mobility(PropagationConfig(mobility_model=name))
    low = mobility(ELECTRON, 1e2)
    high = mobility(ELECTRON, 1e5)
    assert low > high > 0
    # Electrons are faster than holes in silicon
    assert mobility(ELECTRON, 1e3) > mobility(HOLE, 1e3)


def test_jacoboni_saturation():
    """Drift velocity saturates at high field."""
    mobility = Mobility(PropagationConfig(temperature=300.0))
    v1 = mobility(ELECTRON, 1e5) * 1e5
    v2 = mobility(ELECTRON, 2e5) * 2e5
    assert v2 == pytest.approx(v1, rel=0.05)
    assert v2 == pytest.approx(1.53e9 * 300.0 ** -0.87, rel=0.05)


def test_doping_dependent_mobility():
    for name in ('masetti', 'arora'):
        mobility = Mobility(PropagationConfig(mobility_model=name, temperature=300.0), doping=True)
        assert mobility(ELECTRON, 0.0, 1e12) > mobility(ELECTRON, 0.0, 1e18) > 0
        assert mobility(HOLE, 0.0, 1e12) > mobility(HOLE, 0.0, 1e18) > 0


def test_constant_mobility():
    mobility = Mobility(PropagationConfig(mobility_model='constant',
                                          mobility_electron=1400.0, mobility_hole=450.0))
    assert mobility(ELECTRON, 1e6) == 1400.0
    assert mobility(HOLE, 0.0, 1e15) == 450.0


# ============================================================================
# Recombination, trapping, detrapping
# ============================================================================

def test_no_recombination():
    recombination = Recombination(PropagationConfig())
    assert not recombination(ELECTRON, 1e12, 0.0, 1.0)


def test_constant_lifetime_recombination():
    """Recombines iff the survival draw is below 1 - exp(-dt/tau)."""
    tau = units.get(1, 'ns')
    recombination = Recombination(PropagationConfig(recombination_model='constant',
                                                    lifetime_electron=tau, lifetime_hole=2 * tau))
    threshold = 1.0 - math.exp(-1.0)
    assert recombination(ELECTRON, 0.0, threshold - 1e-6, tau)
    assert not recombination(ELECTRON, 0.0, threshold + 1e-6, tau)

    threshold_hole = 1.0 - math.exp(-0.5)
    assert recombination(HOLE, 0.0, threshold_hole - 1e-6, tau)
    assert not recombination(HOLE, 0.0, threshold_hole + 1e-6, tau)


def test_auger_only_affects_minority_carriers():
    recombination = Recombination(PropagationConfig(recombination_model='auger'), doping=True)
    # n-type bulk: holes are minority carriers
    assert recombination(HOLE, 1e20, 0.5, 1e-3)
    assert not recombination(ELECTRON, 1e20, 0.0, 1e-3)
    # Intrinsic material has no Auger recombination
    assert not recombination(HOLE, 0.0, 0.0, 1e-3)


def test_srh_lifetime_decreases_with_doping():
    recombination = Recombination(PropagationConfig(recombination_model='srh', temperature=300.0), doping=True)
    srh = recombination.model
    assert srh.lifetime(ELECTRON, 0.0) == pytest.approx(1e-5)
    assert srh.lifetime(ELECTRON, 1e16) == pytest.approx(0.5e-5)
    assert srh.lifetime(HOLE, 0.0) == pytest.approx(4e-4)


def test_combined_recombination_is_faster():
    combined = Recombination(PropagationConfig(recombination_model='srh_auger', temperature=300.0), doping=True)
    srh_lifetime = combined.model.srh.lifetime(HOLE, 1e19)
    auger_lifetime = combined.model.auger.lifetime(HOLE, 1e19)
    expected = 1.0 - math.exp(-1e-9 * (1.0 / srh_lifetime + 1.0 / auger_lifetime))
    assert combined(HOLE, 1e19, expected * 0.99, 1e-9)
    assert not combined(HOLE, 1e19, expected * 1.01, 1e-9)


def test_constant_trapping():
    tau = units.get(2, 'ns')
    trapping = Trapping(PropagationConfig(trapping_model='constant',
                                          trapping_time_electron=tau, trapping_time_hole=tau))
    dt = units.get(1, 'ns')
    threshold = 1.0 - math.exp(-0.5)
    assert trapping(ELECTRON, threshold - 1e-6, dt, 1e4)
    assert not trapping(ELECTRON, threshold + 1e-6, dt, 1e4)


def test_fluence_trapping_times():
    fluence = 1e15
    trapping = Trapping(PropagationConfig(trapping_model='dortmund', fluence=fluence))
    assert trapping.model.electron_trapping_time == pytest.approx(1e-9 / (5.13e-16 * fluence))

    trapping = Trapping(PropagationConfig(trapping_model='cmstracker', fluence=fluence))
    assert trapping.model.hole_trapping_time == pytest.approx(1e-9 / (2.79e-16 * fluence + 0.093))

    # Trapping times grow with temperature in the Ljubljana parameterization
    cold = Trapping(PropagationConfig(trapping_model='ljubljana', fluence=fluence, temperature=253.0))
    warm = Trapping(PropagationConfig(trapping_model='ljubljana', fluence=fluence, temperature=293.0))
    assert warm.model.electron_trapping_time > cold.model.electron_trapping_time


def test_no_trapping_and_detrapping():
    assert not Trapping(PropagationConfig())(ELECTRON, 0.0, 1.0, 1e4)
    assert Detrapping(PropagationConfig())(ELECTRON, 0.999, 1e4) == math.inf


def test_constant_detrapping():
    tau = units.get(3, 'ns')
    detrapping = Detrapping(PropagationConfig(detrapping_model='constant',
                                              detrapping_time_electron=tau, detrapping_time_hole=tau))
    assert detrapping(ELECTRON, 0.0, 1e4) == 0.0
    assert detrapping(ELECTRON, 1.0 - math.exp(-1.0), 1e4) == pytest.approx(tau)


# ============================================================================
# Impact ionization
# ============================================================================

@pytest.mark.parametrize('name', ['massey', 'overstraeten', 'okuto'])
def test_multiplication_threshold(name):
    multiplication = ImpactIonization(PropagationConfig(multiplication_model=name))
    assert multiplication.enabled
    assert multiplication(ELECTRON, 5e4, 1e-4) == 1.0
    assert multiplication(ELECTRON, 1e5, 1e-4) == 1.0
    gain = multiplication(ELECTRON, 3e5, 1e-4)
    assert gain > 1.0
    # Gain compounds over the step length
    assert multiplication(ELECTRON, 3e5, 2e-4) == pytest.approx(gain ** 2)


def test_no_multiplication():
    multiplication = ImpactIonization(PropagationConfig())
    assert not multiplication.enabled
    assert multiplication(ELECTRON, 1e7, 1.0) == 1.0


def test_massey_electrons_multiply_more():
    multiplication = ImpactIonization(PropagationConfig(multiplication_model='massey'))
    assert multiplication(ELECTRON, 3e5, 1e-4) > multiplication(HOLE, 3e5, 1e-4)


# ============================================================================
# Diffusion
# ============================================================================

def test_diffusion_width():
    config = PropagationConfig(mobility_model='constant', mobility_electron=1400.0, mobility_hole=450.0)
    diffusion = Diffusion(Mobility(config), config.temperature)
    dt = units.get(1, 'ns')
    expected = math.sqrt(2.0 * thermal_voltage(config.temperature) * 1400.0 * dt)
    assert diffusion.sigma(ELECTRON, 1e4, 0.0, dt) == pytest.approx(expected)
    assert thermal_voltage(300.0) == pytest.approx(0.025852, rel=1e-4)


def test_diffusion_draws_from_event_generator():
    config = PropagationConfig()
    diffusion = Diffusion(Mobility(config), config.temperature)
    offset = diffusion(ELECTRON, 1e4, 0.0, 1e-10, np.random.default_rng(7))
    assert offset.shape == (3,)
    again = diffusion(ELECTRON, 1e4, 0.0, 1e-10, np.random.default_rng(7))
    assert np.array_equal(offset, again)
