"""
Test transport building blocks.

Validates:
1. Drift velocity - with and without magnetic field
2. Runge-Kutta stepping - accuracy and error estimate
3. Charge groups - conservation and group cap
4. Sensor interception and statistics bookkeeping
"""

import pickle

import numpy as np
import pytest

from carrier_mc.core.carrier import CarrierState, CarrierType, DepositedCharge
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.detector import BoxSensor, ConstantField, Detector, LinearField
from carrier_mc.physics.mobility import Mobility
from carrier_mc.transport import runge_kutta as rk
from carrier_mc.transport.batching import charge_groups, group_size, split_charge
from carrier_mc.transport.engine import round_charge
from carrier_mc.transport.statistics import PropagationStatistics
from carrier_mc.transport.trajectory import Trajectory, diagnostic_state
from carrier_mc.transport.velocity import hall_factor, make_velocity_function


def make_mobility():
    return Mobility(PropagationConfig())


# ============================================================================
# Drift velocity
# ============================================================================

@pytest.mark.parametrize('carrier_type', [CarrierType.ELECTRON, CarrierType.HOLE])
@pytest.mark.parametrize('efield', [(0.0, 0.0, -1e4), (3e3, -2e3, 5e2), (0.0, 0.0, 0.0)])
def test_drift_velocity_without_magnetic_field(carrier_type, efield):
    """v = sign * mu(|E|) * E exactly."""
    mobility = make_mobility()
    detector = Detector(BoxSensor((1.0, 1.0, 0.03)), electric_field=ConstantField(efield))
    velocity = make_velocity_function(detector, mobility, carrier_type)

    efield = np.array(efield)
    expected = carrier_type.sign * mobility(carrier_type, float(np.linalg.norm(efield)), 0.0) * efield
    assert np.array_equal(velocity(0.0, np.zeros(3)), expected)


def test_hall_velocity_parallel_fields():
    """B parallel to E leaves the drift direction and speed unchanged."""
    mobility = make_mobility()
    detector = Detector(BoxSensor((1.0, 1.0, 0.03)),
                        electric_field=ConstantField((0.0, 0.0, -1e4)),
                        magnetic_field=ConstantField((0.0, 0.0, 4e-4)))
    for carrier_type in CarrierType:
        plain = make_velocity_function(detector, mobility, carrier_type)(0.0, np.zeros(3))
        hall = make_velocity_function(detector, mobility, carrier_type, magnetic_field=True)(0.0, np.zeros(3))
        assert hall == pytest.approx(plain, rel=1e-12)


def test_hall_velocity_perpendicular_fields():
    mobility = make_mobility()
    efield = np.array([0.0, 0.0, -1e4])
    bfield = np.array([0.0, 4e-4, 0.0])  # 4 T
    detector = Detector(BoxSensor((1.0, 1.0, 0.03)),
                        electric_field=ConstantField(efield),
                        magnetic_field=ConstantField(bfield))

    for carrier_type in CarrierType:
        velocity = make_velocity_function(detector, mobility, carrier_type, magnetic_field=True)(0.0, np.zeros(3))
        sign = carrier_type.sign
        mu = mobility(carrier_type, 1e4, 0.0)
        r = hall_factor(carrier_type)
        term1 = sign * mu * r * np.cross(efield, bfield)
        expected = sign * mu * (efield + term1) / (1.0 + mu * mu * r * r * bfield @ bfield)
        assert velocity == pytest.approx(expected, rel=1e-12)
        # Lorentz deflection along x
        assert abs(velocity[0]) > 0


# ============================================================================
# Runge-Kutta
# ============================================================================

def test_rk_step_constant_velocity():
    v = np.array([1e6, 0.0, -2e6])
    state = rk.initial_state([0.0, 0.0, 0.0], timestep=1e-11)
    new_state, step = rk.rk_step(lambda t, x: v, state)
    assert new_state.position == pytest.approx(v * 1e-11)
    assert new_state.time == pytest.approx(1e-11)
    assert new_state.timestep == state.timestep
    assert np.linalg.norm(step.error) == pytest.approx(0.0, abs=1e-15)
    # Input state is untouched
    assert np.array_equal(state.position, np.zeros(3))


def test_rk_rotation_accuracy():
    state = rk.initial_state([1.0, 0.0, 0.0], timestep=0.05)
    while state.time < 2.0 * np.pi - 1e-9:
        state = state.with_timestep(min(0.05, 2.0 * np.pi - state.time))
        state, _ = rk.rk_step(lambda t, x: np.array([-x[1], x[0], 0.0]), state)
    assert state.position == pytest.approx([1.0, 0.0, 0.0], abs=1e-6)


def test_rk_error_estimate_scales_with_step():
    def field(t, x):
        return np.array([x[0] ** 2, 0.0, 0.0])

    _, coarse = rk.rk_step(field, rk.initial_state([1.0, 0.0, 0.0], timestep=0.1))
    _, fine = rk.rk_step(field, rk.initial_state([1.0, 0.0, 0.0], timestep=0.05))
    assert np.linalg.norm(fine.error) < np.linalg.norm(coarse.error)


def test_advance_time():
    state = rk.initial_state([1.0, 2.0, 3.0], timestep=1e-11, time=1e-9)
    delayed = rk.advance_time(state, 2e-9)
    assert delayed.time == pytest.approx(3e-9)
    assert np.array_equal(delayed.position, state.position)
    assert delayed.timestep == state.timestep


# ============================================================================
# Charge groups
# ============================================================================

@pytest.mark.parametrize('charge', [0, 1, 9, 10, 11, 100, 999, 12345])
@pytest.mark.parametrize('max_groups', [0, 7, 1000])
def test_split_charge_conserves_charge(charge, max_groups):
    size, groups = split_charge(charge, 10, max_groups)
    assert sum(groups) == charge
    assert all(0 < g <= size for g in groups)
    if max_groups:
        assert len(groups) <= max_groups


def test_zero_charge_has_no_groups():
    assert split_charge(0, 10, 1000) == (10, [])


def test_group_size_increased_to_cap():
    size, groups = split_charge(5000, 10, 100)
    assert size == 50
    assert len(groups) == 100
    assert set(groups) == {50}


def test_group_size_uses_true_division():
    # 1005 / 10 = 100.5 groups would exceed the cap of 100
    assert group_size(1005, 10, 100) == 11
    assert len(split_charge(1005, 10, 100)[1]) <= 100
    assert group_size(1000, 10, 100) == 10


def test_charge_groups_of_deposit(caplog):
    deposit = DepositedCharge([0.0, 0.0, 0.0], 'e', 5000)
    with caplog.at_level('INFO'):
        increased, groups = charge_groups(deposit, 10, 100)
        groups = list(groups)
    assert increased
    assert len(groups) == 100
    assert all(group.deposit is deposit for group in groups)
    assert 'Increasing charge_per_step to 50' in caplog.text

    increased, groups = charge_groups(DepositedCharge([0.0, 0.0, 0.0], 'h', 25), 10, 100)
    assert not increased
    assert [group.size for group in groups] == [10, 10, 5]


def test_round_charge_half_up():
    assert round_charge(10.0) == 10
    assert round_charge(12.5) == 13
    assert round_charge(12.49) == 12
    assert round_charge(0.5) == 1


# ============================================================================
# Detector
# ============================================================================

def test_sensor_intercept_on_surface():
    sensor = BoxSensor((1.0, 1.0, 0.03))
    inside = np.array([0.1, 0.0, 0.014])
    outside = np.array([0.2, 0.0, 0.018])
    intercept = sensor.get_sensor_intercept(inside, outside)
    assert intercept[2] == pytest.approx(0.015)
    assert intercept[0] == pytest.approx(0.125)
    assert sensor.is_within_sensor(inside)
    assert not sensor.is_within_sensor(outside)


def test_sensor_intercept_side_face():
    sensor = BoxSensor((0.1, 0.1, 0.03), center=(0.0, 0.0, 0.0))
    intercept = sensor.get_sensor_intercept(np.array([0.04, 0.0, 0.0]), np.array([0.06, 0.0, 0.01]))
    assert intercept == pytest.approx([0.05, 0.0, 0.005])


def test_sensor_intercept_from_exterior_start():
    """A start point outside the box still yields a point on the surface."""
    sensor = BoxSensor((1.0, 1.0, 0.03))
    above = np.array([0.0, 0.0, 0.02])
    assert not sensor.is_within_sensor(above)
    intercept = sensor.get_sensor_intercept(above, np.array([0.0, 0.0, 0.03]))
    assert intercept == pytest.approx([0.0, 0.0, 0.015])
    assert sensor.is_within_sensor(intercept)

    beside = np.array([0.7, 0.0, 0.0])
    intercept = sensor.get_sensor_intercept(beside, np.array([0.8, 0.0, 0.02]))
    assert intercept == pytest.approx([0.5, 0.0, 0.0])
    assert sensor.is_within_sensor(intercept)


def test_detector_queries():
    rotation = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
    detector = Detector(BoxSensor((1.0, 1.0, 0.03)),
                        electric_field=LinearField(-1e4, 2e5, z_min=-0.015, z_max=0.015),
                        position=(1.0, 2.0, 3.0), orientation=rotation)
    assert detector.has_electric_field
    assert not detector.has_magnetic_field
    assert not detector.has_doping_profile
    assert detector.get_electric_field(np.array([0.0, 0.0, 0.01]))[2] == pytest.approx(-8e3)
    assert np.array_equal(detector.get_electric_field(np.array([0.0, 0.0, 0.02])), np.zeros(3))
    assert np.array_equal(detector.get_magnetic_field(np.zeros(3)), np.zeros(3))
    assert detector.get_doping_concentration(np.zeros(3)) == 0.0
    assert detector.get_global_position(np.array([1.0, 0.0, 0.0])) == pytest.approx([1.0, 3.0, 3.0])


def test_deposited_charge_validation():
    deposit = DepositedCharge((0.0, 0.0, 0.001), 'electron', 10.0, local_time=1e-9)
    assert deposit.carrier_type is CarrierType.ELECTRON
    assert deposit.charge == 10
    assert np.array_equal(deposit.global_position, deposit.local_position)
    with pytest.raises(ValueError):
        DepositedCharge((0.0, 0.0, 0.0), 'e', -1)
    with pytest.raises(ValueError):
        DepositedCharge((0.0, 0.0, 0.0), 'muon', 1)


# ============================================================================
# Statistics and trajectories
# ============================================================================

def test_statistics_merge_is_additive():
    first = PropagationStatistics()
    first.record_deposit()
    first.record_group(10, 1e-9, CarrierState.HALTED, 12)
    first.record_group(10, 3e-9, CarrierState.RECOMBINED, 20)

    second = PropagationStatistics()
    second.record_deposit(increased_group_size=True)
    second.record_skipped()
    second.record_group(5, 2e-9, CarrierState.TRAPPED, 7)

    total = PropagationStatistics().merge(first).merge(second)
    assert total.total_deposits == 2
    assert total.skipped_deposits == 1
    assert total.deposits_exceeding_max_groups == 1
    assert total.charge_groups == 3
    assert total.integration_steps == 39
    assert total.propagated_charges == 25
    assert total.recombined_charges == 10
    assert total.trapped_charges == 5
    assert total.average_time == pytest.approx((10e-9 + 30e-9 + 10e-9) / 25)

    total.reset()
    assert total.as_dict() == PropagationStatistics().as_dict()


def test_statistics_pickle():
    statistics = PropagationStatistics()
    statistics.record_group(10, 1e-9, CarrierState.HALTED, 3)
    restored = pickle.loads(pickle.dumps(statistics))
    assert restored.as_dict() == statistics.as_dict()
    restored.record_deposit()
    assert restored.total_deposits == 1


def test_statistics_report(caplog):
    statistics = PropagationStatistics()
    statistics.record_deposit(increased_group_size=True)
    statistics.record_deposit()
    with caplog.at_level('INFO'):
        statistics.report(10, 1000)
    assert '50.00% of deposits' in caplog.text


def test_trajectory_sampling():
    trajectory = Trajectory(0.0, 10, CarrierType.ELECTRON)
    trajectory.sample(np.zeros(3), 0.0, 1e-10)
    trajectory.sample(np.ones(3), 0.5e-10, 1e-10)
    trajectory.sample(np.full(3, 2.0), 3.2e-10, 1e-10)
    points = trajectory.as_array()
    assert points.shape == (4, 3)
    assert np.array_equal(points[1], np.full(3, 2.0))


def test_diagnostic_state():
    thickness = 0.03
    center = np.array([0.0, 0.0, 0.0])
    assert diagnostic_state(CarrierState.HALTED, 1e-9, 25e-9, center, 0.0, thickness) is CarrierState.HALTED
    assert diagnostic_state(CarrierState.HALTED, 25e-9, 25e-9, center, 0.0, thickness) is CarrierState.UNKNOWN
    backside = np.array([0.0, 0.0, -0.0145])
    assert diagnostic_state(CarrierState.HALTED, 1e-9, 25e-9, backside, 0.0, thickness) is CarrierState.UNKNOWN
