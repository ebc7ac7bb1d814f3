"""
Planar Sensor Collection - Simple Example

Propagates charge deposited along a minimum ionizing particle track through
a 300 um planar silicon sensor with a linear electric field and reports the
collected charge and collection times.

This example validates:
    - Drift and diffusion in a non-uniform field
    - Interception at the collection face
    - Effect of trapping on collected charge

Expected results for a 300 um sensor at 150 V, electrons only:
    - ~80 e/um along the track, 24000 electrons total
    - Collection times of a few ns
    - Collection efficiency ~1 without trapping
"""

import logging

import numpy as np

from carrier_mc.core import units
from carrier_mc.core.carrier import CarrierState, DepositedCharge
from carrier_mc.core.config import PropagationConfig
from carrier_mc.core.detector import BoxSensor, Detector, LinearField
from carrier_mc.transport.engine import PropagationEngine

THICKNESS = units.get(300, 'um')
ELECTRONS_PER_UM = 80


def planar_detector(bias_voltage: float = 150.0, depletion_voltage: float = 70.0) -> Detector:
    """
    Over-depleted planar diode, collection face at +z.

    E(z) = -[(V - Vd) / d + 2 Vd / d^2 * (z + d/2)], strongest at the +z face
    and pointing towards -z so electrons drift to the +z face.
    """
    d = THICKNESS
    slope = 2.0 * depletion_voltage / d ** 2
    field = LinearField(offset=-(bias_voltage - depletion_voltage) / d, slope=-slope,
                        z0=-d / 2.0, z_min=-d / 2.0, z_max=d / 2.0)
    return Detector(BoxSensor((1.0, 1.0, d)), electric_field=field, name='planar')


def mip_track(n_segments: int = 30) -> list:
    """Deposits along a straight track through the full thickness."""
    z = np.linspace(-THICKNESS / 2.0, THICKNESS / 2.0, n_segments + 1)
    centers = 0.5 * (z[1:] + z[:-1])
    charge = int(round(ELECTRONS_PER_UM * units.convert(THICKNESS / n_segments, 'um')))
    return [DepositedCharge((0.0, 0.0, zc), 'e', charge) for zc in centers]


def simulate_collection(config: PropagationConfig, n_events: int = 10, seed: int = 1,
                        n_processes: int = None):
    """
    Propagate MIP events and summarize the collected charge.

    Parameters:
        config: Propagation configuration
        n_events: Number of events
        seed: Run seed
        n_processes: Worker processes (None: serial)

    Returns:
        efficiency, times: Mean collection efficiency and collection times [ns]
    """
    print(f"\n{'='*70}")
    print(f"Planar Sensor Collection")
    print(f"{'='*70}")
    print(f"  Thickness: {units.convert(THICKNESS, 'um'):.0f} um")
    print(f"  Mobility model: {config.mobility_model}")
    print(f"  Trapping model: {config.trapping_model}")
    print(f"  Events: {n_events}")
    print(f"{'='*70}\n")

    engine = PropagationEngine(config, planar_detector())
    events = [mip_track() for _ in range(n_events)]
    results = engine.run(events, seed=seed, n_processes=n_processes)
    statistics = engine.finalize()

    deposited = sum(d.charge for d in events[0]) * n_events
    collected = sum(c.charge for r in results for c in r.propagated_charges
                    if c.state is CarrierState.HALTED)
    times = np.array([units.convert(c.local_time, 'ns') for r in results for c in r.propagated_charges
                      if c.state is CarrierState.HALTED])
    efficiency = collected / deposited

    print(f"\n{'='*70}")
    print(f"Results:")
    print(f"{'='*70}")
    print(f"  Deposited: {deposited} e")
    print(f"  Collected: {collected} e")
    print(f"  Efficiency: {efficiency:.3f}")
    if len(times):
        print(f"  Collection time: mean {times.mean():.2f} ns, max {times.max():.2f} ns")
    print(f"  Trapped: {statistics.trapped_charges} e")
    print(f"  Integration steps: {statistics.integration_steps}")
    print(f"{'='*70}\n")

    return efficiency, times


# ============================================================================
# Main Execution
# ============================================================================

if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format='%(levelname)s %(name)s: %(message)s')

    # Example 1: Unirradiated sensor
    print("\n" + "="*70)
    print("Example 1: Unirradiated sensor")
    print("="*70)

    simulate_collection(PropagationConfig(charge_per_step=50))

    # Example 2: Irradiated sensor, Ljubljana trapping at 1e15 neq/cm^2
    print("\n" + "="*70)
    print("Example 2: Irradiated sensor")
    print("="*70)

    simulate_collection(PropagationConfig(charge_per_step=50, trapping_model='ljubljana',
                                          fluence=1e15, temperature=253.15), n_processes=4)

    print("\n" + "="*70)
    print("All examples complete!")
    print("="*70 + "\n")
