"""
Splitting of deposited charge into charge groups.

A deposit of C carriers is propagated as groups of `charge_per_step`
carriers. To bound the work per deposit the number of groups is capped; a
deposit that would need more groups gets a larger group size instead.
"""

import logging
import math
from typing import Iterator, List, Tuple

from carrier_mc.core.carrier import ChargeGroup, DepositedCharge

logger = logging.getLogger(__name__)


def group_size(charge: int, charge_per_step: int, max_charge_groups: int) -> int:
    """
    Group size to use for a deposit.

    Parameters:
        charge: Total charge of the deposit
        charge_per_step: Configured group size
        max_charge_groups: Maximum number of groups per deposit (0 = unlimited)

    Returns:
        charge_per_step, or ceil(charge / max_charge_groups) if the cap would
        otherwise be exceeded
    """
    if max_charge_groups > 0 and charge / charge_per_step > max_charge_groups:
        return int(math.ceil(charge / max_charge_groups))
    return charge_per_step


def split_charge(charge: int, charge_per_step: int, max_charge_groups: int = 0) -> Tuple[int, List[int]]:
    """
    Split a charge into group sizes.

    Returns:
        (size, groups): the group size used and the list of group sizes; the
        last group holds the remainder, the sizes sum to `charge`.
    """
    size = group_size(charge, charge_per_step, max_charge_groups)
    groups = []
    remaining = charge
    while remaining > 0:
        current = min(size, remaining)
        groups.append(current)
        remaining -= current
    return size, groups


def charge_groups(deposit: DepositedCharge, charge_per_step: int,
                  max_charge_groups: int = 0) -> Tuple[bool, Iterator[ChargeGroup]]:
    """
    Charge groups of one deposit.

    Returns:
        (increased, groups): whether the group size had to be raised above
        `charge_per_step`, and the groups in propagation order
    """
    size, sizes = split_charge(deposit.charge, charge_per_step, max_charge_groups)
    increased = size != charge_per_step
    if increased:
        logger.info("Deposited charge: %d, which exceeds the maximum number of charge groups allowed. "
                    "Increasing charge_per_step to %d for this deposit.", deposit.charge, size)
    return increased, (ChargeGroup(n, deposit) for n in sizes)
