"""Physics module: Mobility, recombination, trapping, multiplication, diffusion."""

from carrier_mc.physics.diffusion import Diffusion
from carrier_mc.physics.mobility import Mobility
from carrier_mc.physics.multiplication import ImpactIonization
from carrier_mc.physics.recombination import Recombination
from carrier_mc.physics.trapping import Detrapping, Trapping

__all__ = ["Diffusion", "Mobility", "ImpactIonization", "Recombination", "Detrapping", "Trapping"]
