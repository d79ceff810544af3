"""Reference synapse models."""

from neurovec.models.synapses.fixed import FixedSynapseCollection
from neurovec.models.synapses.pfister2006 import (
    Pfister2006SynapseCollection,
    Pfister2006SynapseConfiguration,
)

__all__ = [
    "FixedSynapseCollection",
    "Pfister2006SynapseCollection",
    "Pfister2006SynapseConfiguration",
]
