"""Reference neuron models."""

from neurovec.models.neurons.fixed_frequency import (
    FixedFrequencyNeuronCollection,
    FixedFrequencyNeuronConfiguration,
)
from neurovec.models.neurons.linear import ClampedLinearNeuronCollection, LinearNeuronCollection
from neurovec.models.neurons.sigmoid import (
    SigmoidBipolarNeuronCollection,
    SigmoidNeuronConfiguration,
)

__all__ = [
    "LinearNeuronCollection",
    "ClampedLinearNeuronCollection",
    "SigmoidBipolarNeuronCollection",
    "SigmoidNeuronConfiguration",
    "FixedFrequencyNeuronCollection",
    "FixedFrequencyNeuronConfiguration",
]
