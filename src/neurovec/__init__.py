"""
NEUROVEC - Vectorized neuron and synapse collections

Simulates large populations of neuron and synapse models advancing in
lock-step discrete time, with per-collection execution strategies
(sequential, thread pool, accelerator) and lazy host/device transfers.

Quick Start:
============

    from neurovec import Network, NetworkConfig
    from neurovec.models.neurons import LinearNeuronCollection
    from neurovec.models.synapses import FixedSynapseCollection

    neurons = LinearNeuronCollection(9)
    synapses = FixedSynapseCollection(10)
    network = Network(neurons, synapses, NetworkConfig(preferred_execution_mode="sequential"))

    synapses.set_pre_and_post_neurons(0, 0, 2)
    synapses.set_efficacy(0, 1.0)
    neurons.set_output(0, 1.0)
    network.run(6)
    print(neurons.get_outputs())

Internal code should import from the defining modules, e.g.
``from neurovec.core.synapses import SynapseCollection``.
"""

__version__ = "0.1.0"

# ============================================================================
# PUBLIC API
# ============================================================================

# Configuration
from neurovec.config import CollectionConfig, GlobalConfig, NetworkConfig

# Engine
from neurovec.core import (
    ComponentCollection,
    ComponentConfiguration,
    ConfigurableComponentCollection,
    ExecutionMode,
    Network,
    NeuronCollection,
    NeuronCollectionWithBias,
    NeuronConfiguration,
    SynapseCollection,
    SynapseConfiguration,
    parameter,
)

# Errors
from neurovec.errors import (
    ComponentError,
    ConfigurationError,
    InconsistentExecutionStrategyError,
    InvalidArgumentError,
    NeurovecError,
)

__all__ = [
    "__version__",
    "CollectionConfig",
    "GlobalConfig",
    "NetworkConfig",
    "ComponentCollection",
    "ComponentConfiguration",
    "ConfigurableComponentCollection",
    "ExecutionMode",
    "Network",
    "NeuronCollection",
    "NeuronCollectionWithBias",
    "NeuronConfiguration",
    "SynapseCollection",
    "SynapseConfiguration",
    "parameter",
    "ComponentError",
    "ConfigurationError",
    "InconsistentExecutionStrategyError",
    "InvalidArgumentError",
    "NeurovecError",
]
