"""
Core engine: configurations, buffers, execution strategies, collections and
the network loop.
"""

from neurovec.core.buffers import BufferKind, DeviceBuffers, Freshness, KernelBuffers
from neurovec.core.collection import ComponentCollection
from neurovec.core.configurable import ConfigurableComponentCollection
from neurovec.core.configuration import (
    ComponentConfiguration,
    ConfigurationListener,
    NeuronConfiguration,
    SynapseConfiguration,
    parameter,
)
from neurovec.core.execution import (
    DispatchGrid,
    ExecutionMode,
    select_execution_mode,
)
from neurovec.core.network import Network
from neurovec.core.neurons import NeuronCollection, NeuronCollectionWithBias
from neurovec.core.synapses import SynapseCollection

__all__ = [
    "BufferKind",
    "DeviceBuffers",
    "Freshness",
    "KernelBuffers",
    "ComponentCollection",
    "ConfigurableComponentCollection",
    "ComponentConfiguration",
    "ConfigurationListener",
    "NeuronConfiguration",
    "SynapseConfiguration",
    "parameter",
    "DispatchGrid",
    "ExecutionMode",
    "select_execution_mode",
    "Network",
    "NeuronCollection",
    "NeuronCollectionWithBias",
    "SynapseCollection",
]
