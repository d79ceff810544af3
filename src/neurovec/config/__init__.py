"""
Neurovec Configuration System.

Usage:
======

    from neurovec.config import CollectionConfig, NetworkConfig

    neurons = LinearNeuronCollection(9, config=CollectionConfig(dtype="float32"))
    network = Network(neurons, synapses, config=NetworkConfig(time_resolution=500))
"""

from neurovec.config.base import BaseConfig, CollectionConfig, NetworkConfig
from neurovec.config.global_config import GlobalConfig

__all__ = [
    "BaseConfig",
    "CollectionConfig",
    "NetworkConfig",
    "GlobalConfig",
]
