"""
Network - one neuron collection, one synapse collection and a clock.

Each step runs in two phases:

1. Synapses read the neuron outputs of the previous step and accumulate
   into the neuron inputs.
2. Neurons consume those inputs and produce new outputs and spike flags.

The synapse phase always completes before the neuron phase starts, so an
output injected with ``neurons.set_output()`` reaches post-synaptic inputs
on the next step and post-synaptic outputs on the step after.

Usage:
    neurons = LinearNeuronCollection(9)
    synapses = FixedSynapseCollection(10)
    network = Network(neurons, synapses)
    synapses.set_pre_and_post_neurons(0, 0, 2)
    synapses.set_efficacy(0, 1.0)
    neurons.set_output(0, 1.0)
    network.run(6)
    neurons.get_outputs()

Author: Neurovec Project
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

import torch

from neurovec.config.base import NetworkConfig
from neurovec.core.collection import ComponentCollection
from neurovec.core.execution import ExecutionMode, select_execution_mode
from neurovec.core.neurons import NeuronCollection
from neurovec.core.synapses import SynapseCollection
from neurovec.errors import ConfigurationError, InconsistentExecutionStrategyError, InvalidArgumentError

logger = logging.getLogger(__name__)


class Network:
    """Couples a neuron and a synapse collection with a simulation clock.

    Args:
        neurons: Neuron collection
        synapses: Synapse collection whose connectivity indexes ``neurons``
        config: Clock resolution and execution-strategy selection settings
    """

    def __init__(
        self,
        neurons: NeuronCollection,
        synapses: SynapseCollection,
        config: Optional[NetworkConfig] = None,
    ):
        self.config = config or NetworkConfig()
        if self.config.seed is not None:
            torch.manual_seed(self.config.seed)
        self._step = 0
        self._neurons = neurons
        self._synapses = synapses
        neurons.set_network(self)
        synapses.set_network(self)
        self.select_execution_modes()
        self.init()

    # =========================================================================
    # Collections
    # =========================================================================

    @property
    def neurons(self) -> NeuronCollection:
        return self._neurons

    @property
    def synapses(self) -> SynapseCollection:
        return self._synapses

    @property
    def collections(self) -> Tuple[ComponentCollection, ComponentCollection]:
        return (self._neurons, self._synapses)

    def set_neurons(self, neurons: NeuronCollection) -> None:
        """Replace the neuron collection.

        Raises:
            InvalidArgumentError: If a synapse refers to a neuron index outside
                the new collection; the network is left unchanged
        """
        if neurons is self._neurons:
            return
        self._synapses.check_connectivity(neurons.size)
        old = self._neurons
        self._neurons = neurons
        old.set_network(None)
        neurons.set_network(self)
        self.select_execution_modes()
        self.init()

    def set_synapses(self, synapses: SynapseCollection) -> None:
        if synapses is self._synapses:
            return
        synapses.check_connectivity(self._neurons.size)
        old = self._synapses
        self._synapses = synapses
        old.set_network(None)
        synapses.set_network(self)
        self.select_execution_modes()
        self.init()

    # =========================================================================
    # Clock
    # =========================================================================

    @property
    def time_resolution(self) -> int:
        """Simulation steps per simulated second."""
        return self.config.time_resolution

    def set_time_resolution(self, time_resolution: int) -> None:
        """Change the clock resolution; models re-derive their step constants."""
        if time_resolution <= 0:
            raise ConfigurationError(f"time_resolution must be positive, got {time_resolution}")
        if time_resolution == self.config.time_resolution:
            return
        self.config.time_resolution = time_resolution
        self.init()

    @property
    def step_period(self) -> float:
        """Duration of one step in seconds."""
        return self.config.step_period

    @property
    def step_count(self) -> int:
        return self._step

    @property
    def time(self) -> float:
        """Simulated time in seconds."""
        return self._step / self.config.time_resolution

    # =========================================================================
    # Execution strategy
    # =========================================================================

    @property
    def preferred_execution_mode(self) -> Optional[ExecutionMode]:
        return self.config.preferred_execution_mode  # type: ignore[return-value]

    def set_preferred_execution_mode(self, mode: Optional[Union[ExecutionMode, str]]) -> None:
        """Force a strategy on both collections (None = automatic selection)."""
        coerced = ExecutionMode.coerce(mode) if mode is not None else None
        if coerced is self.config.preferred_execution_mode:
            return
        self.config.preferred_execution_mode = coerced
        self.select_execution_modes()

    @property
    def minimum_size_for_thread_pool(self) -> float:
        return self.config.minimum_size_for_thread_pool

    def set_minimum_size_for_thread_pool(self, size: float) -> None:
        if size < 0:
            raise ConfigurationError(f"minimum_size_for_thread_pool must be >= 0, got {size}")
        if size != self.config.minimum_size_for_thread_pool:
            self.config.minimum_size_for_thread_pool = size
            self.select_execution_modes()

    @property
    def minimum_size_for_accelerator(self) -> float:
        return self.config.minimum_size_for_accelerator

    def set_minimum_size_for_accelerator(self, size: float) -> None:
        if size < 0:
            raise ConfigurationError(f"minimum_size_for_accelerator must be >= 0, got {size}")
        if size != self.config.minimum_size_for_accelerator:
            self.config.minimum_size_for_accelerator = size
            self.select_execution_modes()

    def select_execution_modes(self) -> None:
        """Choose and apply a strategy for each collection.

        When either collection asked for the accelerator, one trial step
        checks that dispatch works there; its effect on state and clock is
        rolled back afterwards.

        Raises:
            InconsistentExecutionStrategyError: If both collections asked for
                the accelerator but only one of them runs there
        """
        preferred = self.config.preferred_execution_mode
        for collection in self.collections:
            mode = select_execution_mode(
                collection.size,
                self.config.minimum_size_for_thread_pool,
                self.config.minimum_size_for_accelerator,
                preferred,  # type: ignore[arg-type]
            )
            collection.set_execution_mode(mode)
            logger.info(
                "%s (size %d): execution mode %s",
                type(collection).__name__,
                collection.size,
                collection.execution_mode.name,
            )

        if any(c.requested_execution_mode.is_accelerated for c in self.collections):
            if all(c.can_step for c in self.collections):
                self._trial_step()
            self._check_strategy_consistency()

    def _trial_step(self) -> None:
        saved = [(c, c.state_dict()) for c in self.collections]
        step = self._step
        for collection in self.collections:
            collection.fallback_on_dispatch_error = True
        try:
            self._advance()
        finally:
            for collection in self.collections:
                collection.fallback_on_dispatch_error = False
            for collection, state in saved:
                collection.load_state_dict(state)
            self._step = step

    def _check_strategy_consistency(self) -> None:
        neurons, synapses = self._neurons, self._synapses
        both_requested = (
            neurons.requested_execution_mode.is_accelerated
            and synapses.requested_execution_mode.is_accelerated
        )
        if both_requested and (
            neurons.execution_mode.is_accelerated != synapses.execution_mode.is_accelerated
        ):
            raise InconsistentExecutionStrategyError(
                f"neurons run {neurons.execution_mode.name} but synapses run "
                f"{synapses.execution_mode.name}; the accelerator was requested for both"
            )

    # =========================================================================
    # Simulation
    # =========================================================================

    def init(self) -> None:
        """Re-initialise both collections and reset the simulation."""
        self._neurons.init()
        self._synapses.init()
        self.reset()

    def reset(self) -> None:
        self._neurons.reset()
        self._synapses.reset()
        self._step = 0

    def step(self) -> None:
        """Advance the simulation by one step."""
        logger.debug("step %d: synapses", self._step)
        self._synapses.step()
        logger.debug("step %d: neurons", self._step)
        self._neurons.step()
        self._step += 1

    def run(self, steps: int) -> None:
        """Advance ``steps`` steps without reading anything back to the host."""
        if steps < 0:
            raise InvalidArgumentError(f"steps must be >= 0, got {steps}")
        logger.debug("running %d steps from step %d", steps, self._step)
        for _ in range(steps):
            self._advance()

    def _advance(self) -> None:
        self._synapses.step()
        self._neurons.step()
        self._step += 1

    def dispose(self) -> None:
        """Release device memory and worker threads of both collections."""
        for collection in self.collections:
            collection.dispose()

    def __enter__(self) -> "Network":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return (
            f"Network(neurons={self._neurons!r}, synapses={self._synapses!r}, "
            f"step={self._step})"
        )


__all__ = ["Network"]
