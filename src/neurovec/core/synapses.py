"""
Synapse Collections.

A synapse collection holds, per synapse:
- ``efficacy`` and its reset value ``initial_efficacy``
- ``pre_index`` / ``post_index``: neuron indices in the associated neuron collection
- ``outputs``: the value transmitted in the last step

The associated neuron collection is reached through the network handle at
every dispatch, never cached, so re-associating a network with other neurons
takes effect on the next step. When both collections keep their tensors on
the same device (or both on the host) the update function works directly on
the neuron buffers. Otherwise the neuron buffers are copied to the synapse
device for the dispatch and the accumulated inputs are copied back.

Compaction:
===========
``compress()`` moves every synapse for which :meth:`SynapseCollection.is_not_used`
holds to the tail and shrinks the populated size so dead synapses cost nothing:

    synapses.compress()
    synapses.size_populated   # number of synapses still in use

Author: Neurovec Project
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Optional, Tuple

import torch

from neurovec.config.base import CollectionConfig
from neurovec.core.buffers import BufferKind, Freshness, KernelBuffers
from neurovec.core.collection import INDEX_DTYPE
from neurovec.core.configurable import C, ConfigurableComponentCollection
from neurovec.errors import (
    ComponentError,
    InvalidArgumentError,
    check_index,
    check_index_tensor,
    validate_device_consistency,
)
from neurovec.typing import ArrayLike, IndexLike, StateDict, as_tensor
from neurovec.utils.core_utils import swap_entries

if TYPE_CHECKING:
    from neurovec.core.neurons import NeuronCollection

logger = logging.getLogger(__name__)

NEURON_BUFFERS = ("outputs", "spiking", "inputs")


class SynapseCollection(ConfigurableComponentCollection[C]):
    """Base class for synapse collections.

    Class attributes:
        plastic: Whether the update function modifies efficacy. Efficacy of
            non-plastic models is never pulled back from the device.
    """

    plastic: ClassVar[bool] = True

    def __init__(self, size: int, config: Optional[CollectionConfig] = None):
        self._initial_efficacy: Optional[torch.Tensor] = None
        self._neuron_views: Dict[str, torch.Tensor] = {}
        self._shares_neuron_device = True
        super().__init__(size, config)

    def init(self) -> None:
        super().init()
        efficacy_kind = BufferKind.STATE if self.plastic else BufferKind.PARAMETER
        self.allocate("efficacy", efficacy_kind)
        self.allocate("pre_index", BufferKind.CONNECTIVITY, dtype=INDEX_DTYPE)
        self.allocate("post_index", BufferKind.CONNECTIVITY, dtype=INDEX_DTYPE)
        if self._initial_efficacy is None or self._initial_efficacy.shape[0] != self._size:
            self._initial_efficacy = torch.zeros(self._size, dtype=self.dtype)

        neurons = self.neurons
        if neurons is not None:
            self.check_connectivity(neurons.size)
        self._neuron_views = {}

    def check_connectivity(self, neuron_count: int) -> None:
        """Raise InvalidArgumentError unless every pre/post index is below ``neuron_count``."""
        check_index_tensor(self._buffers.host("pre_index"), neuron_count, "pre-synaptic neuron indices")
        check_index_tensor(self._buffers.host("post_index"), neuron_count, "post-synaptic neuron indices")

    def reset(self) -> None:
        super().reset()
        self._buffers.ensure_host_fresh("efficacy")
        self._buffers.host("efficacy").copy_(self._initial_efficacy)
        self._buffers.mark_host_modified("efficacy")

    # =========================================================================
    # Neuron association
    # =========================================================================

    @property
    def neurons(self) -> Optional["NeuronCollection"]:
        """The associated neuron collection, resolved through the network."""
        if self._network is None:
            return None
        return self._network.neurons

    def _require_neurons(self) -> "NeuronCollection":
        neurons = self.neurons
        if neurons is None:
            raise ComponentError(type(self).__name__, "no neuron collection is associated")
        return neurons

    @property
    def can_step(self) -> bool:
        return super().can_step and self.neurons is not None

    def _check_ready(self) -> None:
        super()._check_ready()
        self._require_neurons()

    # =========================================================================
    # Step
    # =========================================================================

    def step(self) -> None:
        super().step()
        if not self._neuron_views:
            return
        neurons = self._require_neurons()
        if self._shares_neuron_device:
            neurons.buffers.mark_device_modified("inputs")
        else:
            if self._buffers.device is not None:
                neurons.buffers.host("inputs").copy_(self._neuron_views["inputs"])
                self._buffers.record_transfer("to_host")
            neurons.buffers.mark_host_modified("inputs")
        self._neuron_views = {}

    def _extra_kernel_buffers(self) -> Dict[str, Any]:
        neurons = self._require_neurons()
        neuron_buffers = neurons.buffers
        self._shares_neuron_device = neuron_buffers.device == self._buffers.device

        if self._shares_neuron_device:
            neuron_buffers.ensure_device_fresh(*NEURON_BUFFERS)
            views = {name: neuron_buffers.kernel_tensor(name) for name in NEURON_BUFFERS}
        else:
            neuron_buffers.ensure_host_fresh(*NEURON_BUFFERS)
            if self._buffers.device is None:
                views = {name: neuron_buffers.host(name) for name in NEURON_BUFFERS}
            else:
                views = {
                    name: neuron_buffers.host(name).to(self._buffers.device, copy=True)
                    for name in NEURON_BUFFERS
                }
                self._buffers.record_transfer("to_device", len(NEURON_BUFFERS))
            expected = self._buffers.device or torch.device("cpu")
            validate_device_consistency(views, expected)

        self._neuron_views = views
        return {"neuron_" + name: tensor for name, tensor in views.items()}

    def _accumulated_buffers(self) -> Tuple[str, ...]:
        return ("neuron_inputs",)

    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        """Transmit pre-synaptic outputs scaled by efficacy to post-synaptic inputs."""
        transmitted = buf.neuron_outputs[buf.pre_index[start:stop]] * buf.efficacy[start:stop]
        buf.outputs[start:stop] = transmitted
        buf.neuron_inputs.index_add_(0, buf.post_index[start:stop], transmitted)

    # =========================================================================
    # Inputs (pre-synaptic outputs)
    # =========================================================================

    def get_input(self, index: int) -> float:
        """Output of the pre-synaptic neuron of synapse ``index``."""
        check_index(index, self._size, "synapse index")
        neurons = self._require_neurons()
        return neurons.get_output(self.get_pre_neuron(index))

    def get_inputs(self, out: Optional[torch.Tensor] = None) -> torch.Tensor:
        """Pre-synaptic neuron output for every synapse."""
        neurons = self._require_neurons()
        gathered = neurons.get_outputs()[self._buffers.host("pre_index")]
        if out is None:
            return gathered
        out.copy_(gathered)
        return out

    def add_input(self, index: int, value: float) -> None:
        """Synapse inputs come from neurons; nothing to add."""

    def ensure_inputs_are_fresh(self) -> None:
        neurons = self.neurons
        if neurons is not None:
            neurons.ensure_outputs_are_fresh()

    @property
    def inputs_stale(self) -> bool:
        neurons = self.neurons
        return neurons is not None and neurons.outputs_stale

    # =========================================================================
    # Efficacy
    # =========================================================================

    def get_efficacy(self, index: int) -> float:
        check_index(index, self._size, "synapse index")
        self._buffers.ensure_host_fresh("efficacy")
        return float(self._buffers.host("efficacy")[index])

    def get_efficacies(self) -> torch.Tensor:
        """Live host tensor of efficacies.

        Call :meth:`set_efficacies_modified` after writing into it.
        """
        self._buffers.ensure_host_fresh("efficacy")
        return self._buffers.host("efficacy")

    def set_efficacy(self, index: int, efficacy: float) -> None:
        """Set current and initial efficacy of a synapse."""
        check_index(index, self._size, "synapse index")
        self._buffers.ensure_host_fresh("efficacy")
        self._buffers.host("efficacy")[index] = efficacy
        self._initial_efficacy[index] = efficacy
        self._buffers.mark_host_modified("efficacy")

    def set_efficacies(self, values: ArrayLike, start: int = 0) -> None:
        tensor = as_tensor(values, self.dtype)
        self._check_span(start, tensor.numel())
        self._buffers.ensure_host_fresh("efficacy")
        self._buffers.host("efficacy")[start:start + tensor.numel()] = tensor
        self._initial_efficacy[start:start + tensor.numel()] = tensor
        self._buffers.mark_host_modified("efficacy")

    def set_efficacies_modified(self) -> None:
        """Adopt direct edits of :meth:`get_efficacies` as initial efficacies."""
        self._initial_efficacy.copy_(self._buffers.host("efficacy"))
        self._buffers.mark_host_modified("efficacy")

    def get_initial_efficacy(self, index: int) -> float:
        check_index(index, self._size, "synapse index")
        return float(self._initial_efficacy[index])

    def get_initial_efficacies(self) -> torch.Tensor:
        return self._initial_efficacy

    # =========================================================================
    # Connectivity
    # =========================================================================

    def _check_neuron_index(self, neuron: int) -> None:
        neurons = self.neurons
        if neuron < 0:
            raise InvalidArgumentError(f"neuron index must be >= 0, got {neuron}")
        if neurons is not None:
            check_index(neuron, neurons.size, "neuron index")

    def get_pre_neuron(self, index: int) -> int:
        check_index(index, self._size, "synapse index")
        return int(self._buffers.host("pre_index")[index])

    def get_post_neuron(self, index: int) -> int:
        check_index(index, self._size, "synapse index")
        return int(self._buffers.host("post_index")[index])

    def set_pre_neuron(self, index: int, neuron: int) -> None:
        check_index(index, self._size, "synapse index")
        self._check_neuron_index(neuron)
        self._buffers.host("pre_index")[index] = neuron
        self._buffers.mark_host_modified("pre_index")

    def set_post_neuron(self, index: int, neuron: int) -> None:
        check_index(index, self._size, "synapse index")
        self._check_neuron_index(neuron)
        self._buffers.host("post_index")[index] = neuron
        self._buffers.mark_host_modified("post_index")

    def set_pre_and_post_neurons(self, index: int, pre: int, post: int) -> None:
        self.set_pre_neuron(index, pre)
        self.set_post_neuron(index, post)

    def set_connections(self, pre: IndexLike, post: IndexLike, start: int = 0) -> None:
        """Bulk connectivity setter for synapses ``[start, start + len(pre))``."""
        pre_t = as_tensor(pre, INDEX_DTYPE)
        post_t = as_tensor(post, INDEX_DTYPE)
        if pre_t.numel() != post_t.numel():
            raise InvalidArgumentError(
                f"pre and post must have the same length, got {pre_t.numel()} and {post_t.numel()}"
            )
        self._check_span(start, pre_t.numel())
        neurons = self.neurons
        bound = neurons.size if neurons is not None else torch.iinfo(INDEX_DTYPE).max
        check_index_tensor(pre_t, bound, "pre-synaptic neuron indices")
        check_index_tensor(post_t, bound, "post-synaptic neuron indices")
        stop = start + pre_t.numel()
        self._buffers.host("pre_index")[start:stop] = pre_t
        self._buffers.host("post_index")[start:stop] = post_t
        self._buffers.mark_host_modified("pre_index", "post_index")

    @property
    def efficacies_modified(self) -> bool:
        return self._buffers.freshness("efficacy") is Freshness.HOST_FRESH

    @property
    def connectivity_modified(self) -> bool:
        return self._buffers.any_in_state(Freshness.HOST_FRESH, ("pre_index", "post_index"))

    # =========================================================================
    # Compaction
    # =========================================================================

    def is_not_used(self, index: int) -> bool:
        """Whether synapse ``index`` can never transmit anything."""
        return float(self._initial_efficacy[index]) == 0.0

    def compress(self) -> None:
        """Move unused synapses to the tail and shrink the populated size."""
        self._buffers.ensure_host_fresh_all()
        self.init()

        if self._size == 0:
            self.set_size_populated(0)
            self.init()
            return

        names = self._per_component_buffer_names()
        swapped = False
        current, end = 0, self._size - 1
        while current != end:
            if self.is_not_used(current):
                # Both ends unused: shrink without reordering dead synapses
                if not self.is_not_used(end):
                    self._swap_components(names, current, end)
                    swapped = True
                end -= 1
            else:
                current += 1
        if self.is_not_used(end):
            end -= 1

        if swapped:
            self._buffers.mark_host_modified(*names)
        self.set_size_populated(end + 1)
        if end + 1 == 0:
            logger.warning("%s: compress() found no used synapses", type(self).__name__)
        else:
            logger.debug(
                "%s: compressed to %d of %d synapses", type(self).__name__, end + 1, self._size
            )
        self.init()

    def _swap_components(self, names, i: int, j: int) -> None:
        for name in names:
            swap_entries(self._buffers.host(name), i, j)
        swap_entries(self._initial_efficacy, i, j)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def state_dict(self) -> StateDict:
        state = super().state_dict()
        state["initial_efficacy"] = self._initial_efficacy.clone()
        return state

    def load_state_dict(self, state: StateDict) -> None:
        super().load_state_dict(state)
        if "initial_efficacy" in state:
            self._initial_efficacy.copy_(state["initial_efficacy"])


__all__ = ["SynapseCollection"]
