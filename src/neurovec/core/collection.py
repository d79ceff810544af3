"""
Component Collection - structure-of-arrays base for neurons and synapses.

A collection stores one entry per component in named 1D tensors held by a
:class:`~neurovec.core.buffers.DeviceBuffers`. Each ``step()`` dispatches the
model's update function over ``[0, size_populated)`` with the collection's
execution strategy.

Lifecycle:
    construct → init() → reset() → step()* → [compress()] → dispose()

``init()`` runs at the end of construction, so sub-classes that need extra
attributes during ``init()`` set them before calling ``super().__init__``.

Writing a Model:
================
Models override :meth:`ComponentCollection.update` and operate on tensor slices:

    class LinearNeuronCollection(NeuronCollectionWithBias):
        def update(self, buf, start, stop):
            buf.outputs[start:stop] = buf.inputs[start:stop] + buf.bias[start:stop]
            super().update(buf, start, stop)

Extra per-component buffers are allocated in ``init()`` with
:meth:`ComponentCollection.allocate`; they are mirrored, transferred and
swapped by ``compress()`` automatically.

Author: Neurovec Project
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

import torch

from neurovec.config.base import CollectionConfig
from neurovec.config.global_config import GlobalConfig
from neurovec.core.buffers import (
    WRITTEN_KINDS,
    BufferKind,
    DeviceBuffers,
    Freshness,
    KernelBuffers,
)
from neurovec.core.execution import (
    DispatchGrid,
    ExecutionMode,
    Executor,
    SequentialExecutor,
    create_dispatch_grid,
    create_executor,
)
from neurovec.errors import ComponentError, InvalidArgumentError, check_index, check_range
from neurovec.typing import ArrayLike, StateDict, as_tensor
from neurovec.utils.core_utils import next_power_of_two

if TYPE_CHECKING:
    from neurovec.core.network import Network

logger = logging.getLogger(__name__)

INDEX_DTYPE = getattr(torch, GlobalConfig.INDEX_DTYPE)


class ComponentCollection(ABC):
    """Base class for collections of neurons or synapses.

    Args:
        size: Number of components in the collection (>= 0)
        config: Tensor dtype, accelerator device and thread-pool settings
    """

    accelerator_capable: ClassVar[bool] = True
    """Whether the update function may run on the accelerator strategy."""

    default_output: ClassVar[float] = 0.0
    minimum_possible_output_value: ClassVar[float] = 0.0
    maximum_possible_output_value: ClassVar[float] = 1.0

    def __init__(self, size: int, config: Optional[CollectionConfig] = None):
        if size < 0:
            raise InvalidArgumentError(f"size must be >= 0, got {size}")
        self._size = int(size)
        self.config = config or CollectionConfig()
        self._size_populated = self._size
        self._size_rounded = next_power_of_two(self._size)
        self._buffers = DeviceBuffers(type(self).__name__)
        self._network: Optional["Network"] = None

        self._requested_mode = ExecutionMode.SEQUENTIAL
        self._mode = ExecutionMode.SEQUENTIAL
        self._executor: Executor = SequentialExecutor()
        self._grid = create_dispatch_grid(self._mode, self._size_populated, self._size_rounded)

        # Set by Network during a trial dispatch
        self.fallback_on_dispatch_error = False

        self.init()

    # =========================================================================
    # Sizes
    # =========================================================================

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    @property
    def size_populated(self) -> int:
        """Number of leading components that are dispatched."""
        return self._size_populated

    def set_size_populated(self, size_populated: int) -> None:
        """Limit dispatch to ``[0, size_populated)``.

        Used to recycle an oversized arena; components past the populated size
        keep their values but are never updated.

        Raises:
            InvalidArgumentError: If size_populated is outside [0, size]
        """
        check_range(size_populated, 0, self._size, "populated size")
        self._size_populated = int(size_populated)
        self._create_dispatch_grid()

    @property
    def size_rounded_for_dispatch(self) -> int:
        return self._size_rounded

    @property
    def dtype(self) -> torch.dtype:
        return self.config.get_torch_dtype()

    # =========================================================================
    # Network association
    # =========================================================================

    @property
    def network(self) -> Optional["Network"]:
        return self._network

    def set_network(self, network: Optional["Network"]) -> None:
        """Associate with a network, then ``init()`` and ``reset()``."""
        self._network = network
        self.init()
        self.reset()

    def _time_resolution(self) -> int:
        if self._network is None:
            return GlobalConfig.DEFAULT_TIME_RESOLUTION
        return self._network.time_resolution

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> None:
        """(Re)allocate buffers and re-push everything the update function reads.

        Idempotent. Buffers that already have the right length keep their
        values; pending device data is pulled first so nothing is lost.
        """
        self._size_rounded = next_power_of_two(self._size)
        self.allocate("outputs", BufferKind.OUTPUT, fill=self.default_output)
        self._create_dispatch_grid()

    def reset(self) -> None:
        """Set every output to the default output value."""
        self._buffers.host("outputs").fill_(self.default_output)
        self._buffers.mark_host_modified("outputs")

    def step(self) -> None:
        """Advance every populated component by one simulation step."""
        self._check_ready()
        self._buffers.ensure_device_fresh_all()
        self._dispatch()
        self._buffers.mark_kinds_device_modified(*WRITTEN_KINDS)

    def dispose(self) -> None:
        """Release device mirrors and worker threads."""
        self._executor.shutdown()
        self._buffers.detach()

    def create_collection(self, size: int) -> "ComponentCollection":
        """Create an empty collection of the same type and config."""
        return type(self)(size, self.config)

    def _check_ready(self) -> None:
        """Raise if the collection cannot be stepped in its current state."""

    @property
    def can_step(self) -> bool:
        """Whether step() would pass its readiness checks."""
        return True

    # =========================================================================
    # Buffers
    # =========================================================================

    def allocate(
        self,
        name: str,
        kind: BufferKind,
        dtype: Optional[torch.dtype] = None,
        fill: Union[float, bool, int] = 0,
    ) -> torch.Tensor:
        """Allocate (or keep) a per-component buffer of length ``size``.

        An existing buffer of the right length and dtype keeps its values: it is
        resolved to the host and re-pushed. Otherwise a new buffer filled with
        ``fill`` replaces it.
        """
        dtype = dtype or self.dtype
        if name in self._buffers:
            existing = self._buffers.host(name)
            if existing.shape[0] == self._size and existing.dtype == dtype:
                self._buffers.ensure_host_fresh(name)
                self._buffers.put(name)
                return existing
        tensor = torch.full((self._size,), fill, dtype=dtype)
        self._buffers.register(name, tensor, kind)
        return tensor

    def set_config_buffer(self, name: str, values: Sequence[float], dtype: Optional[torch.dtype] = None) -> None:
        """Register a per-configuration scratch array (rebuilt on every init)."""
        tensor = torch.tensor(list(values), dtype=dtype or self.dtype)
        self._buffers.register(name, tensor, BufferKind.CONFIG)

    @property
    def buffers(self) -> DeviceBuffers:
        return self._buffers

    @property
    def buffer_device(self) -> Optional[torch.device]:
        """Device the update function's tensors live on (None = host)."""
        return self._buffers.device

    @property
    def transfer_counts(self) -> Dict[str, int]:
        return self._buffers.transfer_counts

    def _per_component_buffer_names(self) -> List[str]:
        return [n for n in self._buffers.names() if self._buffers.kind(n) is not BufferKind.CONFIG]

    def _kernel_buffers(self) -> KernelBuffers:
        entries: Dict[str, Any] = {n: self._buffers.kernel_tensor(n) for n in self._buffers}
        entries.update(self._extra_kernel_buffers())
        return KernelBuffers(entries)

    def _extra_kernel_buffers(self) -> Dict[str, Any]:
        """Entries the update function needs besides this collection's buffers."""
        return {}

    def _accumulated_buffers(self) -> Tuple[str, ...]:
        """Kernel buffers written at indices outside the dispatched range."""
        return ()

    # =========================================================================
    # Dispatch
    # =========================================================================

    @abstractmethod
    def update(self, buf: KernelBuffers, start: int, stop: int) -> None:
        """Update components ``[start, stop)`` in place.

        Must give the same result whether called once over the whole range
        or over any split of it.
        """

    def _dispatch(self) -> None:
        if self._grid.global_size == 0:
            return
        try:
            self._executor.dispatch(
                self.update, self._kernel_buffers(), self._grid, self._accumulated_buffers()
            )
        except RuntimeError as e:
            if not (self.fallback_on_dispatch_error and self._mode.is_accelerated):
                raise
            logger.warning(
                "%s: dispatch on %s failed (%s); falling back to %s",
                type(self).__name__,
                self._buffers.device,
                e,
                ExecutionMode.SEQUENTIAL.name,
            )
            self._apply_execution_mode(ExecutionMode.SEQUENTIAL)
            self._buffers.ensure_device_fresh_all()
            self._executor.dispatch(
                self.update, self._kernel_buffers(), self._grid, self._accumulated_buffers()
            )

    # =========================================================================
    # Execution strategy
    # =========================================================================

    @property
    def execution_mode(self) -> ExecutionMode:
        """Strategy actually in effect."""
        return self._mode

    @property
    def requested_execution_mode(self) -> ExecutionMode:
        """Strategy last asked for through :meth:`set_execution_mode`."""
        return self._requested_mode

    @property
    def dispatch_grid(self) -> DispatchGrid:
        return self._grid

    def set_execution_mode(self, mode: Union[ExecutionMode, str]) -> None:
        """Switch strategy. Pending transfers are resolved before returning.

        Requesting the accelerator on a model that cannot run there, or when
        no accelerator device is available, falls back to sequential.
        """
        requested = ExecutionMode.coerce(mode)
        effective = requested
        if requested.is_accelerated:
            if not self.accelerator_capable:
                logger.warning(
                    "%s cannot run on the accelerator; using %s",
                    type(self).__name__,
                    ExecutionMode.SEQUENTIAL.name,
                )
                effective = ExecutionMode.SEQUENTIAL
            elif self.config.get_accelerator_device() is None:
                logger.warning(
                    "%s: no accelerator device available; using %s",
                    type(self).__name__,
                    ExecutionMode.SEQUENTIAL.name,
                )
                effective = ExecutionMode.SEQUENTIAL
        self._requested_mode = requested
        self._apply_execution_mode(effective)

    def _apply_execution_mode(self, mode: ExecutionMode) -> None:
        if mode.is_accelerated:
            self._buffers.attach(self.config.get_accelerator_device())
        else:
            self._buffers.detach()
        if mode is not self._mode or mode.is_accelerated:
            self._executor.shutdown()
            self._executor = create_executor(
                mode, self._buffers.device, self.config.thread_pool_workers
            )
        self._mode = mode
        self._create_dispatch_grid()

    def _create_dispatch_grid(self) -> None:
        workers = getattr(self._executor, "workers", 1)
        self._grid = create_dispatch_grid(
            self._mode, self._size_populated, self._size_rounded, workers
        )

    # =========================================================================
    # Outputs
    # =========================================================================

    def get_output(self, index: int) -> float:
        check_index(index, self._size, "component index")
        self.ensure_outputs_are_fresh()
        return float(self._buffers.host("outputs")[index])

    def get_outputs(self) -> torch.Tensor:
        """Live host tensor of outputs.

        Call :meth:`set_outputs_modified` after writing into it.
        """
        self.ensure_outputs_are_fresh()
        return self._buffers.host("outputs")

    def set_output(self, index: int, value: float) -> None:
        check_index(index, self._size, "component index")
        self.ensure_outputs_are_fresh()
        self._buffers.host("outputs")[index] = value
        self._buffers.mark_host_modified("outputs")

    def set_outputs(self, values: ArrayLike, start: int = 0) -> None:
        """Copy ``values`` into outputs beginning at ``start``."""
        tensor = as_tensor(values, self.dtype)
        self._check_span(start, tensor.numel())
        self.ensure_outputs_are_fresh()
        self._buffers.host("outputs")[start:start + tensor.numel()] = tensor
        self._buffers.mark_host_modified("outputs")

    def set_outputs_modified(self) -> None:
        """Flag outputs as written on the host."""
        self._buffers.mark_host_modified("outputs")

    def ensure_outputs_are_fresh(self) -> None:
        self._buffers.ensure_host_fresh("outputs")

    def _check_span(self, start: int, length: int) -> None:
        if start < 0 or start + length > self._size:
            raise InvalidArgumentError(
                f"range [{start}, {start + length}) does not fit in a collection of size {self._size}"
            )

    # =========================================================================
    # Inputs
    # =========================================================================

    @abstractmethod
    def get_input(self, index: int) -> float:
        """Input currently seen by component ``index``."""

    @abstractmethod
    def get_inputs(self) -> torch.Tensor:
        """Inputs currently seen by every component."""

    @abstractmethod
    def add_input(self, index: int, value: float) -> None:
        """Add ``value`` to the input of component ``index``."""

    def ensure_inputs_are_fresh(self) -> None:
        if "inputs" in self._buffers:
            self._buffers.ensure_host_fresh("inputs")

    # =========================================================================
    # State variables
    # =========================================================================

    def get_state_variable_names(self) -> Tuple[str, ...]:
        """Names of the model's state variables (for diagnostics)."""
        return tuple(self._buffers.names(BufferKind.STATE))

    def get_state_variable_values(self, index: int) -> Tuple[float, ...]:
        check_index(index, self._size, "component index")
        self.ensure_state_variables_are_fresh()
        return tuple(float(self._buffers.host(n)[index]) for n in self.get_state_variable_names())

    def ensure_state_variables_are_fresh(self) -> None:
        self._buffers.ensure_host_fresh(*self._buffers.names(BufferKind.STATE))

    # =========================================================================
    # Freshness flags
    # =========================================================================

    @property
    def outputs_stale(self) -> bool:
        """Device outputs are newer than host outputs."""
        return self._buffers.freshness("outputs") is Freshness.DEVICE_FRESH

    @property
    def outputs_modified(self) -> bool:
        """Host outputs are newer than device outputs."""
        return self._buffers.freshness("outputs") is Freshness.HOST_FRESH

    @property
    def inputs_stale(self) -> bool:
        if "inputs" not in self._buffers:
            return False
        return self._buffers.freshness("inputs") is Freshness.DEVICE_FRESH

    @property
    def state_variables_stale(self) -> bool:
        return self._buffers.any_in_state(
            Freshness.DEVICE_FRESH, self._buffers.names(BufferKind.STATE)
        )

    # =========================================================================
    # Snapshots
    # =========================================================================

    def state_dict(self) -> StateDict:
        """Host copies of every per-component buffer and the populated size."""
        self._buffers.ensure_host_fresh_all()
        state = {n: self._buffers.host(n).clone() for n in self._per_component_buffer_names()}
        state["size_populated"] = torch.tensor(self._size_populated)
        return state

    def load_state_dict(self, state: StateDict) -> None:
        """Restore buffers saved by :meth:`state_dict` (marked host-modified).

        Raises:
            ComponentError: If a saved buffer has a different length
        """
        for name in self._per_component_buffer_names():
            if name not in state:
                continue
            saved = state[name]
            host = self._buffers.host(name)
            if saved.shape != host.shape:
                raise ComponentError(
                    type(self).__name__,
                    f"buffer '{name}' has shape {tuple(host.shape)}, "
                    f"state holds {tuple(saved.shape)}",
                )
            host.copy_(saved)
            self._buffers.mark_host_modified(name)
        if "size_populated" in state:
            self.set_size_populated(int(state["size_populated"]))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(size={self._size}, "
            f"populated={self._size_populated}, mode={self._mode.name})"
        )


__all__ = ["ComponentCollection", "INDEX_DTYPE"]
