"""
Execution Strategies - how an update function is dispatched over components.

Three interchangeable strategies run the same update function:

- SEQUENTIAL: one host call over the populated range.
- THREAD_POOL: the populated range is split into chunks, one per worker, and
  the chunks run concurrently on a ``concurrent.futures.ThreadPoolExecutor``.
- ACCELERATOR: one call over the populated range on device tensors, followed
  by a device synchronisation so ``step()`` returns only when work is done.

Update functions are written once against :class:`~neurovec.core.buffers.KernelBuffers`
and a ``[start, stop)`` range; they must produce identical results under every
strategy. Buffers that an update function accumulates into at indices it
does not own (synapses adding into neuron inputs) are named as accumulators.
The thread pool gives each chunk a private zeroed copy and sums the copies
back in chunk order, so concurrent chunks never write the same element.

Author: Neurovec Project
"""

from __future__ import annotations

import logging
import math
import os
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import torch

from neurovec.core.buffers import KernelBuffers
from neurovec.errors import ConfigurationError

logger = logging.getLogger(__name__)

#: Update function signature: (buffers, start, stop) -> None
KernelFn = Callable[[KernelBuffers, int, int], None]


class ExecutionMode(Enum):
    """Execution strategy of a collection, ordered by expected throughput."""

    SEQUENTIAL = "sequential"
    THREAD_POOL = "thread_pool"
    ACCELERATOR = "accelerator"

    @property
    def is_accelerated(self) -> bool:
        return self is ExecutionMode.ACCELERATOR

    @classmethod
    def coerce(cls, value: Union["ExecutionMode", str]) -> "ExecutionMode":
        """Accept an ExecutionMode or its name/value in any case ('gpu' too)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            aliases = {"gpu": "accelerator", "jtp": "thread_pool", "cpu": "sequential"}
            key = aliases.get(key, key)
            for mode in cls:
                if mode.value == key or mode.name.lower() == key:
                    return mode
        raise ConfigurationError(
            f"Unknown execution mode {value!r}. Choose from: {[m.value for m in cls]}"
        )


def select_execution_mode(
    size: int,
    minimum_size_for_thread_pool: float,
    minimum_size_for_accelerator: float,
    preferred: Optional[ExecutionMode] = None,
) -> ExecutionMode:
    """Pick a strategy for a collection of ``size`` components.

    A preferred mode wins outright. Otherwise collections smaller than
    ``minimum_size_for_thread_pool`` run sequentially, those smaller than
    ``minimum_size_for_accelerator`` on the thread pool, and the rest on the
    accelerator. With the default thread-pool threshold of infinity every
    collection runs sequentially unless a mode is preferred.
    """
    if preferred is not None:
        return ExecutionMode.coerce(preferred)
    if size < minimum_size_for_thread_pool:
        return ExecutionMode.SEQUENTIAL
    if size < minimum_size_for_accelerator:
        return ExecutionMode.THREAD_POOL
    return ExecutionMode.ACCELERATOR


@dataclass(frozen=True)
class DispatchGrid:
    """Work decomposition for one collection.

    Attributes:
        global_size: Number of components processed (the populated size)
        group_size: Components handled per work unit
        padded_size: Power-of-two size the grid is rounded to on the accelerator
    """

    global_size: int
    group_size: int
    padded_size: int

    def chunks(self) -> List[Tuple[int, int]]:
        """``[start, stop)`` ranges covering ``[0, global_size)``."""
        if self.global_size <= 0:
            return []
        step = max(1, self.group_size)
        return [
            (start, min(start + step, self.global_size))
            for start in range(0, self.global_size, step)
        ]


def create_dispatch_grid(
    mode: ExecutionMode,
    size_populated: int,
    size_rounded: int,
    workers: int = 1,
) -> DispatchGrid:
    """Dispatch grid for ``mode`` over ``size_populated`` components."""
    if mode is ExecutionMode.THREAD_POOL:
        group = max(1, math.ceil(size_populated / max(1, workers)))
        return DispatchGrid(size_populated, group, size_populated)
    if mode is ExecutionMode.ACCELERATOR:
        return DispatchGrid(size_populated, max(1, size_populated), size_rounded)
    return DispatchGrid(size_populated, 1, size_populated)


# =============================================================================
# Executors
# =============================================================================


class Executor(ABC):
    """Runs an update function over a dispatch grid."""

    mode: ExecutionMode

    @abstractmethod
    def dispatch(
        self,
        kernel: KernelFn,
        buffers: KernelBuffers,
        grid: DispatchGrid,
        accumulators: Sequence[str] = (),
    ) -> None:
        """Run ``kernel`` over the grid and return when all work is complete."""

    def shutdown(self) -> None:
        """Release resources held by the executor."""


class SequentialExecutor(Executor):
    """One host call over ``[0, global_size)``.

    Equivalent to visiting every component in index order with a group size
    of one, without per-component call overhead.
    """

    mode = ExecutionMode.SEQUENTIAL

    def dispatch(self, kernel, buffers, grid, accumulators=()):
        if grid.global_size > 0:
            kernel(buffers, 0, grid.global_size)


class ThreadPoolDispatcher(Executor):
    """Chunked dispatch on a lazily created thread pool.

    Args:
        workers: Number of worker threads (None = ``os.cpu_count()``)
    """

    mode = ExecutionMode.THREAD_POOL

    def __init__(self, workers: Optional[int] = None):
        self.workers = workers or os.cpu_count() or 1
        self._pool: Optional[ThreadPoolExecutor] = None

    def _get_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="neurovec-worker"
            )
        return self._pool

    def dispatch(self, kernel, buffers, grid, accumulators=()):
        chunks = grid.chunks()
        if not chunks:
            return
        if len(chunks) == 1:
            kernel(buffers, *chunks[0])
            return

        pool = self._get_pool()
        futures: List[Future] = []
        private: List[Dict[str, torch.Tensor]] = []
        for start, stop in chunks:
            overrides = {name: torch.zeros_like(buffers[name]) for name in accumulators}
            private.append(overrides)
            futures.append(pool.submit(kernel, buffers.replace(**overrides), start, stop))

        # Wait for every chunk before re-raising so no worker is still writing
        errors = [f.exception() for f in futures]
        for error in errors:
            if error is not None:
                raise error

        for overrides in private:
            for name, partial in overrides.items():
                buffers[name].add_(partial)

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None


class AcceleratorExecutor(Executor):
    """Single dispatch on device tensors, synchronised before returning.

    Args:
        device: Device holding the collection's buffer mirrors
    """

    mode = ExecutionMode.ACCELERATOR

    def __init__(self, device: torch.device):
        self.device = device

    def dispatch(self, kernel, buffers, grid, accumulators=()):
        if grid.global_size <= 0:
            return
        kernel(buffers, 0, grid.global_size)
        if self.device.type == "cuda":
            torch.cuda.synchronize(self.device)


def create_executor(
    mode: ExecutionMode,
    device: Optional[torch.device] = None,
    workers: Optional[int] = None,
) -> Executor:
    """Executor implementing ``mode``."""
    if mode is ExecutionMode.THREAD_POOL:
        return ThreadPoolDispatcher(workers)
    if mode is ExecutionMode.ACCELERATOR:
        if device is None:
            raise ConfigurationError("The accelerator strategy needs a device")
        return AcceleratorExecutor(device)
    return SequentialExecutor()


__all__ = [
    "KernelFn",
    "ExecutionMode",
    "select_execution_mode",
    "DispatchGrid",
    "create_dispatch_grid",
    "Executor",
    "SequentialExecutor",
    "ThreadPoolDispatcher",
    "AcceleratorExecutor",
    "create_executor",
]
