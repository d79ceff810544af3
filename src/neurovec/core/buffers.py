"""
Host/Device Buffer Management with Freshness Tokens.

Every collection keeps its per-component state as named 1D tensors on the
host. When the collection runs on the accelerator, each of those tensors also
has a mirror on the accelerator device. Which copy is authoritative is
recorded per buffer by a :class:`Freshness` token:

    HOST_FRESH    host copy is newer (a setter wrote it; push before use)
    DEVICE_FRESH  device copy is newer (an update function wrote it; pull before reading)
    BOTH_FRESH    copies agree

Tokens transition the same way in every execution strategy. Copies only
happen when a mirror exists, so host strategies pay nothing for the
bookkeeping while the accelerator strategy moves data lazily and only in the
direction needed.

    buffers = DeviceBuffers("LinearNeuronCollection")
    buffers.register("outputs", torch.zeros(9), BufferKind.OUTPUT)
    buffers.attach(torch.device("cuda"))       # mirrors created, BOTH_FRESH
    buffers.mark_device_modified("outputs")     # after a dispatch
    buffers.ensure_host_fresh("outputs")        # one device→host copy

Author: Neurovec Project
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

import torch

logger = logging.getLogger(__name__)


class Freshness(Enum):
    """Which copy of a buffer holds the newest data."""

    HOST_FRESH = "host_fresh"
    DEVICE_FRESH = "device_fresh"
    BOTH_FRESH = "both_fresh"


class BufferKind(Enum):
    """Role of a buffer, used to decide what a dispatch may have modified."""

    OUTPUT = "output"  # Written by every dispatch
    INPUT = "input"  # Consumed (and cleared) by every dispatch
    STATE = "state"  # Model state variables, written by every dispatch
    CONNECTIVITY = "connectivity"  # Pre/post neuron indices
    PARAMETER = "parameter"  # Per-component read-only data (bias, config index)
    CONFIG = "config"  # Per-configuration scratch values derived in init()


#: Buffer kinds an update function may write.
WRITTEN_KINDS = (BufferKind.OUTPUT, BufferKind.INPUT, BufferKind.STATE)


class DeviceBuffers:
    """Named host tensors, their optional device mirrors and freshness tokens.

    Args:
        owner: Name used in log messages (usually the collection class name)
    """

    def __init__(self, owner: str = "collection"):
        self.owner = owner
        self._host: Dict[str, torch.Tensor] = {}
        self._mirror: Dict[str, torch.Tensor] = {}
        self._kinds: Dict[str, BufferKind] = {}
        self._freshness: Dict[str, Freshness] = {}
        self._device: Optional[torch.device] = None
        self.transfer_counts: Dict[str, int] = {"to_device": 0, "to_host": 0}

    # =========================================================================
    # Device
    # =========================================================================

    @property
    def device(self) -> Optional[torch.device]:
        """Device holding the mirrors, or None when kernels use host tensors."""
        return self._device

    @property
    def is_mirrored(self) -> bool:
        return self._device is not None

    def attach(self, device: Union[str, torch.device]) -> None:
        """Mirror every buffer on ``device``.

        Pending device data from a previous attachment is pulled first so the
        switch completes synchronously without losing anything.
        """
        if isinstance(device, str):
            device = torch.device(device)
        if self._device == device:
            return
        if self._device is not None:
            self.detach()
        self._device = device
        for name in self._host:
            self._mirror[name] = self._host[name].to(device, copy=True)
            self.record_transfer("to_device")
            self._freshness[name] = Freshness.BOTH_FRESH
        logger.debug("%s: attached %d buffers to %s", self.owner, len(self._host), device)

    def detach(self) -> None:
        """Drop all mirrors after resolving device-fresh buffers to the host."""
        if self._device is None:
            return
        self.ensure_host_fresh(*self._host)
        self._mirror.clear()
        logger.debug("%s: detached from %s", self.owner, self._device)
        self._device = None
        for name in self._freshness:
            self._freshness[name] = Freshness.BOTH_FRESH

    def record_transfer(self, direction: str, count: int = 1) -> None:
        """Count a host↔device copy ('to_device' or 'to_host')."""
        self.transfer_counts[direction] += count

    def reset_transfer_counts(self) -> None:
        for direction in self.transfer_counts:
            self.transfer_counts[direction] = 0

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, name: str, tensor: torch.Tensor, kind: BufferKind) -> None:
        """Add or replace a host buffer. The mirror (if any) is refreshed."""
        self._host[name] = tensor
        self._kinds[name] = kind
        if self._device is not None:
            self._mirror[name] = tensor.to(self._device, copy=True)
            self.record_transfer("to_device")
        self._freshness[name] = Freshness.BOTH_FRESH

    def __contains__(self, name: object) -> bool:
        return name in self._host

    def __iter__(self) -> Iterator[str]:
        return iter(self._host)

    def __len__(self) -> int:
        return len(self._host)

    def names(self, *kinds: BufferKind) -> List[str]:
        """Buffer names in registration order, optionally filtered by kind."""
        if not kinds:
            return list(self._host)
        return [name for name, kind in self._kinds.items() if kind in kinds]

    def kind(self, name: str) -> BufferKind:
        return self._kinds[name]

    def host(self, name: str) -> torch.Tensor:
        """Raw host tensor. Callers resolve freshness themselves."""
        return self._host[name]

    def kernel_tensor(self, name: str) -> torch.Tensor:
        """Tensor an update function should operate on in the current strategy."""
        if self._device is not None:
            return self._mirror[name]
        return self._host[name]

    # =========================================================================
    # Freshness
    # =========================================================================

    def freshness(self, name: str) -> Freshness:
        return self._freshness[name]

    def put(self, name: str) -> None:
        """Copy host → device and mark both copies fresh."""
        if self._device is not None:
            host = self._host[name]
            mirror = self._mirror.get(name)
            if mirror is None or mirror.shape != host.shape or mirror.dtype != host.dtype:
                self._mirror[name] = host.to(self._device, copy=True)
            else:
                mirror.copy_(host)
            self.record_transfer("to_device")
        self._freshness[name] = Freshness.BOTH_FRESH

    def get(self, name: str) -> None:
        """Copy device → host and mark both copies fresh."""
        if self._device is not None:
            self._host[name].copy_(self._mirror[name])
            self.record_transfer("to_host")
        self._freshness[name] = Freshness.BOTH_FRESH

    def ensure_host_fresh(self, *names: str) -> None:
        """Pull every named buffer whose device copy is newer."""
        for name in names:
            if self._freshness[name] is Freshness.DEVICE_FRESH:
                self.get(name)

    def ensure_device_fresh(self, *names: str) -> None:
        """Push every named buffer whose host copy is newer."""
        for name in names:
            if self._freshness[name] is Freshness.HOST_FRESH:
                self.put(name)

    def ensure_host_fresh_all(self) -> None:
        self.ensure_host_fresh(*self._host)

    def ensure_device_fresh_all(self) -> None:
        self.ensure_device_fresh(*self._host)

    def mark_host_modified(self, *names: str) -> None:
        """Record that the host copies were written (resolve them first)."""
        for name in names:
            self._freshness[name] = Freshness.HOST_FRESH

    def mark_device_modified(self, *names: str) -> None:
        """Record that the device copies were written by a dispatch."""
        for name in names:
            self._freshness[name] = Freshness.DEVICE_FRESH

    def mark_kinds_device_modified(self, *kinds: BufferKind) -> None:
        self.mark_device_modified(*self.names(*kinds))

    def any_in_state(self, freshness: Freshness, names: Iterable[str]) -> bool:
        return any(self._freshness[name] is freshness for name in names)


class KernelBuffers:
    """Named tensors (and scalars) handed to an update function for one dispatch.

    Attribute access reads an entry, so update functions are written as
    ``buf.outputs[start:stop] = buf.inputs[start:stop]``.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[str, Any]):
        self._entries: Dict[str, Any] = dict(entries)

    def __getattr__(self, name: str) -> Any:
        try:
            return self._entries[name]
        except KeyError:
            raise AttributeError(
                f"No buffer named '{name}' in this dispatch. "
                f"Available: {sorted(self._entries)}"
            ) from None

    def __getitem__(self, name: str) -> Any:
        return self._entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def keys(self) -> List[str]:
        return list(self._entries)

    def replace(self, **overrides: Any) -> "KernelBuffers":
        """Copy with some entries swapped (e.g. per-chunk accumulators)."""
        entries = dict(self._entries)
        entries.update(overrides)
        return KernelBuffers(entries)


__all__ = [
    "Freshness",
    "BufferKind",
    "WRITTEN_KINDS",
    "DeviceBuffers",
    "KernelBuffers",
]
