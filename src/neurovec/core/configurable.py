"""
Configurable Component Collection - components sharing configuration objects.

Every component holds an index into the collection's configuration list (the
indirection table ``config_index``). Models turn the configuration list into
per-configuration scratch tensors in :meth:`ConfigurableComponentCollection._config_arrays`,
and their update functions gather from those tensors through the table:

    def _config_arrays(self):
        return {"slope": [c.slope for c in self.configurations]}

    def update(self, buf, start, stop):
        slope = buf.slope[buf.config_index[start:stop]]

The collection subscribes to each configuration it holds; a change
notification re-runs ``init()`` (rebuilding the scratch tensors) and ``reset()``.

Author: Neurovec Project
"""

from __future__ import annotations

import logging
from typing import ClassVar, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from neurovec.config.base import CollectionConfig
from neurovec.core.buffers import BufferKind
from neurovec.core.collection import INDEX_DTYPE, ComponentCollection
from neurovec.core.configuration import ComponentConfiguration
from neurovec.errors import ConfigurationError, check_index, check_index_tensor
from neurovec.typing import IndexLike, as_tensor

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=ComponentConfiguration)


class ConfigurableComponentCollection(ComponentCollection, Generic[C]):
    """Collection whose components reference shared configurations.

    Class attributes:
        configuration_type: Configuration class this model accepts (None for
            parameterless models)
        requires_configuration: Stepping without any configuration raises
            ConfigurationError
    """

    configuration_type: ClassVar[Optional[Type[ComponentConfiguration]]] = None
    requires_configuration: ClassVar[bool] = False

    _configuration_singletons: ClassVar[Dict[type, ComponentConfiguration]] = {}

    def __init__(self, size: int, config: Optional[CollectionConfig] = None):
        self._configs: List[C] = []
        super().__init__(size, config)

    def init(self) -> None:
        super().init()
        self.allocate("config_index", BufferKind.PARAMETER, dtype=INDEX_DTYPE)
        if self._configs:
            check_index_tensor(
                self._buffers.host("config_index"), len(self._configs), "configuration indices"
            )
        for name, values in self._config_arrays().items():
            self.set_config_buffer(name, values)

    def _config_arrays(self) -> Dict[str, Sequence[float]]:
        """Per-configuration scratch arrays (name → one value per configuration)."""
        return {}

    @property
    def can_step(self) -> bool:
        return super().can_step and not (self.requires_configuration and not self._configs)

    def _check_ready(self) -> None:
        super()._check_ready()
        if self.requires_configuration and not self._configs:
            raise ConfigurationError(
                f"{type(self).__name__} needs at least one configuration before it can step"
            )

    # =========================================================================
    # Configuration list
    # =========================================================================

    @property
    def configurations(self) -> Tuple[C, ...]:
        return tuple(self._configs)

    @property
    def configuration_count(self) -> int:
        return len(self._configs)

    def get_configuration(self, index: int) -> C:
        check_index(index, len(self._configs), "configuration index")
        return self._configs[index]

    def add_configuration(self, configuration: C) -> int:
        """Append a configuration and return its index."""
        self._check_configuration_type(configuration)
        self._configs.append(configuration)
        configuration.add_listener(self)
        self.init()
        return len(self._configs) - 1

    def set_configuration(self, index: int, configuration: C) -> None:
        """Replace the configuration at an existing index.

        Raises:
            InvalidArgumentError: If no configuration exists at ``index``
        """
        check_index(index, len(self._configs), "configuration index")
        self._check_configuration_type(configuration)
        self._configs[index].remove_listener(self)
        self._configs[index] = configuration
        configuration.add_listener(self)
        self.init()

    def _check_configuration_type(self, configuration: ComponentConfiguration) -> None:
        expected = self.configuration_type
        if expected is not None and not isinstance(configuration, expected):
            raise ConfigurationError(
                f"{type(self).__name__} expects {expected.__name__}, "
                f"got {type(configuration).__name__}"
            )

    def get_configuration_singleton(self) -> Optional[C]:
        """Shared default instance of this model's configuration type."""
        config_type = self.configuration_type
        if config_type is None:
            return None
        singleton = self._configuration_singletons.get(config_type)
        if singleton is None:
            singleton = config_type()
            self._configuration_singletons[config_type] = singleton
        return singleton  # type: ignore[return-value]

    def configuration_changed(self, configuration: ComponentConfiguration) -> None:
        logger.debug("%s: configuration changed, re-initialising", type(self).__name__)
        self.init()
        self.reset()

    # =========================================================================
    # Indirection table
    # =========================================================================

    def get_component_configuration_index(self, component: int) -> int:
        check_index(component, self._size, "component index")
        return int(self._buffers.host("config_index")[component])

    def get_component_configuration(self, component: int) -> C:
        index = self.get_component_configuration_index(component)
        check_index(index, len(self._configs), "configuration index")
        return self._configs[index]

    def set_component_configuration(self, component: int, configuration_index: int) -> None:
        """Point component at the configuration with the given index.

        No ``init()`` is needed; the table is pushed before the next dispatch.
        """
        check_index(component, self._size, "component index")
        check_index(configuration_index, len(self._configs), "configuration index")
        self._buffers.host("config_index")[component] = configuration_index
        self._buffers.mark_host_modified("config_index")

    def set_component_configurations(self, configuration_indices: IndexLike, start: int = 0) -> None:
        """Bulk version of :meth:`set_component_configuration`."""
        indices = as_tensor(configuration_indices, INDEX_DTYPE)
        self._check_span(start, indices.numel())
        check_index_tensor(indices, len(self._configs), "configuration indices")
        self._buffers.host("config_index")[start:start + indices.numel()] = indices
        self._buffers.mark_host_modified("config_index")

    def dispose(self) -> None:
        for configuration in self._configs:
            configuration.remove_listener(self)
        super().dispose()


__all__ = ["ConfigurableComponentCollection"]
