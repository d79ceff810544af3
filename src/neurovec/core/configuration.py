"""
Component Configurations - shared parameter sets for neurons and synapses.

A configuration is a small bag of named scalar parameters that many
components of one collection share. Components reference a configuration by
its index in the collection's configuration list (the indirection table), so
identity matters: two equal configurations at different indices are still
two configurations.

Parameter Tables:
=================
Parameters are ordinary dataclass fields declared with :func:`parameter`.
The set of such fields is the configuration type's parameter table, which
gives generic by-name access without any runtime attribute discovery:

    @dataclass(eq=False)
    class SigmoidNeuronConfiguration(NeuronConfiguration):
        slope: float = parameter(1.0, "Slope of the sigmoid")

    config = SigmoidNeuronConfiguration()
    config.get_parameter_names()          # ("slope",)
    config.set_parameter_value("slope", 4.0)   # fires a change event

Change Notifications:
=====================
Collections subscribe to every configuration they hold. Any mutation made
through :meth:`ComponentConfiguration.set_parameter_value` notifies them; code
that assigns fields directly must call :meth:`fire_change_event` afterwards.
A notified collection re-runs ``init()`` and ``reset()``.

Author: Neurovec Project
"""

from __future__ import annotations

from dataclasses import Field, dataclass, field, fields
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
    runtime_checkable,
)

from neurovec.errors import ConfigurationError, check_index

PARAMETER_KEY = "neurovec_parameter"


def parameter(default: Any, doc: str = "") -> Any:
    """Declare a configuration parameter field.

    Args:
        default: Default value (float, int or bool)
        doc: Short human readable description, shown by ``describe()``
    """
    return field(default=default, metadata={PARAMETER_KEY: True, "doc": doc})


@runtime_checkable
class ConfigurationListener(Protocol):
    """Anything that wants to hear about configuration changes."""

    def configuration_changed(self, configuration: "ComponentConfiguration") -> None:
        ...


@dataclass(eq=False)
class ComponentConfiguration:
    """Base class for neuron and synapse configurations.

    Sub-classes declare their parameters with :func:`parameter` and may
    provide named presets through ``PRESETS`` (preset name → parameter values).
    Override :meth:`validate` to enforce parameter constraints; it runs on
    construction and before every change notification.
    """

    PRESETS: ClassVar[Dict[str, Dict[str, float]]] = {}

    name: Optional[str] = field(default=None, kw_only=True)
    """Name of the configuration (a preset name or any label)."""

    _listeners: List[ConfigurationListener] = field(
        default_factory=list, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check parameter constraints. Raise ConfigurationError on violation."""

    # =========================================================================
    # Parameter table
    # =========================================================================

    @classmethod
    def parameter_fields(cls) -> Tuple[Field, ...]:
        """The parameter table of this configuration type, in declaration order."""
        table = cls.__dict__.get("_parameter_table")
        if table is None:
            table = tuple(f for f in fields(cls) if f.metadata.get(PARAMETER_KEY, False))
            cls._parameter_table = table
        return table

    @classmethod
    def get_parameter_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in cls.parameter_fields())

    def get_parameter_value(self, param: str) -> float:
        """Get a parameter value as a float (bools map to 0/1)."""
        self._check_parameter(param)
        return float(getattr(self, param))

    def get_parameter_values(self) -> Tuple[float, ...]:
        """Parameter values in the order given by :meth:`get_parameter_names`."""
        return tuple(self.get_parameter_value(p) for p in self.get_parameter_names())

    def set_parameter_value(
        self,
        param: str,
        value: float,
        suppress_change_event: bool = False,
    ) -> None:
        """Set a parameter by name.

        The value is converted to the parameter's type: a bool parameter
        becomes ``value > 0``, an int parameter is rounded, anything else is
        stored as float.

        Raises:
            ConfigurationError: If ``param`` is not a parameter of this type,
                or the new value violates :meth:`validate` (the previous value
                is kept)
        """
        self._check_parameter(param)
        current = getattr(self, param)
        if isinstance(current, bool):
            coerced: Union[bool, int, float] = value > 0
        elif isinstance(current, int):
            coerced = int(round(value))
        else:
            coerced = float(value)
        setattr(self, param, coerced)
        try:
            self.validate()
        except ConfigurationError:
            setattr(self, param, current)
            raise

        if not suppress_change_event:
            self.fire_change_event()

    def set_parameter_values(
        self,
        values: Union[Sequence[float], Mapping[str, float]],
        suppress_change_event: bool = False,
    ) -> None:
        """Set several parameters, firing at most one change event.

        Either every value is applied or, if one of them is rejected, none is.

        Args:
            values: Either a mapping of parameter name to value or a sequence
                in the order given by :meth:`get_parameter_names`
        """
        if isinstance(values, Mapping):
            items = list(values.items())
        else:
            names = self.get_parameter_names()
            if len(values) != len(names):
                raise ConfigurationError(
                    f"{type(self).__name__} has {len(names)} parameters, "
                    f"got {len(values)} values"
                )
            items = list(zip(names, values))

        previous = {p: getattr(self, p) for p in self.get_parameter_names()}
        try:
            for param, value in items:
                self.set_parameter_value(param, value, suppress_change_event=True)
        except ConfigurationError:
            for param, value in previous.items():
                setattr(self, param, value)
            raise

        if not suppress_change_event and items:
            self.fire_change_event()

    def _check_parameter(self, param: str) -> None:
        if param not in self.get_parameter_names():
            raise ConfigurationError(
                f"{type(self).__name__} has no parameter '{param}'. "
                f"Parameters: {list(self.get_parameter_names())}"
            )

    # =========================================================================
    # Presets
    # =========================================================================

    @classmethod
    def get_preset_names(cls) -> Tuple[str, ...]:
        return tuple(cls.PRESETS.keys())

    @classmethod
    def get_preset(cls, index: int) -> "ComponentConfiguration":
        """Create a new configuration from the preset at ``index``."""
        names = cls.get_preset_names()
        check_index(index, len(names), "preset index")
        preset_name = names[index]
        config = cls(name=preset_name)
        config.set_parameter_values(cls.PRESETS[preset_name], suppress_change_event=True)
        return config

    @classmethod
    def get_presets(cls) -> List["ComponentConfiguration"]:
        return [cls.get_preset(i) for i in range(len(cls.PRESETS))]

    def get_matching_preset(self) -> int:
        """Index of the preset equal to this configuration, or -1."""
        for index, preset in enumerate(self.get_presets()):
            if preset == self:
                return index
        return -1

    def create_configuration(self) -> "ComponentConfiguration":
        """Factory for a fresh default configuration of the same type."""
        return type(self)()

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: ConfigurationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ConfigurationListener) -> None:
        # Remove by identity: listeners may define their own equality.
        for i, existing in enumerate(self._listeners):
            if existing is listener:
                del self._listeners[i]
                return

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def fire_change_event(self) -> None:
        """Notify all listeners that parameter values have changed.

        Call this after assigning parameter fields directly.
        """
        self.validate()
        for listener in list(self._listeners):
            listener.configuration_changed(self)

    # =========================================================================
    # Comparison / display
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        """Configurations are equal if they share a type and parameter values."""
        if not isinstance(other, ComponentConfiguration) or type(other) is not type(self):
            return NotImplemented
        return self.get_parameter_values() == other.get_parameter_values()

    __hash__ = None  # type: ignore[assignment]

    def describe(self) -> Dict[str, str]:
        """Parameter name → documentation string."""
        return {f.name: f.metadata.get("doc", "") for f in self.parameter_fields()}

    def __str__(self) -> str:
        lines = [f"Configuration for {type(self).__name__}:"]
        for param in self.get_parameter_names():
            lines.append(f"\t{param}: {getattr(self, param)}")
        return "\n".join(lines)


@dataclass(eq=False)
class NeuronConfiguration(ComponentConfiguration):
    """Base class for neuron configurations."""


@dataclass(eq=False)
class SynapseConfiguration(ComponentConfiguration):
    """Base class for synapse configurations.

    Plasticity models clamp efficacy to [minimum_efficacy, maximum_efficacy].
    """

    minimum_efficacy: float = parameter(0.0, "Lower bound on efficacy")
    maximum_efficacy: float = parameter(1.0, "Upper bound on efficacy")

    def validate(self) -> None:
        super().validate()
        if self.minimum_efficacy > self.maximum_efficacy:
            raise ConfigurationError(
                f"minimum_efficacy ({self.minimum_efficacy}) must not exceed "
                f"maximum_efficacy ({self.maximum_efficacy})"
            )


__all__ = [
    "parameter",
    "ConfigurationListener",
    "ComponentConfiguration",
    "NeuronConfiguration",
    "SynapseConfiguration",
]
