"""Parameter registry: which parameters are read from which box channels."""

from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ..core.exceptions import ConfigurationError
from ..core.models import ParameterBinding


class ParameterRegistry:
    """Read-only lookup of parameter bindings by box."""

    def __init__(self, bindings: Iterable[ParameterBinding]):
        self._bindings: Dict[str, ParameterBinding] = {}
        by_box: Dict[int, List[ParameterBinding]] = {}

        for binding in bindings:
            if binding.name in self._bindings:
                raise ConfigurationError(f"Parameter '{binding.name}' is bound twice")
            if not binding.has_valid_channels:
                logger.warning(
                    "Parameter '{}' binds box {} channels {}; channels outside 1..4 will read as errors",
                    binding.name, binding.box, list(binding.channels),
                )
            self._bindings[binding.name] = binding
            by_box.setdefault(binding.box, []).append(binding)

        self._by_box: Dict[int, Tuple[ParameterBinding, ...]] = {
            box: tuple(items) for box, items in by_box.items()
        }
        self._boxes = tuple(sorted(self._by_box))

    @classmethod
    def from_config(cls, config) -> 'ParameterRegistry':
        """Create a registry from the parameters of a Config."""
        return cls(config.parameters)

    def bindings_for_box(self, box: int) -> Tuple[ParameterBinding, ...]:
        """Bindings reading from a box, in configuration order."""
        return self._by_box.get(box, ())

    def all_boxes(self) -> Tuple[int, ...]:
        """Every referenced box, in ascending order."""
        return self._boxes

    def get(self, name: str) -> Optional[ParameterBinding]:
        """Get a binding by parameter name."""
        return self._bindings.get(name)

    def __getitem__(self, name: str) -> ParameterBinding:
        try:
            return self._bindings[name]
        except KeyError:
            raise KeyError(f"Unknown parameter '{name}'") from None

    @property
    def names(self) -> List[str]:
        """Parameter names in configuration order."""
        return list(self._bindings)

    def buffer_keys(self) -> List[Tuple[str, int]]:
        """Every (parameter, channel) pair collected in bounded mode."""
        return [key for binding in self._bindings.values() for key in binding.buffer_keys]

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, name: str) -> bool:
        return name in self._bindings

    def __iter__(self):
        return iter(self._bindings.values())
