"""
Name-unique registries for validators and rules.

Each ValidationPipeline owns its own registries; nothing here is
process-global. Iteration follows registration order.
"""
from typing import Dict, Generic, Iterator, List, Optional, TypeVar
import logging

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NamedRegistry(Generic[T]):
    """Insertion-ordered mapping of unique names to items."""

    def __init__(self, kind: str):
        self._kind = kind
        self._items: Dict[str, T] = {}

    @property
    def kind(self) -> str:
        return self._kind

    def check_available(self, name: str) -> None:
        """Raise if `name` is already registered."""
        if name in self._items:
            raise ConfigurationError(
                f"{self._kind.capitalize()} '{name}' already registered",
                code=f"VALIDATION_DUPLICATE_{self._kind.upper()}",
                details={self._kind: name},
            )

    def register(self, name: str, item: T) -> None:
        self.check_available(name)
        self._items[name] = item
        logger.debug(f"Registered {self._kind}: {name}")

    def unregister(self, name: str) -> Optional[T]:
        item = self._items.pop(name, None)
        if item is not None:
            logger.debug(f"Unregistered {self._kind}: {name}")
        return item

    def get(self, name: str) -> Optional[T]:
        return self._items.get(name)

    def names(self) -> List[str]:
        return list(self._items)

    def values(self) -> List[T]:
        return list(self._items.values())

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))
