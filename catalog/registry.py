"""Catalog registry: the single lookup from vulnerability kind to exemplar."""

import logging
from typing import Iterator, Optional

from catalog.exemplars import ALL_EXEMPLARS
from catalog.exemplars.base import Exemplar, VulnerabilityKind

logger = logging.getLogger(__name__)


class ExemplarNotFound(KeyError):
    """No exemplar is registered for the requested kind."""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"no exemplar registered for {kind}")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateKindConflict(ValueError):
    """Two different exemplar classes claim the same kind (strict mode only)."""


class RegistryFrozenError(RuntimeError):
    """register() was called after the registry was frozen."""


class Registry:
    """Maps each VulnerabilityKind to one exemplar.

    Registering a kind twice replaces the earlier exemplar (last write wins)
    and keeps the kind's original position in iteration order. With
    ``strict=True`` a replacement by a different exemplar class is an error.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._entries = {}
        self._frozen = False

    def register(self, exemplar: Exemplar) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"registry is frozen, cannot register {exemplar!r}")
        if not isinstance(exemplar, Exemplar):
            raise TypeError(f"expected an Exemplar instance, got {type(exemplar).__name__}")
        kind = VulnerabilityKind.parse(exemplar.kind)
        previous = self._entries.get(kind)
        if previous is not None:
            if self.strict and type(previous) is not type(exemplar):
                raise DuplicateKindConflict(
                    f"{type(exemplar).__name__} and {type(previous).__name__} both claim {kind}"
                )
            logger.warning(
                "Replacing exemplar for %s: %s -> %s",
                kind,
                type(previous).__name__,
                type(exemplar).__name__,
            )
        else:
            logger.debug("Registered %s for %s", type(exemplar).__name__, kind)
        self._entries[kind] = exemplar

    def get(self, kind) -> Exemplar:
        """Look up the exemplar for a kind, or anything VulnerabilityKind.parse accepts."""
        try:
            key = VulnerabilityKind.parse(kind)
        except ValueError:
            raise ExemplarNotFound(kind) from None
        try:
            return self._entries[key]
        except KeyError:
            raise ExemplarNotFound(key) from None

    def all(self) -> Iterator[Exemplar]:
        """Iterate exemplars in registration order."""
        yield from tuple(self._entries.values())

    def kinds(self) -> list[VulnerabilityKind]:
        return list(self._entries)

    def missing_kinds(self) -> list[VulnerabilityKind]:
        return [kind for kind in VulnerabilityKind if kind not in self._entries]

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, kind) -> bool:
        try:
            return VulnerabilityKind.parse(kind) in self._entries
        except ValueError:
            return False

    def __iter__(self) -> Iterator[Exemplar]:
        return self.all()


def build_registry(constructors: Optional[list] = None, strict: bool = False) -> Registry:
    """Instantiate and register every exemplar, then freeze the registry."""
    registry = Registry(strict=strict)
    for constructor in ALL_EXEMPLARS if constructors is None else constructors:
        registry.register(constructor())
    missing = registry.missing_kinds()
    if missing:
        logger.warning("No exemplar registered for: %s", ", ".join(str(k) for k in missing))
    registry.freeze()
    logger.debug("Registry built with %d exemplars", len(registry))
    return registry
