"""Attack scenarios and the table that indexes them by kind."""

import copy
import dataclasses
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from catalog.exemplars.base import VulnerabilityKind


@dataclass(frozen=True)
class AttackScenario:
    """One attack against an exemplar.

    ``action(program, setup)`` drives a freshly constructed program and returns
    an observation dict; ``success_predicate(observation)`` says whether the
    attack achieved its goal.
    """

    kind: VulnerabilityKind
    ordinal: int
    name: str
    setup: Mapping[str, Any]
    action: Callable[[Any, dict], dict] = field(repr=False, compare=False)
    success_predicate: Callable[[dict], bool] = field(repr=False, compare=False)
    description: str = ""
    max_units: Optional[int] = None

    @property
    def key(self) -> tuple:
        return (self.kind, self.ordinal)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "ordinal": self.ordinal,
            "name": self.name,
            "description": self.description,
            "setup": copy.deepcopy(dict(self.setup)),
            "max_units": self.max_units,
        }


class ScenarioTable:
    """Attack scenarios keyed by ``(kind, ordinal)``."""

    def __init__(self, scenarios=(), version: str = "1"):
        self.version = version
        self._scenarios = {}
        for scenario in scenarios:
            self.add(scenario)

    def add(self, scenario: AttackScenario) -> None:
        self._scenarios[scenario.key] = scenario

    def get(self, kind, ordinal: int = 1) -> AttackScenario:
        key = (VulnerabilityKind.parse(kind), ordinal)
        try:
            return self._scenarios[key]
        except KeyError:
            raise KeyError(f"no scenario {key[0]}:{ordinal}") from None

    def for_kind(self, kind) -> list[AttackScenario]:
        kind = VulnerabilityKind.parse(kind)
        matches = [s for (k, _), s in self._scenarios.items() if k is kind]
        return sorted(matches, key=lambda s: s.ordinal)

    def kinds(self) -> list[VulnerabilityKind]:
        return [kind for kind in VulnerabilityKind if self.for_kind(kind)]

    def __iter__(self):
        return iter(sorted(self._scenarios.values(), key=lambda s: (list(VulnerabilityKind).index(s.kind), s.ordinal)))

    def __len__(self) -> int:
        return len(self._scenarios)

    def with_overrides(self, overrides: Mapping[str, Mapping[str, Any]]) -> "ScenarioTable":
        """Return a copy whose scenario setups are merged with ``overrides``.

        Keys are ``"Kind"`` (every scenario of that kind) or ``"Kind:ordinal"``.
        A key naming no scenario raises ValueError.
        """
        table = ScenarioTable(self._scenarios.values(), version=self.version)
        for key, values in overrides.items():
            if not isinstance(values, Mapping):
                raise ValueError(f"override for {key!r} must be an object")
            kind_text, _, ordinal_text = str(key).partition(":")
            try:
                kind = VulnerabilityKind.parse(kind_text)
            except ValueError:
                raise ValueError(f"unknown scenario override key {key!r}") from None
            if ordinal_text:
                try:
                    targets = [table.get(kind, int(ordinal_text))]
                except (KeyError, ValueError):
                    raise ValueError(f"unknown scenario override key {key!r}") from None
            else:
                targets = table.for_kind(kind)
                if not targets:
                    raise ValueError(f"no scenarios for override key {key!r}")
            for scenario in targets:
                merged = {**copy.deepcopy(dict(scenario.setup)), **copy.deepcopy(dict(values))}
                table.add(dataclasses.replace(scenario, setup=merged))
        return table

    def load_overrides(self, path) -> "ScenarioTable":
        """Apply overrides read from a JSON file."""
        with open(Path(path), "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object of overrides")
        return self.with_overrides(data)
