"""Tests for the catalog registry and exemplar identity."""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from catalog.exemplars import ALL_EXEMPLARS, Exemplar, VulnerabilityKind
from catalog.exemplars.overflow import IntegerOverflowExemplar
from catalog.exemplars.reentrancy import ReentrancyExemplar
from catalog.registry import (
    DuplicateKindConflict,
    ExemplarNotFound,
    Registry,
    RegistryFrozenError,
    build_registry,
)


class AlternateOverflowExemplar(IntegerOverflowExemplar):
    name = "Alternate overflow exemplar"


class TestVulnerabilityKind:
    """Kind parsing and naming."""

    def test_fifteen_kinds(self):
        assert len(VulnerabilityKind) == 15

    @pytest.mark.parametrize("text", ["IntegerOverflow", "INTEGER_OVERFLOW", "integer-overflow",
                                      "integer_overflow", "overflow", "integeroverflow"])
    def test_parse_forms(self, text):
        assert VulnerabilityKind.parse(text) is VulnerabilityKind.INTEGER_OVERFLOW

    def test_parse_short_aliases(self):
        assert VulnerabilityKind.parse("dos") is VulnerabilityKind.DENIAL_OF_SERVICE
        assert VulnerabilityKind.parse("flash") is VulnerabilityKind.FLASH_LOAN
        assert VulnerabilityKind.parse("random") is VulnerabilityKind.RANDOM_MANIPULATION

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            VulnerabilityKind.parse("buffer-overflow")

    def test_slug(self):
        assert VulnerabilityKind.DENIAL_OF_SERVICE.slug == "denial-of-service"


class TestExemplarIdentity:
    """Exemplar instances are immutable with a static kind."""

    def test_every_kind_has_an_exemplar(self):
        kinds = {constructor.kind for constructor in ALL_EXEMPLARS}
        assert kinds == set(VulnerabilityKind)

    def test_kind_is_stable(self):
        exemplar = ReentrancyExemplar()
        assert exemplar.kind is exemplar.kind is VulnerabilityKind.REENTRANCY

    def test_immutable(self):
        exemplar = ReentrancyExemplar()
        with pytest.raises(AttributeError):
            exemplar.name = "changed"

    def test_to_dict(self):
        data = IntegerOverflowExemplar().to_dict()
        assert data["kind"] == "IntegerOverflow"
        assert "ArithmeticOverflow" in data["contained_failures"]
        assert data["compromise_failures"] == ["ArithmeticOverflow"]
        assert data["rejection_failures"] == ["InsufficientFunds", "InvalidInput"]
        assert len(data["annotations"]) == 2

    def test_contained_failures_is_union(self):
        exemplar = IntegerOverflowExemplar()
        assert set(exemplar.contained_failures) == (
            set(exemplar.compromise_failures) | set(exemplar.rejection_failures)
        )


class TestRegistry:
    """register / get / all semantics."""

    def setup_method(self):
        self.registry = Registry()

    def test_register_and_get(self):
        exemplar = ReentrancyExemplar()
        self.registry.register(exemplar)
        assert self.registry.get(VulnerabilityKind.REENTRANCY) is exemplar
        assert self.registry.get("reentrancy") is exemplar
        assert VulnerabilityKind.REENTRANCY in self.registry

    def test_get_missing_raises(self):
        with pytest.raises(ExemplarNotFound):
            self.registry.get(VulnerabilityKind.FLASH_LOAN)

    def test_get_missing_is_key_error(self):
        with pytest.raises(KeyError):
            self.registry.get("no-such-kind")

    def test_last_write_wins(self, caplog):
        """A second registration for a kind replaces the first and logs it."""
        first = IntegerOverflowExemplar()
        second = AlternateOverflowExemplar()
        self.registry.register(ReentrancyExemplar())
        self.registry.register(first)
        with caplog.at_level(logging.WARNING, logger="catalog.registry"):
            self.registry.register(second)
        assert self.registry.get(VulnerabilityKind.INTEGER_OVERFLOW) is second
        assert "Replacing exemplar" in caplog.text
        assert "AlternateOverflowExemplar" in caplog.text
        assert len(self.registry) == 2

    def test_replacement_keeps_iteration_slot(self):
        self.registry.register(IntegerOverflowExemplar())
        self.registry.register(ReentrancyExemplar())
        self.registry.register(AlternateOverflowExemplar())
        names = [type(e).__name__ for e in self.registry.all()]
        assert names == ["AlternateOverflowExemplar", "ReentrancyExemplar"]

    def test_all_is_restartable(self):
        for constructor in ALL_EXEMPLARS[:3]:
            self.registry.register(constructor())
        assert list(self.registry.all()) == list(self.registry.all())
        assert len(list(self.registry.all())) == 3

    def test_strict_conflict(self):
        registry = Registry(strict=True)
        registry.register(IntegerOverflowExemplar())
        with pytest.raises(DuplicateKindConflict):
            registry.register(AlternateOverflowExemplar())

    def test_strict_allows_same_class(self):
        registry = Registry(strict=True)
        registry.register(IntegerOverflowExemplar())
        registry.register(IntegerOverflowExemplar())
        assert len(registry) == 1

    def test_register_rejects_non_exemplar(self):
        with pytest.raises(TypeError):
            self.registry.register(object())

    def test_frozen_registry(self):
        self.registry.freeze()
        assert self.registry.frozen
        with pytest.raises(RegistryFrozenError):
            self.registry.register(ReentrancyExemplar())


class TestBuildRegistry:
    """The explicit build step."""

    def test_full_catalog(self):
        registry = build_registry()
        assert len(registry) == 15
        assert registry.frozen
        assert registry.missing_kinds() == []
        assert registry.kinds() == [c.kind for c in ALL_EXEMPLARS]

    def test_partial_catalog_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="catalog.registry"):
            registry = build_registry([ReentrancyExemplar])
        assert len(registry) == 1
        assert "No exemplar registered for" in caplog.text
        assert VulnerabilityKind.FLASH_LOAN in registry.missing_kinds()

    def test_duplicate_constructors_last_wins(self):
        registry = build_registry([IntegerOverflowExemplar, AlternateOverflowExemplar])
        assert isinstance(registry.get("overflow"), AlternateOverflowExemplar)
        assert isinstance(registry.get("overflow"), Exemplar)
