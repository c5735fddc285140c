"""Tests for the state catalog."""

from __future__ import annotations

import pytest

from mindstate.catalog import (
    DEFAULT_CATALOG,
    DEFAULT_DEFINITIONS,
    AmbiguityRule,
    StateCatalog,
)
from mindstate.errors import CatalogError
from mindstate.models import Band, StateCategory


class TestDefaultCatalog:
    def test_contents(self):
        assert len(DEFAULT_CATALOG) == 10
        assert DEFAULT_CATALOG.default_state.id == "ordinary_waking"
        assert DEFAULT_CATALOG.categories() == set(StateCategory)

    def test_awake_variant_lookup(self):
        definition = DEFAULT_CATALOG.get("lucid_like_awake")
        assert definition.id == "lucid_dreaming"
        assert "lucid_like_awake" in DEFAULT_CATALOG

    def test_unknown_id(self):
        assert "telepathy" not in DEFAULT_CATALOG
        with pytest.raises(CatalogError):
            DEFAULT_CATALOG.get("telepathy")

    def test_every_pattern_declares_a_dominant_band(self):
        assert all(d.pattern.dominant for d in DEFAULT_CATALOG)


class TestValidation:
    def test_duplicate_ids_rejected(self):
        with pytest.raises(CatalogError, match="Duplicate"):
            StateCatalog(DEFAULT_DEFINITIONS + DEFAULT_DEFINITIONS[:1], default_state_id="ordinary_waking")

    def test_unknown_default_rejected(self):
        with pytest.raises(CatalogError):
            StateCatalog(DEFAULT_DEFINITIONS, default_state_id="nope")

    def test_variant_cannot_be_default(self):
        with pytest.raises(CatalogError):
            StateCatalog(DEFAULT_DEFINITIONS, default_state_id="lucid_like_awake")

    def test_rule_with_unknown_state_rejected(self):
        rule = AmbiguityRule(
            state_ids=("samadhi", "nope"),
            discriminating_band=Band.ALPHA,
            low=0.1,
            high=0.2,
            label="x",
        )
        with pytest.raises(CatalogError):
            StateCatalog(DEFAULT_DEFINITIONS, default_state_id="ordinary_waking", ambiguity_rules=[rule])

    def test_catalog_error_is_a_value_error(self):
        assert issubclass(CatalogError, ValueError)
