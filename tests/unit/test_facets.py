"""
Unit tests for facet resolution and the facet / stats CTEs.

Run with: PYTHONPATH=src python -m pytest tests/unit/test_facets.py -v
"""

import pytest

from config.indexes import IndexSettings
from searchbox.facets import (
    FacetSelection,
    FacetSpec,
    build_facet_fragments,
    escape_like,
    facet_count_cte,
    facet_value_search,
    resolve_facet_spec,
    stats_cte,
)
from searchbox.sql import render


class TestFacetSelection:
    """The facets parameter is normalized once."""

    @pytest.mark.parametrize("raw", ["*", ["*"], ["brand", "*"]])
    def test_wildcard(self, raw):
        """Test that "*" in any form selects every configured facet."""
        assert FacetSelection.from_raw(raw).wildcard is True

    def test_single_string(self):
        """Test that a bare string selects one attribute."""
        assert FacetSelection.from_raw("brand").attributes == ("brand",)

    def test_list_is_deduplicated(self):
        """Test that repeated attributes are kept once in first-seen order."""
        assert FacetSelection.from_raw(["brand", "color", "brand"]).attributes == ("brand", "color")

    def test_none_is_empty(self):
        """Test that missing facets select nothing."""
        assert FacetSelection.from_raw(None).is_empty


class TestResolveFacetSpec:

    def test_wildcard_uses_configured_facets_without_filter_only(self, index_settings):
        """Test that the wildcard expands to configured facets minus filterOnly ones."""
        spec = resolve_facet_spec(FacetSelection(wildcard=True), index_settings)
        assert spec.attributes == ("brand", "color")

    def test_explicit_list_narrowed_to_configured(self, index_settings):
        """Test that unconfigured attributes are dropped from an explicit list."""
        spec = resolve_facet_spec(FacetSelection(attributes=("brand", "sku", "made_up")), index_settings)
        assert spec.attributes == ("brand",)

    def test_explicit_list_kept_when_config_allows_any(self):
        """Test that an explicit list is kept whole when no facets are configured."""
        settings = IndexSettings()
        spec = resolve_facet_spec(FacetSelection(attributes=("brand", "color")), settings)
        assert spec.attributes == ("brand", "color")

    def test_defaults_come_from_settings(self, index_settings):
        """Test that facet limits and order default to the index settings."""
        spec = resolve_facet_spec(FacetSelection(), index_settings)
        assert spec.max_values_per_facet == 10
        assert spec.sort_facet_values_by == "count"
        assert spec.stats_attributes == ("price",)

    def test_request_overrides(self, index_settings):
        """Test that request parameters override the index defaults."""
        spec = resolve_facet_spec(FacetSelection(), index_settings, 3, "alpha")
        assert spec.max_values_per_facet == 3
        assert spec.sort_facet_values_by == "alpha"


class TestFacetCtes:

    def test_count_cte_orders_by_count_then_value(self):
        """Test that counts are ordered by count descending then by value."""
        text = render(facet_count_cte("all_selection", "brand", 10, "count"))
        assert 'count(*) AS "count"' in text
        assert 'FROM "all_selection"' in text
        assert '"brand" IS NOT NULL' in text
        assert 'GROUP BY "brand"' in text
        assert 'ORDER BY "count" DESC, "brand" ASC' in text
        assert "LIMIT 10" in text
        assert 'ORDER BY counted."count" DESC, counted.value ASC' in text

    def test_count_cte_alpha_order(self):
        """Test that alpha order sorts facet values ascending."""
        text = render(facet_count_cte("all_selection", "brand", 5, "alpha"))
        assert 'ORDER BY "brand" ASC' in text
        assert "ORDER BY counted.value ASC" in text
        assert "LIMIT 5" in text

    def test_empty_facet_is_empty_object(self):
        """Test that a facet with no values aggregates to an empty object."""
        text = render(facet_count_cte("all_selection", "brand", 5, "count"))
        assert "'{}'::json" in text

    def test_stats_cte(self):
        """Test that the stats CTE selects min and max of the attribute."""
        text = render(stats_cte("all_selection", "price"))
        assert "'min', min(\"price\")" in text
        assert "'max', max(\"price\")" in text
        assert "'avg', round(avg(\"price\")::numeric, 4)" in text
        assert "'sum', sum(\"price\")" in text
        assert '"price" IS NOT NULL' in text


class TestBuildFacetFragments:

    def test_one_cte_per_facet_and_stat(self):
        """Test that each facet and stats attribute gets its own CTE."""
        spec = FacetSpec(attributes=("brand", "color"), max_values_per_facet=10, stats_attributes=("price",))
        fragments = build_facet_fragments(spec, "all_selection")

        assert [name for name, _ in fragments.ctes] == ["facet_0", "facet_1", "stats_0"]
        facets_json = render(fragments.facets_json)
        assert facets_json == (
            "json_build_object('brand', (SELECT \"json\" FROM \"facet_0\"), "
            "'color', (SELECT \"json\" FROM \"facet_1\"))"
        )
        assert render(fragments.stats_json) == (
            "json_build_object('price', (SELECT \"json\" FROM \"stats_0\"))"
        )

    def test_nothing_to_count_omits_json(self):
        """Test that no facets means no CTEs and no facets JSON."""
        fragments = build_facet_fragments(FacetSpec(attributes=(), max_values_per_facet=10), "all_selection")
        assert fragments.ctes == []
        assert fragments.facets_json is None
        assert fragments.stats_json is None


class TestFacetValueSearch:

    def test_escape_like(self):
        """Test that LIKE wildcards in the facet query are escaped."""
        assert escape_like("50%_off") == "50\\%\\_off"

    def test_statement_shape(self):
        """Test that the facet value search matches, highlights and limits values."""
        text = render(facet_value_search("all_selection", "color", "re", "<em>", "</em>", 7))
        assert "\"color\"::text ILIKE '%re%'" in text
        assert "'<em>'" in text and "'</em>'" in text
        assert 'ORDER BY matched."count" DESC, matched.value ASC' in text
        assert "LIMIT 7" in text
        assert "AS highlighted" in text
