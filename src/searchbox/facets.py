"""
Facet counts and numeric stats as CTEs over the filtered row set.

Each requested facet becomes one CTE producing a single JSON object of
value -> count, already ordered and capped at maxValuesPerFacet. Each
numeric attribute configured for filtering gets a CTE with min/max/avg/sum.
The final SELECT picks the "json" column of each CTE into the response
object; with nothing to count the key is left out entirely.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from psycopg import sql

from config.indexes import IndexSettings
from config.constants import WILDCARD
from searchbox.sql import IsNotNull, ident, join, literal


SORT_BY_COUNT = "count"
SORT_BY_ALPHA = "alpha"

# Cast target for the stats aggregates so avg can be rounded
STATS_AVG_PRECISION = 4


@dataclass(frozen=True)
class FacetSelection:
    """The facets parameter normalized to either "*" or a list of names."""

    wildcard: bool = False
    attributes: Tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: Any) -> "FacetSelection":
        if raw is None:
            return cls()
        if isinstance(raw, str):
            raw = [raw]
        names = tuple(dict.fromkeys(str(name) for name in raw if name))
        if WILDCARD in names:
            return cls(wildcard=True)
        return cls(attributes=names)

    @property
    def is_empty(self) -> bool:
        return not self.wildcard and not self.attributes


@dataclass(frozen=True)
class FacetSpec:
    attributes: Tuple[str, ...]
    max_values_per_facet: int
    sort_facet_values_by: str = SORT_BY_COUNT
    stats_attributes: Tuple[str, ...] = ()


def resolve_facet_spec(
    selection: FacetSelection,
    settings: IndexSettings,
    max_values_per_facet: Optional[int] = None,
    sort_facet_values_by: Optional[str] = None,
) -> FacetSpec:
    """
    Decide which attributes get counted.

    "*" expands to the configured facet attributes (filterOnly ones never
    counted). An explicit list is kept as requested when faceting config
    contains "*", otherwise narrowed to the configured attributes.
    """
    if selection.wildcard:
        attributes = list(settings.facet_attributes)
    elif settings.allows_any_facet:
        attributes = list(selection.attributes)
    else:
        allowed = set(settings.facet_attributes)
        attributes = [a for a in selection.attributes if a in allowed]

    stats = [a for a in settings.numeric_attributes_for_filtering if a != WILDCARD]

    return FacetSpec(
        attributes=tuple(dict.fromkeys(attributes)),
        max_values_per_facet=max_values_per_facet or settings.max_values_per_facet,
        sort_facet_values_by=sort_facet_values_by or settings.sort_facet_values_by,
        stats_attributes=tuple(dict.fromkeys(stats)),
    )


# =============================================================================
# CTE Emitters
# =============================================================================

@dataclass
class FacetFragments:
    """CTEs to append after the hits CTE plus the JSON pairs that read them."""

    ctes: List[Tuple[str, sql.Composable]] = field(default_factory=list)
    facets_json: Optional[sql.Composable] = None
    stats_json: Optional[sql.Composable] = None


def facet_count_cte(source: str, attribute: str, max_values: int, sort_by: str) -> sql.Composable:
    """
    Count the top values of one attribute in the source CTE.

    The inner query orders and limits; the aggregate re-applies the order
    so the JSON object keys come out in the same order.
    """
    column = ident(attribute)
    if sort_by == SORT_BY_ALPHA:
        inner_order = sql.SQL("{} ASC").format(column)
        agg_order = sql.SQL("counted.value ASC")
    else:
        inner_order = sql.SQL('"count" DESC, {} ASC').format(column)
        agg_order = sql.SQL('counted."count" DESC, counted.value ASC')

    return sql.SQL(
        "SELECT COALESCE(json_object_agg(counted.value, counted.\"count\" ORDER BY {agg_order}), "
        "'{{}}'::json) AS \"json\" "
        "FROM ( "
        "SELECT {column} AS value, count(*) AS \"count\" "
        "FROM {source} "
        "WHERE {not_null} "
        "GROUP BY {column} "
        "ORDER BY {inner_order} "
        "LIMIT {limit} "
        ") counted"
    ).format(
        agg_order=agg_order,
        column=column,
        not_null=IsNotNull(attribute).compose(),
        source=ident(source),
        inner_order=inner_order,
        limit=literal(int(max_values)),
    )


def stats_cte(source: str, attribute: str) -> sql.Composable:
    column = ident(attribute)
    return sql.SQL(
        "SELECT json_build_object("
        "'min', min({column}), "
        "'max', max({column}), "
        "'avg', round(avg({column})::numeric, {precision}), "
        "'sum', sum({column})"
        ") AS \"json\" "
        "FROM {source} "
        "WHERE {not_null}"
    ).format(
        column=column,
        not_null=IsNotNull(attribute).compose(),
        precision=literal(STATS_AVG_PRECISION),
        source=ident(source),
    )


def _json_object(pairs: Sequence[Tuple[str, str]]) -> sql.Composable:
    """json_build_object('attr', (SELECT "json" FROM cte), ...)"""
    return sql.SQL("json_build_object({})").format(
        join(", ", (
            sql.SQL('{}, (SELECT "json" FROM {})').format(literal(attribute), ident(cte))
            for attribute, cte in pairs
        ))
    )


def build_facet_fragments(spec: FacetSpec, source: str) -> FacetFragments:
    fragments = FacetFragments()

    facet_pairs = []
    for i, attribute in enumerate(spec.attributes):
        name = f"facet_{i}"
        fragments.ctes.append((
            name,
            facet_count_cte(source, attribute, spec.max_values_per_facet, spec.sort_facet_values_by),
        ))
        facet_pairs.append((attribute, name))

    stats_pairs = []
    for i, attribute in enumerate(spec.stats_attributes):
        name = f"stats_{i}"
        fragments.ctes.append((name, stats_cte(source, attribute)))
        stats_pairs.append((attribute, name))

    if facet_pairs:
        fragments.facets_json = _json_object(facet_pairs)
    if stats_pairs:
        fragments.stats_json = _json_object(stats_pairs)
    return fragments


# =============================================================================
# Facet Value Search
# =============================================================================

def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally (default escape \\)."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def facet_value_search(
    source: str,
    attribute: str,
    facet_query: str,
    pre_tag: str,
    post_tag: str,
    max_facet_hits: int,
) -> sql.Composable:
    """
    Values of one facet containing facet_query (case-insensitive), counted
    over the source CTE, with the first match wrapped in the highlight tags.

    Rows: (value, count, highlighted).
    """
    column = ident(attribute)
    q = literal(facet_query)
    pos = sql.SQL("strpos(lower(matched.value), lower({}))").format(q)

    return sql.SQL(
        "SELECT matched.value, matched.\"count\", "
        "CASE WHEN {pos} > 0 THEN "
        "substr(matched.value, 1, {pos} - 1) || {pre} || "
        "substr(matched.value, {pos}, char_length({q})) || {post} || "
        "substr(matched.value, {pos} + char_length({q})) "
        "ELSE matched.value END AS highlighted "
        "FROM ( "
        "SELECT {column}::text AS value, count(*) AS \"count\" "
        "FROM {source} "
        "WHERE {not_null} AND {column}::text ILIKE {pattern} "
        "GROUP BY 1 "
        ") matched "
        "ORDER BY matched.\"count\" DESC, matched.value ASC "
        "LIMIT {limit}"
    ).format(
        pos=pos,
        pre=literal(pre_tag),
        post=literal(post_tag),
        q=q,
        column=column,
        not_null=IsNotNull(attribute).compose(),
        source=ident(source),
        pattern=literal(f"%{escape_like(facet_query)}%"),
        limit=literal(int(max_facet_hits)),
    )
