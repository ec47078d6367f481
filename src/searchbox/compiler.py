"""
Query assembler.

Compiles a SearchRequest into one statement returning a single JSON row:

    WITH all_selection AS (
        SELECT * FROM "table" WHERE <full-text match> AND <filters>
    ),
    hits_selection AS (
        SELECT <columns>, <headlines> FROM all_selection
        ORDER BY ... OFFSET n LIMIT m
    ),
    facet_0 AS (...), stats_0 AS (...)
    SELECT json_build_object(
        'totalHits', (SELECT count(*) FROM all_selection),
        'hits', COALESCE(jsonb_agg(hits_selection.*), '[]'::jsonb),
        'facets', ..., 'facets_stats', ...
    ) AS "json"
    FROM hits_selection

Facet value search reuses all_selection and returns (value, count,
highlighted) rows instead. Compilation is pure: no I/O, no shared state.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from psycopg import sql

from config.constants import VECTOR_COLUMN
from config.indexes import IndexSettings
from searchbox.facets import build_facet_fragments, facet_value_search, resolve_facet_spec
from searchbox.filters import build_filter_expr
from searchbox.highlight import headline_exprs
from searchbox.request import SearchRequest
from searchbox.sql import Expr, TextMatch, conjunction, ident, join, literal, render

ALL_SELECTION = "all_selection"
HITS_SELECTION = "hits_selection"

MODE_SEARCH = "search"
MODE_FACET_SEARCH = "facet"


@dataclass(frozen=True)
class QueryPlan:
    """
    A compiled statement and what the reshaper needs to read its result.

    Every value is inlined as a quoted literal, so there is no separate
    bind list; the Composable is handed to the driver as-is.
    """

    statement: sql.Composable
    request: SearchRequest
    mode: str = MODE_SEARCH
    # the attribute behind each highlight column, by position
    highlight_attributes: Tuple[str, ...] = ()

    def as_text(self) -> str:
        return render(self.statement)


def where_expr(request: SearchRequest, language: str) -> Optional[Expr]:
    """Full-text match (skipped for an empty query) ANDed with the filters."""
    text_match = TextMatch(VECTOR_COLUMN, language, request.query) if request.query else None
    return conjunction([
        text_match,
        build_filter_expr(request.facet_filters, list(request.numeric_filters), request.numeric_groups),
    ])


def all_selection_cte(request: SearchRequest, language: str) -> sql.Composable:
    expr = where_expr(request, language)
    if expr is None:
        return sql.SQL("SELECT * FROM {}").format(ident(request.table))
    return sql.SQL("SELECT * FROM {} WHERE {}").format(ident(request.table), expr.compose())


def select_list(request: SearchRequest, headlines: Sequence[sql.Composable]) -> sql.Composable:
    if request.attributes_to_retrieve is None:
        columns: List[sql.Composable] = [sql.SQL("*")]
    else:
        columns = [ident(a) for a in request.attributes_to_retrieve]
    return join(", ", [*columns, *headlines])


def hits_selection_cte(request: SearchRequest, language: str) -> sql.Composable:
    headlines = headline_exprs(
        request.attributes_to_highlight,
        request.query,
        language,
        request.highlight_pre_tag,
        request.highlight_post_tag,
    )
    parts = [sql.SQL("SELECT {} FROM {}").format(select_list(request, headlines), ident(ALL_SELECTION))]
    order_by = request.target.order_by()
    if order_by is not None:
        parts.append(order_by)
    parts.append(sql.SQL("OFFSET {} LIMIT {}").format(
        literal(request.pagination.offset),
        literal(request.pagination.limit),
    ))
    return join(" ", parts)


def with_clause(ctes: Sequence[Tuple[str, sql.Composable]]) -> sql.Composable:
    return sql.SQL("WITH {}").format(join(", ", (
        sql.SQL("{} AS ( {} )").format(ident(name), body) for name, body in ctes
    )))


def compile_search(request: SearchRequest, settings: IndexSettings) -> QueryPlan:
    """Compile a search request into its single-row JSON statement."""
    language = settings.language

    ctes: List[Tuple[str, sql.Composable]] = [
        (ALL_SELECTION, all_selection_cte(request, language)),
        (HITS_SELECTION, hits_selection_cte(request, language)),
    ]

    spec = resolve_facet_spec(
        request.facets,
        settings,
        max_values_per_facet=request.max_values_per_facet,
        sort_facet_values_by=request.sort_facet_values_by,
    )
    fragments = build_facet_fragments(spec, ALL_SELECTION)
    ctes.extend(fragments.ctes)

    fields = [
        sql.SQL("'totalHits', (SELECT count(*) FROM {})").format(ident(ALL_SELECTION)),
        sql.SQL("'hits', COALESCE(jsonb_agg({}.*), '[]'::jsonb)").format(ident(HITS_SELECTION)),
    ]
    if fragments.facets_json is not None:
        fields.append(sql.SQL("'facets', {}").format(fragments.facets_json))
    if fragments.stats_json is not None:
        fields.append(sql.SQL("'facets_stats', {}").format(fragments.stats_json))

    statement = sql.SQL('{} SELECT json_build_object({}) AS "json" FROM {}').format(
        with_clause(ctes),
        join(", ", fields),
        ident(HITS_SELECTION),
    )
    return QueryPlan(
        statement=statement,
        request=request,
        mode=MODE_SEARCH,
        highlight_attributes=request.attributes_to_highlight,
    )


def compile_facet_search(request: SearchRequest, settings: IndexSettings) -> QueryPlan:
    """Compile a facet value search over the request's filtered rows."""
    search = request.facet_search
    if search is None:
        raise ValueError("Request is not a facet search")

    statement = sql.SQL("{} {}").format(
        with_clause([(ALL_SELECTION, all_selection_cte(request, settings.language))]),
        facet_value_search(
            ALL_SELECTION,
            search.facet,
            search.query,
            request.highlight_pre_tag,
            request.highlight_post_tag,
            search.max_facet_hits,
        ),
    )
    return QueryPlan(statement=statement, request=request, mode=MODE_FACET_SEARCH)


def compile_request(request: SearchRequest, settings: IndexSettings) -> QueryPlan:
    if request.facet_search is not None:
        return compile_facet_search(request, settings)
    return compile_search(request, settings)
