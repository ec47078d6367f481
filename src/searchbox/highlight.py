"""
Highlighting via ts_headline.

The hits CTE selects one extra column per highlighted attribute, named with
HIGHLIGHT_COLUMN_PREFIX and the attribute's position in the highlight list,
so the alias stays within Postgres' 63-byte identifier limit whatever the
attribute name. apply_highlight() later removes those columns from each hit
and turns them into Algolia's _highlightResult entries.
"""

from typing import Any, Dict, List, Sequence

from psycopg import sql

from config.constants import HIGHLIGHT_COLUMN_PREFIX, LIMITS
from searchbox.sql import ident, literal

MATCH_FULL = "full"
MATCH_NONE = "none"


def highlight_column(position: int) -> str:
    return f"{HIGHLIGHT_COLUMN_PREFIX}{position}"


def _quote_option(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def headline_options(pre_tag: str, post_tag: str) -> str:
    """ts_headline option string; tags are double-quoted so commas survive."""
    return ",".join([
        f"StartSel={_quote_option(pre_tag)}",
        f"StopSel={_quote_option(post_tag)}",
        f"MaxFragments={LIMITS.HIGHLIGHT_MAX_FRAGMENTS}",
        "HighlightAll=true",
    ])


def headline_expr(
    attribute: str,
    position: int,
    query: str,
    language: str,
    pre_tag: str,
    post_tag: str,
) -> sql.Composable:
    """ts_headline(...) AS "<prefix><position>" for the hits select list."""
    return sql.SQL(
        "ts_headline({lang}::regconfig, {column}::text, "
        "websearch_to_tsquery({lang}::regconfig, {query}), {options}) AS {alias}"
    ).format(
        lang=literal(language),
        column=ident(attribute),
        query=literal(query),
        options=literal(headline_options(pre_tag, post_tag)),
        alias=ident(highlight_column(position)),
    )


def headline_exprs(
    attributes: Sequence[str],
    query: str,
    language: str,
    pre_tag: str,
    post_tag: str,
) -> List[sql.Composable]:
    # Nothing can match an empty query; apply_highlight reports "none" for
    # attributes without a headline column.
    if not query:
        return []
    return [
        headline_expr(attribute, position, query, language, pre_tag, post_tag)
        for position, attribute in enumerate(attributes)
    ]


def apply_highlight(hit: Dict[str, Any], attributes: Sequence[str], pre_tag: str) -> Dict[str, Any]:
    """
    Move the internal headline columns of one hit into _highlightResult.

    attributes must be in the order the headline columns were selected in.

    A headline without the pre-tag means the attribute did not match; the
    plain attribute value is reported with matchLevel "none". matchedWords
    is never computed and is always empty.
    """
    result: Dict[str, Dict[str, Any]] = {}
    for position, attribute in enumerate(attributes):
        headline = hit.pop(highlight_column(position), None)
        if headline is not None and pre_tag in str(headline):
            result[attribute] = {
                "value": str(headline),
                "matchLevel": MATCH_FULL,
                "fullyHighlighted": False,
                "matchedWords": [],
            }
        else:
            original = hit.get(attribute)
            result[attribute] = {
                "value": original if isinstance(original, str) else "",
                "matchLevel": MATCH_NONE,
                "matchedWords": [],
            }
    if attributes:
        hit["_highlightResult"] = result
    return hit
