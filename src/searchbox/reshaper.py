"""
Result reshaper: database JSON -> Algolia response envelope.
"""

import math
from typing import Any, Dict, Iterable, List, Optional, Sequence

from config.constants import HIGHLIGHT_COLUMN_PREFIX, VECTOR_COLUMN
from config.indexes import IndexSettings
from searchbox.compiler import QueryPlan
from searchbox.highlight import apply_highlight
from searchbox.models import params_string


def processing_time_ms(elapsed_seconds: float) -> int:
    return int(math.ceil(elapsed_seconds * 1000))


def clean_hit(hit: Dict[str, Any], highlight_attributes: Sequence[str], pre_tag: str) -> Dict[str, Any]:
    """Drop internal columns and attach _highlightResult."""
    hit = dict(hit)
    hit.pop(VECTOR_COLUMN, None)
    hit = apply_highlight(hit, highlight_attributes, pre_tag)
    for key in [k for k in hit if k.startswith(HIGHLIGHT_COLUMN_PREFIX)]:
        del hit[key]
    return hit


def build_search_response(
    plan: QueryPlan,
    document: Optional[Dict[str, Any]],
    settings: IndexSettings,
    elapsed_seconds: float,
) -> Dict[str, Any]:
    """
    Build one entry of results[] from the statement's JSON document.

    facets / facets_stats are copied only when the statement produced them.
    """
    request = plan.request
    document = document or {}
    hits = document.get("hits") or []

    response: Dict[str, Any] = {
        "hits": [
            clean_hit(hit, plan.highlight_attributes, request.highlight_pre_tag)
            for hit in hits
        ],
    }
    response.update(request.pagination.response_fields(document.get("totalHits")))
    if document.get("facets") is not None:
        response["facets"] = document["facets"]
    if document.get("facets_stats") is not None:
        response["facets_stats"] = document["facets_stats"]
    response["processingTimeMS"] = processing_time_ms(elapsed_seconds)
    if settings.rendering_content:
        response["renderingContent"] = settings.rendering_content
    response.update({
        "index": request.index_name,
        "query": request.query,
        "params": params_string(request.params),
        "exhaustiveFacetsCount": True,
        "exhaustiveNbHits": True,
    })
    return response


def build_facet_search_response(rows: Iterable[Sequence[Any]], elapsed_seconds: float) -> Dict[str, Any]:
    """Facet value search rows (value, count, highlighted) -> facetHits."""
    facet_hits: List[Dict[str, Any]] = [
        {"value": value, "highlighted": highlighted, "count": count}
        for value, count, highlighted in rows
    ]
    return {
        "facetHits": facet_hits,
        "exhaustiveFacetsCount": True,
        "processingTimeMS": processing_time_ms(elapsed_seconds),
    }
