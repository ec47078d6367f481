"""
Request validation.

Stage 1 (parse_batch) checks the batch envelope, stage 2 (parse_params)
types the params of one request, stage 3 (build_request) applies the index's
client validation: allow-lists, pagination ceilings and facet search rules.
Stage 3 reports every offending field at once.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from config.constants import DEFAULT_LENGTH, WILDCARD
from config.indexes import IndexConfig
from searchbox.errors import ValidationRejected
from searchbox.facet_filters import filter_attributes, parse_facet_filters
from searchbox.facets import FacetSelection
from searchbox.models import BatchPayload, RequestEnvelope, SearchParams, decode_params
from searchbox.numeric import parse_numeric_filters
from searchbox.pagination import OffsetSpec, PageSpec, Pagination, plan_pagination
from searchbox.request import FacetSearch, SearchRequest
from searchbox.sort import parse_index_name


def issues_from_pydantic(error: ValidationError, prefix: str = "") -> List[Dict[str, str]]:
    issues = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"])
        issues.append({"field": f"{prefix}{location}" if location else prefix.rstrip("."), "message": err["msg"]})
    return issues


def parse_batch(payload: Any, max_requests: int) -> BatchPayload:
    """
    Stage 1: the batch must hold 1..max_requests well-formed envelopes.

    Raises:
        ValidationRejected: for the whole batch.
    """
    try:
        batch = BatchPayload.model_validate(payload)
    except ValidationError as e:
        raise ValidationRejected(issues_from_pydantic(e)) from e

    if len(batch.requests) > max_requests:
        raise ValidationRejected.single(
            "requests", f"At most {max_requests} requests are allowed per call"
        )
    return batch


def parse_params(envelope: RequestEnvelope) -> SearchParams:
    """Stage 2: decode and type the params of one request."""
    try:
        raw = decode_params(envelope.params)
    except ValueError as e:
        raise ValidationRejected.single("params", str(e)) from e

    try:
        return SearchParams.model_validate(raw)
    except ValidationError as e:
        raise ValidationRejected(issues_from_pydantic(e, prefix="params.")) from e


def not_allowed(values: Iterable[str], allowed: Sequence[str]) -> List[str]:
    """Values missing from an allow-list ("*" allows everything)."""
    if WILDCARD in allowed:
        return []
    return [v for v in values if v not in allowed]


def _over(value: Optional[int], maximum: int) -> bool:
    return value is not None and value > maximum


def _pagination_spec(params: SearchParams, default_hits_per_page: int) -> Pagination:
    if params.offset is not None:
        length = params.length if params.length is not None else DEFAULT_LENGTH
        return OffsetSpec(offset=params.offset, length=length)
    return PageSpec(
        page=params.page or 0,
        hits_per_page=params.hits_per_page or default_hits_per_page,
    )


def build_request(envelope: RequestEnvelope, config: IndexConfig) -> SearchRequest:
    """
    Stage 3: turn an envelope into a SearchRequest for the given index config.

    Raises:
        MalformedFilter: a facet or numeric filter does not parse.
        ValidationRejected: params break the index's client validation.
    """
    params = parse_params(envelope)
    settings = config.settings
    rules = config.client_validation

    target = parse_index_name(envelope.index_name)
    facet_filters = parse_facet_filters(params.facet_filters)
    numeric_tokens, numeric_token_groups = params.numeric_filter_tokens
    numeric_filters = tuple(parse_numeric_filters(numeric_tokens))
    numeric_groups = tuple(tuple(parse_numeric_filters(group)) for group in numeric_token_groups)

    issues: List[Dict[str, str]] = []

    def reject(field: str, message: str) -> None:
        issues.append({"field": field, "message": message})

    # Attributes
    retrieve = params.attributes_to_retrieve
    if retrieve is None:
        retrieve = settings.attributes_to_retrieve
    denied = not_allowed(retrieve, rules.valid_attributes_to_retrieve)
    if denied:
        reject("attributesToRetrieve", f"Attributes not allowed: {', '.join(denied)}")

    # Highlighting
    highlight = params.attributes_to_highlight
    if highlight is None:
        highlight = settings.attributes_to_highlight
    if WILDCARD in highlight:
        highlight = [a for a in settings.searchable_attributes if a != WILDCARD]
    denied = not_allowed(highlight, rules.valid_attributes_to_highlight)
    denied += [a for a in not_allowed(highlight, settings.searchable_attributes) if a not in denied]
    if denied:
        reject("attributesToHighlight", f"Attributes not allowed: {', '.join(denied)}")

    pre_tag = params.highlight_pre_tag or settings.highlight_pre_tag
    post_tag = params.highlight_post_tag or settings.highlight_post_tag
    if not_allowed([pre_tag], rules.valid_highlight_pre_tags):
        reject("highlightPreTag", "Highlight tag not allowed")
    if not_allowed([post_tag], rules.valid_highlight_post_tags):
        reject("highlightPostTag", "Highlight tag not allowed")

    # Filtering
    denied = not_allowed(filter_attributes(facet_filters), rules.valid_facet_filters)
    if denied:
        reject("facetFilters", f"Attributes not allowed: {', '.join(denied)}")
    numeric_attributes = list(dict.fromkeys(
        f.attribute for f in numeric_filters + tuple(f for group in numeric_groups for f in group)
    ))
    denied = not_allowed(numeric_attributes, rules.valid_facet_filters)
    if denied:
        reject("numericFilters", f"Attributes not allowed: {', '.join(denied)}")

    # Pagination
    if _over(params.page, rules.max_page):
        reject("page", f"Must be less than or equal to {rules.max_page}")
    if _over(params.hits_per_page, rules.max_hits_per_page):
        reject("hitsPerPage", f"Must be less than or equal to {rules.max_hits_per_page}")
    if _over(params.offset, rules.max_offset):
        reject("offset", f"Must be less than or equal to {rules.max_offset}")
    if _over(params.length, rules.max_length):
        reject("length", f"Must be less than or equal to {rules.max_length}")

    pagination = None
    try:
        pagination = plan_pagination(
            _pagination_spec(params, settings.hits_per_page),
            max_hits=min(rules.max_hits_total, settings.pagination_limited_to),
        )
    except ValidationRejected as e:
        seen = {issue["field"] for issue in issues}
        issues.extend(issue for issue in e.issues if issue["field"] not in seen)

    # Facet search
    facet_search = None
    if envelope.is_facet_search:
        if not envelope.facet:
            reject("facet", "Facet search needs a facet")
        elif not (settings.allows_any_facet or envelope.facet in settings.searchable_facet_attributes):
            reject("facet", "Facet is not searchable")
        if not params.facet_query:
            reject("facetQuery", "Facet search needs a facetQuery")
        if envelope.facet and params.facet_query:
            facet_search = FacetSearch(
                facet=envelope.facet,
                query=params.facet_query,
                max_facet_hits=params.max_facet_hits or settings.max_facet_hits,
            )

    if issues:
        raise ValidationRejected(issues)

    return SearchRequest(
        index_name=envelope.index_name,
        target=target,
        query=params.query,
        facet_filters=facet_filters,
        numeric_filters=numeric_filters,
        numeric_groups=numeric_groups,
        facets=FacetSelection.from_raw(params.facets),
        max_values_per_facet=params.max_values_per_facet,
        sort_facet_values_by=params.sort_facet_values_by,
        attributes_to_retrieve=None if WILDCARD in retrieve else tuple(retrieve),
        attributes_to_highlight=tuple(dict.fromkeys(highlight)),
        highlight_pre_tag=pre_tag,
        highlight_post_tag=post_tag,
        pagination=pagination,
        facet_search=facet_search,
        params=params,
    )
