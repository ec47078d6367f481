"""
Pydantic models for the inbound batch payload.

Validation happens in stages: BatchPayload checks the envelope of every
request, SearchParams types the params of one request. Client allow-lists
and ceilings are applied afterwards in searchbox.validation.
"""

import json
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config.constants import INDEX_NAME_PATTERN, LIMITS


# =============================================================================
# Batch Envelope
# =============================================================================

class RequestEnvelope(BaseModel):
    """One entry of requests[]; params stay raw until stage two."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    index_name: str = Field(
        ...,
        alias="indexName",
        min_length=1,
        max_length=LIMITS.MAX_INDEX_NAME_LENGTH,
        pattern=INDEX_NAME_PATTERN,
    )
    params: Any = None
    facet: Optional[str] = None
    type: Optional[Literal["facet"]] = None

    @property
    def is_facet_search(self) -> bool:
        return self.type == "facet"

    @property
    def table(self) -> str:
        return self.index_name.partition("?")[0]


class BatchPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    requests: List[RequestEnvelope] = Field(
        ...,
        min_length=1,
        max_length=LIMITS.MAX_REQUESTS_PER_BATCH,
    )


# =============================================================================
# Search Params
# =============================================================================

def _check_facet_filter_shape(value: Any, path: str = "facetFilters") -> None:
    if isinstance(value, str):
        return
    if isinstance(value, list):
        for i, item in enumerate(value):
            _check_facet_filter_shape(item, f"{path}[{i}]")
        return
    raise ValueError(f"{path} must be a string or an array of strings")


class SearchParams(BaseModel):
    """
    The subset of Algolia search parameters understood here.

    Unknown parameters (analytics, clickAnalytics, ...) are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    # Query
    query: str = ""

    # Attributes
    attributes_to_retrieve: Optional[List[str]] = None

    # Filtering
    facet_filters: Optional[Any] = None
    numeric_filters: Optional[Union[str, List[Union[str, List[str]]]]] = None

    # Faceting
    facets: Optional[Union[str, List[str]]] = None
    max_values_per_facet: Optional[int] = Field(None, ge=1)
    sort_facet_values_by: Optional[Literal["count", "alpha"]] = None

    # Highlighting
    attributes_to_highlight: Optional[List[str]] = None
    highlight_pre_tag: Optional[str] = None
    highlight_post_tag: Optional[str] = None

    # Pagination
    page: Optional[int] = Field(None, ge=0, le=LIMITS.MAX_PAGES)
    hits_per_page: Optional[int] = Field(None, ge=1, le=LIMITS.MAX_HITS_PER_PAGE)
    offset: Optional[int] = Field(None, ge=0, le=LIMITS.MAX_HITS_TOTAL)
    length: Optional[int] = Field(None, ge=1, le=LIMITS.MAX_HITS_PER_PAGE)

    # Advanced
    max_facet_hits: Optional[int] = Field(None, ge=1, le=100)
    facet_query: Optional[str] = None

    @field_validator("facet_filters")
    @classmethod
    def check_facet_filters(cls, v):
        if v is not None:
            _check_facet_filter_shape(v)
        return v

    @property
    def numeric_filter_tokens(self) -> Tuple[List[str], List[List[str]]]:
        """
        Split numericFilters into top-level tokens and nested OR groups.

        Top-level tokens are ANDed (ranges merged per attribute); each nested
        list is one OR group.
        """
        if self.numeric_filters is None:
            return [], []
        if isinstance(self.numeric_filters, str):
            return [self.numeric_filters], []
        tokens: List[str] = []
        groups: List[List[str]] = []
        for item in self.numeric_filters:
            if isinstance(item, str):
                tokens.append(item)
            elif item:
                groups.append(list(item))
        return tokens, groups


def decode_params(raw: Any) -> Dict[str, Any]:
    """
    Normalize request params to a dict.

    Some Algolia clients send params as a URL-encoded string; array and
    object values in it are JSON text.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise ValueError("params must be an object or a URL-encoded string")

    decoded: Dict[str, Any] = {}
    for key, value in parse_qsl(raw, keep_blank_values=True):
        if value[:1] in ("[", "{"):
            try:
                decoded[key] = json.loads(value)
                continue
            except json.JSONDecodeError:
                pass
        decoded[key] = value
    return decoded


def params_string(params: SearchParams) -> str:
    """URL-encode the params that were sent, JSON-encoding non-string values."""
    flat = {}
    for key, value in params.model_dump(by_alias=True, exclude_unset=True).items():
        flat[key] = value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))
    return urlencode(flat)
