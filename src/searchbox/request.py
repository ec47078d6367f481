"""
Validated, normalized search requests.

A SearchRequest is what the compiler consumes: filters already parsed into
their typed forms, facets normalized, pagination resolved and checked
against the ceilings. Nothing here is raw client input any more.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from searchbox.facet_filters import Combinator, Group
from searchbox.facets import FacetSelection
from searchbox.models import SearchParams
from searchbox.numeric import NumericFilter
from searchbox.pagination import PageSpec, PaginationPlan
from searchbox.sort import IndexTarget


@dataclass(frozen=True)
class FacetSearch:
    """Facet value search: values of `facet` containing `query`."""

    facet: str
    query: str
    max_facet_hits: int


@dataclass(frozen=True)
class SearchRequest:
    index_name: str
    target: IndexTarget
    query: str = ""
    facet_filters: Group = field(default_factory=lambda: Group((), Combinator.AND))
    numeric_filters: Tuple[NumericFilter, ...] = ()
    # nested numericFilters lists, each ORed
    numeric_groups: Tuple[Tuple[NumericFilter, ...], ...] = ()
    facets: FacetSelection = field(default_factory=FacetSelection)
    max_values_per_facet: Optional[int] = None
    sort_facet_values_by: Optional[str] = None
    # None selects every column
    attributes_to_retrieve: Optional[Tuple[str, ...]] = None
    attributes_to_highlight: Tuple[str, ...] = ()
    highlight_pre_tag: str = ""
    highlight_post_tag: str = ""
    pagination: PaginationPlan = field(
        default_factory=lambda: PaginationPlan(offset=0, limit=PageSpec().hits_per_page, shape=PageSpec())
    )
    facet_search: Optional[FacetSearch] = None
    params: SearchParams = field(default_factory=SearchParams)

    @property
    def table(self) -> str:
        return self.target.table
