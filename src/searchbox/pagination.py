"""
Pagination planning.

Both Algolia pagination styles resolve to one OFFSET/LIMIT pair:

    PageSpec(page=2, hits_per_page=20)  -> OFFSET 40 LIMIT 20
    OffsetSpec(offset=35, length=5)     -> OFFSET 35 LIMIT 5

The plan remembers which style was asked for so the response echoes the
same fields back (page/hitsPerPage or offset/length).
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from config.constants import DEFAULT_HITS_PER_PAGE, DEFAULT_LENGTH, DEFAULT_PAGE
from searchbox.errors import ValidationRejected


@dataclass(frozen=True)
class PageSpec:
    page: int = DEFAULT_PAGE
    hits_per_page: int = DEFAULT_HITS_PER_PAGE


@dataclass(frozen=True)
class OffsetSpec:
    offset: int
    length: int = DEFAULT_LENGTH


Pagination = Union[PageSpec, OffsetSpec]


@dataclass(frozen=True)
class PaginationPlan:
    offset: int
    limit: int
    shape: Pagination

    @property
    def hits_per_page(self) -> Optional[int]:
        if isinstance(self.shape, PageSpec):
            return self.shape.hits_per_page
        return None

    def response_fields(self, total_hits: Optional[int]) -> Dict[str, Any]:
        """
        Pagination keys of the response envelope.

        nbPages is 0 without hits; otherwise it is only known in page mode.
        """
        nb_hits = total_hits or 0
        if isinstance(self.shape, PageSpec):
            fields: Dict[str, Any] = {
                "page": self.shape.page,
                "hitsPerPage": self.shape.hits_per_page,
            }
        else:
            fields = {"offset": self.shape.offset, "length": self.shape.length}

        fields["nbHits"] = nb_hits
        if not nb_hits:
            fields["nbPages"] = 0
        elif self.hits_per_page:
            fields["nbPages"] = math.ceil(nb_hits / self.hits_per_page)
        return fields


def plan_pagination(spec: Pagination, max_hits: int) -> PaginationPlan:
    """
    Resolve a pagination spec into OFFSET/LIMIT.

    Raises:
        ValidationRejected: negative offset, limit below 1, or a window that
            ends past max_hits.
    """
    if isinstance(spec, OffsetSpec):
        offset, limit = spec.offset, spec.length
        offset_field, limit_field = "offset", "length"
    else:
        offset, limit = spec.page * spec.hits_per_page, spec.hits_per_page
        offset_field, limit_field = "page", "hitsPerPage"

    issues = []
    if offset < 0:
        issues.append({"field": offset_field, "message": "Must be greater than or equal to 0"})
    if limit < 1:
        issues.append({"field": limit_field, "message": "Must be greater than or equal to 1"})
    if not issues and offset + limit > max_hits:
        message = "Requested hits go past the maximum number of retrievable hits"
        issues.append({"field": offset_field, "message": message})
        issues.append({"field": limit_field, "message": message})
    if issues:
        raise ValidationRejected(issues)

    return PaginationPlan(offset=offset, limit=limit, shape=spec)
