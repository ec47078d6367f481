"""
Per-index configuration: search settings and client validation allow-lists.

Index configs are supplied by the host (a JSON file named by
INDEX_CONFIG_PATH, or built in code) and are read-only at request time.
Keys accept the Algolia camelCase spelling as well as snake_case:

    [
      {
        "indexName": "products",
        "settings": {
          "attributesForFaceting": ["brand", "searchable(color)", "filterOnly(sku)"],
          "numericAttributesForFiltering": ["price"],
          "hitsPerPage": 20
        },
        "clientValidation": {"validFacetFilters": ["brand", "color", "price"]}
      }
    ]
"""

import re
from collections import Counter
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from config.constants import (
    DEFAULT_HIGHLIGHT_POST_TAG,
    DEFAULT_HIGHLIGHT_PRE_TAG,
    DEFAULT_HITS_PER_PAGE,
    DEFAULT_LANGUAGE,
    DEFAULT_MAX_FACET_HITS,
    DEFAULT_MAX_VALUES_PER_FACET,
    LIMITS,
    WILDCARD,
)
from config.settings import get_settings
from core.logging import get_logger
from searchbox.errors import DuplicateFacetConfig

logger = get_logger(__name__)


FACET_MODIFIER_RE = re.compile(r"^(?P<modifier>filterOnly|searchable|afterDistinct)\((?P<attribute>[^()]+)\)$")


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


def parse_facet_declaration(declaration: str) -> Tuple[str, str]:
    """
    Split an attributesForFaceting entry into (category, attribute).

    Categories are "plain", "filterOnly" and "searchable"; afterDistinct()
    only changes counting on Algolia and is treated as plain here.
    """
    match = FACET_MODIFIER_RE.match(declaration.strip())
    if not match:
        return "plain", declaration.strip()
    modifier = match.group("modifier")
    category = "plain" if modifier == "afterDistinct" else modifier
    return category, match.group("attribute").strip()


class IndexSettings(_CamelModel):
    """Search settings for one index (Algolia settings subset)."""

    # Attributes
    # Columns folded into the tsvector document; only these can be highlighted
    searchable_attributes: List[str] = Field(default_factory=lambda: [WILDCARD])
    attributes_to_retrieve: List[str] = Field(default_factory=lambda: [WILDCARD])
    attributes_for_faceting: List[str] = Field(default_factory=lambda: [WILDCARD])

    # Faceting
    max_values_per_facet: int = Field(DEFAULT_MAX_VALUES_PER_FACET, ge=1)
    sort_facet_values_by: Literal["count", "alpha"] = "count"

    # Highlighting
    attributes_to_highlight: List[str] = Field(default_factory=list)
    highlight_pre_tag: str = DEFAULT_HIGHLIGHT_PRE_TAG
    highlight_post_tag: str = DEFAULT_HIGHLIGHT_POST_TAG

    # Pagination
    hits_per_page: int = Field(DEFAULT_HITS_PER_PAGE, ge=1, le=LIMITS.MAX_HITS_PER_PAGE)
    pagination_limited_to: int = Field(LIMITS.MAX_HITS_TOTAL, ge=1)

    # Performance
    numeric_attributes_for_filtering: List[str] = Field(default_factory=list)

    # Advanced
    max_facet_hits: int = Field(DEFAULT_MAX_FACET_HITS, ge=1)
    rendering_content: Dict[str, Any] = Field(default_factory=dict)
    language: str = DEFAULT_LANGUAGE

    @property
    def facet_declarations(self) -> List[Tuple[str, str]]:
        return [parse_facet_declaration(d) for d in self.attributes_for_faceting]

    @property
    def allows_any_facet(self) -> bool:
        return WILDCARD in self.attributes_for_faceting

    @property
    def facet_attributes(self) -> List[str]:
        """Attributes whose values may be counted (filterOnly excluded)."""
        return [
            attribute
            for category, attribute in self.facet_declarations
            if category != "filterOnly" and attribute != WILDCARD
        ]

    @property
    def searchable_facet_attributes(self) -> List[str]:
        return [a for c, a in self.facet_declarations if c == "searchable"]

    def duplicate_facet_attributes(self) -> List[str]:
        counts = Counter(attribute for _, attribute in self.facet_declarations)
        return sorted(a for a, n in counts.items() if n > 1)


class ClientValidation(_CamelModel):
    """What a caller may ask for. "*" in an allow-list accepts anything."""

    # Attributes
    valid_attributes_to_retrieve: List[str] = Field(default_factory=lambda: [WILDCARD])

    # Filtering
    valid_facet_filters: List[str] = Field(default_factory=lambda: [WILDCARD])

    # Highlighting
    valid_attributes_to_highlight: List[str] = Field(default_factory=lambda: [WILDCARD])
    valid_highlight_pre_tags: List[str] = Field(default_factory=lambda: [DEFAULT_HIGHLIGHT_PRE_TAG])
    valid_highlight_post_tags: List[str] = Field(default_factory=lambda: [DEFAULT_HIGHLIGHT_POST_TAG])

    # Pagination
    max_page: int = LIMITS.MAX_PAGES
    max_hits_per_page: int = LIMITS.MAX_HITS_PER_PAGE
    max_offset: int = LIMITS.MAX_HITS_TOTAL
    max_length: int = LIMITS.MAX_HITS_PER_PAGE
    max_hits_total: int = LIMITS.MAX_HITS_TOTAL


class IndexConfig(_CamelModel):
    """Settings plus client validation for one index (or the default)."""

    index_name: Optional[str] = None
    settings: IndexSettings = Field(default_factory=IndexSettings)
    client_validation: ClientValidation = Field(default_factory=ClientValidation)

    @model_validator(mode="after")
    def check_facet_declarations(self) -> "IndexConfig":
        # Not a ValueError: this must abort loading instead of becoming a
        # pydantic validation message.
        duplicates = self.settings.duplicate_facet_attributes()
        if duplicates:
            raise DuplicateFacetConfig(self.index_name, duplicates)
        return self


# =============================================================================
# Registry
# =============================================================================

class IndexRegistry:
    """
    Looks up the IndexConfig for a table name.

    A single config without index_name applies to every index. With several
    configs each must be named; unknown tables get the defaults.
    """

    def __init__(self, configs: Sequence[IndexConfig] = ()):
        configs = list(configs)
        if len(configs) > 1:
            unnamed = [c for c in configs if not c.index_name]
            if unnamed:
                raise ValueError("Every index config needs an indexName when more than one is given")
            names = Counter(c.index_name for c in configs)
            repeated = sorted(n for n, count in names.items() if count > 1)
            if repeated:
                raise ValueError(f"Index configs declared more than once: {', '.join(repeated)}")

        self._default = IndexConfig()
        self._by_name: Dict[str, IndexConfig] = {}
        if len(configs) == 1 and not configs[0].index_name:
            self._default = configs[0]
        else:
            self._by_name = {c.index_name: c for c in configs}

    def get(self, table: str) -> IndexConfig:
        return self._by_name.get(table, self._default)

    @property
    def index_names(self) -> List[str]:
        return list(self._by_name)


_CONFIG_LIST = TypeAdapter(List[IndexConfig])


def load_index_configs(path: Path) -> List[IndexConfig]:
    """
    Load index configs from a JSON file (one object or a list of objects).

    Raises:
        DuplicateFacetConfig: an index declares a facet attribute twice.
        pydantic.ValidationError: the file does not match the schema.
    """
    text = Path(path).read_text(encoding="utf-8")
    stripped = text.lstrip()
    if stripped.startswith("{"):
        text = f"[{text}]"
    configs = _CONFIG_LIST.validate_json(text)
    logger.info(
        "Loaded index configs",
        path=str(path),
        indexes=[c.index_name or "<default>" for c in configs],
    )
    return configs


@lru_cache(maxsize=1)
def get_index_registry() -> IndexRegistry:
    """
    Get the process-wide registry built from INDEX_CONFIG_PATH.

    Without a configured path every index uses the defaults.
    """
    settings = get_settings()
    if not settings.index_config_path:
        return IndexRegistry()
    return IndexRegistry(load_index_configs(settings.index_config_path))
