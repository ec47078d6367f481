"""
Sort clause parsing.

The index identifier carries the table name plus an optional query string:

    products?sort=price+desc+nulls+last,name

The part after the first "?" is decoded as a query string ("+" is a space);
its sort key is a comma-separated list of "column [ASC|DESC] [NULLS FIRST|
NULLS LAST]". Unrecognized words after the column are ignored.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import parse_qs

from psycopg import sql

from searchbox.errors import ValidationRejected
from searchbox.sql import ident, join

DIRECTION_RE = re.compile(r"\b(ASC|DESC)\b", re.IGNORECASE)
NULLS_RE = re.compile(r"\bNULLS\s+(FIRST|LAST)\b", re.IGNORECASE)


@dataclass(frozen=True)
class SortKey:
    column: str
    direction: Optional[str] = None
    nulls: Optional[str] = None

    def compose(self) -> sql.Composable:
        parts = [ident(self.column)]
        if self.direction:
            parts.append(sql.SQL(self.direction))
        if self.nulls:
            parts.append(sql.SQL(f"NULLS {self.nulls}"))
        return join(" ", parts)


@dataclass(frozen=True)
class IndexTarget:
    """Table to search plus the sort keys decoded from the index identifier."""

    table: str
    sort: Tuple[SortKey, ...] = ()

    def order_by(self) -> Optional[sql.Composable]:
        if not self.sort:
            return None
        return sql.SQL("ORDER BY {}").format(join(", ", (k.compose() for k in self.sort)))


def parse_sort_key(token: str) -> Optional[SortKey]:
    words = token.split()
    if not words:
        return None
    column, rest = words[0], " ".join(words[1:])

    # Only the first direction / nulls modifier counts
    direction = DIRECTION_RE.search(rest)
    nulls = NULLS_RE.search(rest)
    return SortKey(
        column=column,
        direction=direction.group(1).upper() if direction else None,
        nulls=nulls.group(1).upper() if nulls else None,
    )


def parse_index_name(index_name: str) -> IndexTarget:
    """
    Split an index identifier into table and sort keys.

    Raises:
        ValidationRejected: the table part is empty.
    """
    table, _, query_string = index_name.partition("?")
    if not table:
        raise ValidationRejected.single("indexName", "Index name must start with a table name")

    sort_values = parse_qs(query_string).get("sort", []) if query_string else []
    keys = []
    for value in sort_values[:1]:
        for token in value.split(","):
            key = parse_sort_key(token)
            if key is not None:
                keys.append(key)
    return IndexTarget(table=table, sort=tuple(keys))
