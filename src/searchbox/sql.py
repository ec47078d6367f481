"""
Small SQL expression tree rendered through psycopg's composition API.

Every identifier goes through ident() and every value through literal();
fixed keywords and punctuation are the only text placed in sql.SQL. Nodes
compose into psycopg Composable objects, so the statement is quoted by the
driver with the connection's encoding at execution time.

Usage:
    expr = And((InList("brand", ("Acme", "Globex")), Compare("price", ">=", 10)))
    fragment = expr.compose()
    render(fragment)  # '( "brand" IN (\'Acme\', \'Globex\') AND "price" >= 10 )'
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

from psycopg import sql


COMPARISON_OPERATORS = {
    "=": sql.SQL("="),
    "!=": sql.SQL("!="),
    "<": sql.SQL("<"),
    "<=": sql.SQL("<="),
    ">": sql.SQL(">"),
    ">=": sql.SQL(">="),
}


def ident(*names: str) -> sql.Identifier:
    """Quote an identifier (optionally dotted, e.g. ident("t", "col"))."""
    for name in names:
        if not isinstance(name, str) or not name:
            raise ValueError(f"Invalid SQL identifier: {name!r}")
    return sql.Identifier(*names)


def literal(value: Any) -> sql.Literal:
    """Quote a value as an SQL literal."""
    return sql.Literal(value)


def join(separator: str, parts: Iterable[sql.Composable]) -> sql.Composed:
    return sql.SQL(separator).join(list(parts))


def render(composable: sql.Composable) -> str:
    """
    Render a fragment as text without a connection.

    Only used for logging and tests; execution passes the Composable to
    the driver, which quotes with the live connection.
    """
    return composable.as_string(None)


# =============================================================================
# Expression Nodes
# =============================================================================

class Expr:
    """Base class for boolean expression nodes."""

    def compose(self) -> sql.Composable:
        raise NotImplementedError


@dataclass(frozen=True)
class Compare(Expr):
    """column <op> value"""
    column: str
    operator: str
    value: Any

    def __post_init__(self):
        if self.operator not in COMPARISON_OPERATORS:
            raise ValueError(f"Unsupported comparison operator: {self.operator!r}")

    def compose(self) -> sql.Composable:
        return sql.SQL("{} {} {}").format(
            ident(self.column),
            COMPARISON_OPERATORS[self.operator],
            literal(self.value),
        )


@dataclass(frozen=True)
class InList(Expr):
    """column [NOT] IN (v1, v2, ...)"""
    column: str
    values: Tuple[Any, ...]
    negated: bool = False

    def __post_init__(self):
        if not self.values:
            raise ValueError("InList needs at least one value")

    def compose(self) -> sql.Composable:
        keyword = sql.SQL("NOT IN") if self.negated else sql.SQL("IN")
        return sql.SQL("{} {} ({})").format(
            ident(self.column),
            keyword,
            join(", ", (literal(v) for v in self.values)),
        )


@dataclass(frozen=True)
class IsNotNull(Expr):
    column: str

    def compose(self) -> sql.Composable:
        return sql.SQL("{} IS NOT NULL").format(ident(self.column))


@dataclass(frozen=True)
class TextMatch(Expr):
    """Full-text predicate on the generated tsvector column."""
    vector_column: str
    language: str
    query: str

    def compose(self) -> sql.Composable:
        return sql.SQL("{} @@ websearch_to_tsquery({}::regconfig, {})").format(
            ident(self.vector_column),
            literal(self.language),
            literal(self.query),
        )


@dataclass(frozen=True)
class _BoolGroup(Expr):
    children: Tuple[Expr, ...]

    _keyword = ""

    def compose(self) -> sql.Composable:
        if not self.children:
            raise ValueError(f"Empty {self._keyword} group")
        if len(self.children) == 1:
            return self.children[0].compose()
        inner = join(f" {self._keyword} ", (c.compose() for c in self.children))
        return sql.SQL("( {} )").format(inner)


class And(_BoolGroup):
    _keyword = "AND"


class Or(_BoolGroup):
    _keyword = "OR"


def conjunction(parts: Sequence[Optional[Expr]]) -> Optional[Expr]:
    """AND together the non-empty parts; None when nothing is left."""
    kept = tuple(p for p in parts if p is not None)
    if not kept:
        return None
    if len(kept) == 1:
        return kept[0]
    return And(kept)


def disjunction(parts: Sequence[Optional[Expr]]) -> Optional[Expr]:
    kept = tuple(p for p in parts if p is not None)
    if not kept:
        return None
    if len(kept) == 1:
        return kept[0]
    return Or(kept)
