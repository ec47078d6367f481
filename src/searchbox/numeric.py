"""
Numeric filters: parsing "attr<op>value" tokens and merging ranges.

Range filters for one attribute are sorted by (value, operator rank) and
scanned into a list of NumericRange objects that are ORed together:

    ["price>=10", "price<=20", "price>=30", "price<=40"]
        -> (price >= 10 AND price <= 20) OR (price >= 30 AND price <= 40)

Equality and inequality filters never become ranges; they are returned
separately and land in the OR / AND NOT refinement buckets.
"""

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from searchbox.errors import MalformedFilter
from searchbox.sql import Compare, Expr, InList, conjunction, disjunction


RANGE_OPERATORS = (">=", ">", "<", "<=")
EQUALITY_OPERATORS = ("=", "!=")

# Ties on the same value sort lower bounds first so a range can be closed
# by an upper bound at that value.
OPERATOR_RANK = {op: rank for rank, op in enumerate(RANGE_OPERATORS)}

_INTEGER = r"-?\d+"
NUMERIC_FILTER_RE = re.compile(
    rf"^\s*(?P<attribute>\w+)\s*(?P<operator><=|>=|!=|<|>|=)\s*"
    rf"(?P<value>{_INTEGER}|\[\s*{_INTEGER}(?:\s*,\s*{_INTEGER})*\s*\])\s*$"
)

NumericValue = Union[int, Tuple[int, ...]]


@dataclass(frozen=True)
class NumericFilter:
    attribute: str
    operator: str
    value: NumericValue

    @property
    def is_range(self) -> bool:
        return self.operator in RANGE_OPERATORS

    @property
    def values(self) -> Tuple[int, ...]:
        return self.value if isinstance(self.value, tuple) else (self.value,)

    def to_expr(self) -> Expr:
        """The comparison on its own, without range merging."""
        if self.is_range:
            return Compare(self.attribute, self.operator, self.value)
        if isinstance(self.value, tuple):
            return InList(self.attribute, self.value, negated=self.operator == "!=")
        return Compare(self.attribute, self.operator, self.value)


def parse_numeric_filter(token: str) -> NumericFilter:
    """
    Parse one numeric filter token.

    Raises:
        MalformedFilter: token does not match attribute(operator)value, or a
            range operator was given a list of values.
    """
    if not isinstance(token, str):
        raise MalformedFilter(token, "Numeric filter must be a string", "numericFilters")

    match = NUMERIC_FILTER_RE.match(token)
    if not match:
        raise MalformedFilter(token, "Invalid numeric filter", "numericFilters")

    attribute = match.group("attribute")
    operator = match.group("operator")
    raw_value = match.group("value")

    value: NumericValue
    if raw_value.startswith("["):
        value = tuple(int(v) for v in raw_value.strip("[] ").split(","))
        if operator in RANGE_OPERATORS:
            raise MalformedFilter(
                token, "Range operators take a single value", "numericFilters"
            )
    else:
        value = int(raw_value)

    return NumericFilter(attribute=attribute, operator=operator, value=value)


def parse_numeric_filters(tokens: Iterable[str]) -> List[NumericFilter]:
    return [parse_numeric_filter(t) for t in tokens]


# =============================================================================
# Range Merging
# =============================================================================

@dataclass
class NumericRange:
    """One interval; unset bounds are open-ended."""
    gte: Optional[int] = None
    gt: Optional[int] = None
    lt: Optional[int] = None
    lte: Optional[int] = None

    @property
    def has_lower(self) -> bool:
        return self.gte is not None or self.gt is not None

    @property
    def has_upper(self) -> bool:
        return self.lt is not None or self.lte is not None

    def to_expr(self, attribute: str) -> Optional[Expr]:
        bounds = (
            (">=", self.gte),
            (">", self.gt),
            ("<", self.lt),
            ("<=", self.lte),
        )
        return conjunction([
            Compare(attribute, op, bound) for op, bound in bounds if bound is not None
        ])


def sort_key(numeric_filter: NumericFilter) -> Tuple[int, int]:
    return numeric_filter.value, OPERATOR_RANK[numeric_filter.operator]


def merge_ranges(filters: Iterable[NumericFilter]) -> List[NumericRange]:
    """
    Merge the range filters of a single attribute into ORed ranges.

    A lower bound starts a new range when the current one already has an
    upper bound; otherwise it fills the empty lower slot (a second lower bound
    on an open range is already covered by the first, smaller one). An upper
    bound always replaces the current range's upper bound.
    """
    ordered = sorted((f for f in filters if f.is_range), key=sort_key)
    if not ordered:
        return []

    ranges = [NumericRange()]
    for f in ordered:
        current = ranges[-1]
        if f.operator in (">=", ">"):
            if current.has_upper:
                current = NumericRange()
                ranges.append(current)
            if current.has_lower:
                continue
            if f.operator == ">=":
                current.gte = f.value
            else:
                current.gt = f.value
        elif f.operator == "<":
            current.lte = None
            current.lt = f.value
        else:
            current.lt = None
            current.lte = f.value

    return ranges


def ranges_by_attribute(filters: Iterable[NumericFilter]) -> Dict[str, List[NumericRange]]:
    """Group range filters per attribute (first-seen order) and merge each group."""
    grouped: "OrderedDict[str, List[NumericFilter]]" = OrderedDict()
    for f in filters:
        if f.is_range:
            grouped.setdefault(f.attribute, []).append(f)
    return {attribute: merge_ranges(group) for attribute, group in grouped.items()}


def ranges_to_expr(attribute: str, ranges: List[NumericRange]) -> Optional[Expr]:
    return disjunction([r.to_expr(attribute) for r in ranges])


def group_to_expr(group: Iterable[NumericFilter]) -> Optional[Expr]:
    """OR the comparisons of one nested numericFilters group."""
    return disjunction([f.to_expr() for f in group])
