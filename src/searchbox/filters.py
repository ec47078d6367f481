"""
Filter SQL emitter.

Combines facet refinements and numeric filters into one WHERE fragment.
For each attribute the non-empty parts are ANDed:

    attr IN (or...) AND attr = and1 AND attr = and2 AND attr NOT IN (not...)
        AND (range1 OR range2 ...)

and all attributes are ANDed together. Each nested numericFilters group
is ORed on its own and ANDed with the rest:

    [["price<5", "rating>4"]] -> ( price < 5 OR rating > 4 )
"""

from typing import List, Optional, Sequence

from searchbox.facet_filters import Group, Refinement, Refinements, build_refinements
from searchbox.numeric import NumericFilter, group_to_expr, ranges_by_attribute, ranges_to_expr
from searchbox.sql import Compare, Expr, InList, conjunction


def collect_refinements(
    facet_filters: Group,
    numeric_filters: List[NumericFilter],
) -> Refinements:
    """Merge facet filter leaves and numeric filters into per-attribute refinements."""
    refinements = build_refinements(facet_filters)

    # "=" and "!=" skip ranging and become literal value sets
    for f in numeric_filters:
        if f.is_range:
            continue
        refinement = refinements.setdefault(f.attribute, Refinement())
        if f.operator == "=":
            refinement.or_values.extend(f.values)
        else:
            refinement.and_not_values.extend(f.values)

    for attribute, ranges in ranges_by_attribute(numeric_filters).items():
        refinements.setdefault(attribute, Refinement()).ranges.extend(ranges)

    return refinements


def refinement_to_expr(attribute: str, refinement: Refinement) -> Optional[Expr]:
    parts: List[Optional[Expr]] = []
    if refinement.or_values:
        parts.append(InList(attribute, tuple(refinement.or_values)))
    for value in refinement.and_values:
        parts.append(Compare(attribute, "=", value))
    if refinement.and_not_values:
        parts.append(InList(attribute, tuple(refinement.and_not_values), negated=True))
    if refinement.ranges:
        parts.append(ranges_to_expr(attribute, refinement.ranges))
    return conjunction(parts)


def build_filter_expr(
    facet_filters: Group,
    numeric_filters: List[NumericFilter],
    numeric_groups: Sequence[Sequence[NumericFilter]] = (),
) -> Optional[Expr]:
    """
    Build the WHERE fragment for a request's filters.

    Returns:
        The expression, or None when the request has no filters.
    """
    refinements = collect_refinements(facet_filters, numeric_filters)
    parts = [
        refinement_to_expr(attribute, refinement)
        for attribute, refinement in refinements.items()
        if not refinement.is_empty
    ]
    parts.extend(group_to_expr(group) for group in numeric_groups)
    return conjunction(parts)
