"""
Facet filter grammar: nested arrays of "attribute:value" strings.

Follows the Algolia facetFilters convention, where nesting depth decides
how values combine:

    ["brand:Acme", "color:-red", ["size:S", "size:M"]]
     -> brand = Acme AND NOT color = red AND (size = S OR size = M)

Leaves directly in the outer array (or a bare string) are conjunctive;
leaves inside any nested array are disjunctive. A value prefixed with "-"
is an exclusion regardless of depth.

The raw structure is parsed once into Leaf / Group nodes; the refinement
builder then walks that tree without looking at depth again.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from searchbox.errors import MalformedFilter
from searchbox.numeric import NumericRange


class Combinator(str, Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Leaf:
    attribute: str
    value: str
    negated: bool = False


@dataclass(frozen=True)
class Group:
    children: Tuple[Union["Leaf", "Group"], ...]
    combinator: Combinator


FilterNode = Union[Leaf, Group]


def parse_leaf(token: str) -> Leaf:
    """Split "attribute:value" on the first colon."""
    if not isinstance(token, str):
        raise MalformedFilter(token, "Facet filter must be a string", "facetFilters")
    attribute, sep, value = token.partition(":")
    if not sep or not attribute:
        raise MalformedFilter(token, "Facet filter must look like attribute:value", "facetFilters")
    negated = value.startswith("-")
    if negated:
        value = value[1:]
    return Leaf(attribute=attribute, value=value, negated=negated)


def parse_facet_filters(raw: Any) -> Group:
    """
    Parse facetFilters into a Group tree.

    The outer array is the AND group; every nested array is an OR group.
    A bare string is treated as a one-element outer array.
    """
    if raw is None:
        return Group(children=(), combinator=Combinator.AND)
    if isinstance(raw, str):
        return Group(children=(parse_leaf(raw),), combinator=Combinator.AND)
    if not isinstance(raw, (list, tuple)):
        raise MalformedFilter(raw, "facetFilters must be a string or an array", "facetFilters")
    return _parse_group(raw, depth=0)


def _parse_group(items: Any, depth: int) -> Group:
    # Children of the outer array sit at depth 1; anything deeper is disjunctive
    combinator = Combinator.AND if depth + 1 < 2 else Combinator.OR
    children: List[FilterNode] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            children.append(_parse_group(item, depth + 1))
        else:
            children.append(parse_leaf(item))
    return Group(children=tuple(children), combinator=combinator)


def iter_leaves(node: FilterNode) -> Iterator[Tuple[Leaf, Combinator]]:
    """Yield each leaf with the combinator of the group that holds it."""
    if isinstance(node, Leaf):
        yield node, Combinator.AND
        return
    for child in node.children:
        if isinstance(child, Leaf):
            yield child, node.combinator
        else:
            yield from iter_leaves(child)


def filter_attributes(node: FilterNode) -> List[str]:
    seen: "OrderedDict[str, None]" = OrderedDict()
    for leaf, _ in iter_leaves(node):
        seen.setdefault(leaf.attribute, None)
    return list(seen)


# =============================================================================
# Refinements
# =============================================================================

@dataclass
class Refinement:
    """Everything applied to one attribute; non-empty buckets are ANDed."""
    or_values: List[Any] = field(default_factory=list)
    and_values: List[Any] = field(default_factory=list)
    and_not_values: List[Any] = field(default_factory=list)
    ranges: List[NumericRange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.or_values or self.and_values or self.and_not_values or self.ranges)


Refinements = Dict[str, Refinement]


def build_refinements(tree: Group, refinements: Optional[Refinements] = None) -> Refinements:
    """Route every leaf of the tree into its attribute's bucket."""
    if refinements is None:
        refinements = OrderedDict()
    for leaf, combinator in iter_leaves(tree):
        refinement = refinements.setdefault(leaf.attribute, Refinement())
        if leaf.negated:
            refinement.and_not_values.append(leaf.value)
        elif combinator is Combinator.OR:
            refinement.or_values.append(leaf.value)
        else:
            refinement.and_values.append(leaf.value)
    return refinements
