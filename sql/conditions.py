"""
=====================================
Boolean condition chains for filters.
=====================================

This module provides the predicate building blocks used by WHERE, ON and
HAVING clauses. A chain is an ordered sequence of elements, each carrying the
connector (AND/OR) that links it to its predecessor. Grouping is always
explicit: no operator precedence is inferred, a Group is the only way to add
parentheses.

Classes:
- ConditionNode: one predicate, ``term_a <operator> [term_b]``
- Group: a parenthesized sub-chain that sits in an outer chain like a node
- ConditionChain: the owned, ordered sequence of elements

Helpers:
- where_in: ``col IN(...)`` with automatic splitting of long value lists
- where_between: ``col BETWEEN a AND b``

Usage:
    from sql.conditions import ConditionNode as Cond, Group

    chain = (
        Cond('a').equals('b')
        .and_(Cond('x').is_null())
        .or_(Group(Cond('y').greater_than('z').and_(Cond('g').less_than('h'))))
    )
    str(chain)
    # 'a = b AND x IS NULL OR (y > z AND g < h)'

Terms are emitted verbatim; quoting and escaping are the caller's job.
"""

from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Union

from core.config import config

CONDITION_IN_SEPARATOR = ','


class Operator(Enum):
    """Comparison operators and their SQL literals."""

    EQUALS = '='
    GREATER_THAN = '>'
    LESS_THAN = '<'
    GREATER_OR_EQUAL = '>='
    LESS_OR_EQUAL = '<='
    IS_NULL = 'IS NULL'
    IN = 'IN'


class Connector(Enum):
    """Link between a chain element and its predecessor."""

    NONE = ''
    AND = 'AND'
    OR = 'OR'

    @classmethod
    def parse(cls, value: Union['Connector', str]) -> 'Connector':
        """Resolve a connector given as enum member or name (case-insensitive).

        Raises:
            ValueError: If the value is not AND, OR or NONE
        """
        if isinstance(value, Connector):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Connector not recognized: {value!r}")


class ChainElement:
    """Base class for anything that can sit in a ConditionChain.

    Links to the neighbours are not stored as references: an element only
    knows its owning chain and its index in it, so ``previous``/``next`` are
    always consistent with the chain's order.
    """

    def __init__(self):
        self.connector: Connector = Connector.NONE
        self._chain: Optional['ConditionChain'] = None
        self._index: int = 0

    @property
    def chain(self) -> Optional['ConditionChain']:
        return self._chain

    @property
    def previous(self) -> Optional['ChainElement']:
        if self._chain is None or self._index == 0:
            return None
        return self._chain._elements[self._index - 1]

    @property
    def next(self) -> Optional['ChainElement']:
        if self._chain is None:
            return None
        elements = self._chain._elements
        position = self._index + 1
        return elements[position] if position < len(elements) else None

    def and_(self, element: Union['ChainElement', 'ConditionChain']) -> 'ConditionChain':
        """Append ``element`` with AND at the tail of this element's chain."""
        return self._owning_chain().and_(element)

    def or_(self, element: Union['ChainElement', 'ConditionChain']) -> 'ConditionChain':
        """Append ``element`` with OR at the tail of this element's chain."""
        return self._owning_chain().or_(element)

    def _owning_chain(self) -> 'ConditionChain':
        if self._chain is None:
            ConditionChain(self)
        return self._chain

    def render_body(self) -> str:
        raise NotImplementedError

    def render_element(self) -> str:
        """Render this element alone, prefixed by its connector when linked."""
        body = self.render_body()
        if self.previous is not None and self.connector is not Connector.NONE:
            return f"{self.connector.value} {body}"
        return body

    def render(self) -> str:
        """Render this element followed by every successor in its chain."""
        if self._chain is None:
            return self.render_element()
        return self._chain.render(start=self._index)

    def __str__(self) -> str:
        return self.render()


class ConditionNode(ChainElement):
    """A single predicate.

    The operator stays unset until one of the comparison methods is called;
    every comparison method returns the node itself.

    Attributes:
        term_a: Left-hand term (column or expression)
        operator: Operator or None
        term_b: Right-hand term, a sequence for IN, None for IS NULL
    """

    def __init__(self, term_a: str):
        super().__init__()
        self.term_a = term_a
        self.operator: Optional[Operator] = None
        self.term_b: Any = None

    def _compare(self, operator: Operator, term_b: Any) -> 'ConditionNode':
        self.operator = operator
        self.term_b = term_b
        return self

    def equals(self, term_b: Any) -> 'ConditionNode':
        return self._compare(Operator.EQUALS, term_b)

    def greater_than(self, term_b: Any) -> 'ConditionNode':
        return self._compare(Operator.GREATER_THAN, term_b)

    def less_than(self, term_b: Any) -> 'ConditionNode':
        return self._compare(Operator.LESS_THAN, term_b)

    def greater_or_equal(self, term_b: Any) -> 'ConditionNode':
        return self._compare(Operator.GREATER_OR_EQUAL, term_b)

    def less_or_equal(self, term_b: Any) -> 'ConditionNode':
        return self._compare(Operator.LESS_OR_EQUAL, term_b)

    def is_null(self) -> 'ConditionNode':
        return self._compare(Operator.IS_NULL, None)

    def in_(self, values: Iterable[Any]) -> 'ConditionNode':
        if isinstance(values, str):
            values = [values]
        return self._compare(Operator.IN, list(values))

    def _render_term_b(self) -> str:
        if self.term_b is None:
            return ''
        if self.operator is Operator.IN:
            items = CONDITION_IN_SEPARATOR.join(str(value) for value in self.term_b)
            return f"({items})"
        return str(self.term_b)

    def render_body(self) -> str:
        operator = self.operator.value if self.operator is not None else ''
        parts = (str(self.term_a).strip(), operator, self._render_term_b())
        return ' '.join(part for part in parts if part)

    def __repr__(self) -> str:
        return f"ConditionNode({self.render_body()!r})"


class Group(ChainElement):
    """A parenthesized sub-chain.

    The group exclusively owns its inner chain: the elements of the chain
    (or chain head) it is built from are moved into a new chain, leaving the
    donor empty. The outer chain only holds the group as one of its elements.

    Raises:
        ValueError: If ``inner`` is empty or is linked but not a chain head
    """

    def __init__(self, inner: Union[ChainElement, 'ConditionChain']):
        super().__init__()
        if isinstance(inner, ConditionChain) and not inner:
            raise ValueError("A group needs at least one condition")
        self._inner = ConditionChain()
        self._inner.append(inner, Connector.NONE)

    @property
    def inner(self) -> 'ConditionChain':
        return self._inner

    def contains_chain(self, chain: 'ConditionChain') -> bool:
        """Return True if ``chain`` is this group's inner chain or nested in it."""
        if self._inner is chain:
            return True
        return any(
            isinstance(item, Group) and item.contains_chain(chain)
            for item in self._inner._elements
        )

    def render_body(self) -> str:
        return f"({self._inner.render()})"

    def __repr__(self) -> str:
        return f"Group({self._inner.render()!r})"


class ConditionChain:
    """Ordered, append-oriented sequence of chain elements.

    The first element always carries ``Connector.NONE``; every later element
    carries AND or OR. ``and_``/``or_`` always extend the tail;
    ``insert_after`` splices at an explicit position.
    """

    def __init__(self, first: Optional[ChainElement] = None):
        self._elements: List[ChainElement] = []
        if first is not None:
            self.append(first, Connector.NONE)

    @property
    def elements(self) -> Sequence[ChainElement]:
        return tuple(self._elements)

    @property
    def head(self) -> Optional[ChainElement]:
        return self._elements[0] if self._elements else None

    @property
    def tail(self) -> Optional[ChainElement]:
        return self._elements[-1] if self._elements else None

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[ChainElement]:
        return iter(list(self._elements))

    def and_(self, element: Union[ChainElement, 'ConditionChain']) -> 'ConditionChain':
        return self.append(element, Connector.AND)

    def or_(self, element: Union[ChainElement, 'ConditionChain']) -> 'ConditionChain':
        return self.append(element, Connector.OR)

    def append(
        self,
        element: Union[ChainElement, 'ConditionChain'],
        connector: Union[Connector, str] = Connector.AND
    ) -> 'ConditionChain':
        """Link ``element`` after the current tail.

        A ConditionChain (or the head element of another chain) is spliced
        in whole: its first element takes ``connector`` and the rest keep
        their own connectors. The donor chain is left empty.
        """
        return self._splice(len(self._elements), element, connector)

    def insert_after(
        self,
        anchor: ChainElement,
        element: Union[ChainElement, 'ConditionChain'],
        connector: Union[Connector, str] = Connector.AND
    ) -> 'ConditionChain':
        """Splice ``element`` directly after ``anchor``."""
        if anchor.chain is not self:
            raise ValueError("Anchor element does not belong to this chain")
        return self._splice(anchor._index + 1, element, connector)

    def _splice(
        self,
        position: int,
        element: Union[ChainElement, 'ConditionChain'],
        connector: Union[Connector, str]
    ) -> 'ConditionChain':
        connector = Connector.parse(connector)
        if self._elements and connector is Connector.NONE:
            raise ValueError("Only the first element of a chain may have no connector")

        incoming = self._take(element)
        incoming[0].connector = connector if self._elements else Connector.NONE

        self._elements[position:position] = incoming
        for item in incoming:
            item._chain = self
        self._reindex()
        return self

    def _take(self, element: Union[ChainElement, 'ConditionChain']) -> List[ChainElement]:
        if isinstance(element, ConditionChain):
            donor = element
        elif isinstance(element, ChainElement):
            if element.chain is None:
                self._reject_enclosing_group(element)
                return [element]
            if element.previous is not None:
                raise ValueError("Element is already linked inside another chain")
            donor = element.chain
        else:
            raise TypeError(f"Expected a chain element, got {type(element).__name__}")

        if donor is self:
            raise ValueError("A chain cannot be linked into itself")
        if not donor._elements:
            raise ValueError("Cannot link an empty chain")
        for item in donor._elements:
            self._reject_enclosing_group(item)

        taken = donor._elements
        donor._elements = []
        return taken

    def _reject_enclosing_group(self, element: ChainElement) -> None:
        if isinstance(element, Group) and element.contains_chain(self):
            raise ValueError("A group cannot be linked into its own inner chain")

    def _reindex(self) -> None:
        for index, item in enumerate(self._elements):
            item._index = index

    def render(self, start: int = 0) -> str:
        """Render the elements from ``start`` to the tail, left to right."""
        return ' '.join(item.render_element() for item in self._elements[start:])

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"ConditionChain({self.render()!r})"


def where_between(column_name: str, value_from: Any, value_to: Any) -> str:
    """
    Build a BETWEEN predicate.

    Args:
        column_name: Column or expression
        value_from: Lower bound, emitted verbatim
        value_to: Upper bound, emitted verbatim

    Returns:
        ``column BETWEEN from AND to``, or '' when any argument is empty
    """
    if not column_name or value_from in (None, '') or value_to in (None, ''):
        return ''

    return f"{column_name} BETWEEN {value_from} AND {value_to}"


def where_in(column_name: str, values: Sequence[Any], limit: Optional[int] = None) -> str:
    """
    Build an IN predicate, splitting long value lists.

    Databases such as Oracle cap the number of items in one IN list. With
    more than ``limit`` values the list is split into groups of at most
    ``limit`` items, joined by OR and wrapped in one pair of parentheses.

    Args:
        column_name: Column or expression
        values: Values, emitted verbatim
        limit: Maximum items per IN group (defaults to config.builder.in_list_limit)

    Returns:
        ``col IN(v1,...)``, ``(col IN(...) OR col IN(...))`` or '' when
        the column name or the value list is empty

    Raises:
        ValueError: If limit is below 1
    """
    if not column_name or not values:
        return ''

    if limit is None:
        limit = config.builder.in_list_limit
    if limit < 1:
        raise ValueError(f"IN list limit must be greater than 0, got {limit}")

    items = [str(value) for value in values]

    if len(items) > limit:
        groups = [
            f"{column_name} IN({CONDITION_IN_SEPARATOR.join(items[start:start + limit])})"
            for start in range(0, len(items), limit)
        ]
        return '(' + ' OR '.join(groups) + ')'

    return f"{column_name} IN({CONDITION_IN_SEPARATOR.join(items)})"
