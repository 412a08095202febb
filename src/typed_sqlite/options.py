"""Query options and their combination.

Options are plain values. Combining them never fails and always preserves
order; whether a combination is legal for a given statement is checked by
the query builder when the statement is rendered.

    Distinct() + Where("age > 30") + OrderBy(descending=True)
    combine(Distinct(), Where("age > 30"), OrderBy(descending=True))
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Union


class QueryOption:
    """Base class for a single query modifier."""

    def __add__(self, other: OptionLike) -> OptionSequence:
        return OptionSequence((self,)).append(other)


@dataclass(frozen=True)
class AutoIncrement(QueryOption):
    """Make an INTEGER column the auto-incrementing primary key.

    Only honoured when a table is created. ``column`` defaults to the first
    INTEGER column of the record type.
    """

    column: str | None = None


@dataclass(frozen=True)
class Distinct(QueryOption):
    """Return only distinct rows."""


@dataclass(frozen=True)
class Where(QueryOption):
    """Filter rows with a SQL predicate, passed through verbatim."""

    predicate: str


@dataclass(frozen=True)
class OrderBy(QueryOption):
    """Order the result, ascending unless ``descending`` is set.

    Without an explicit ``column`` the first selected column is used.
    """

    descending: bool = False
    column: str | None = None


class OptionSequence:
    """An immutable, ordered list of query options."""

    __slots__ = ("_options",)

    def __init__(self, options: Iterable[QueryOption] = ()) -> None:
        self._options: tuple[QueryOption, ...] = tuple(options)

    @classmethod
    def of(cls, options: OptionLike | None = None) -> OptionSequence:
        """Normalize None, a single option, a sequence, or an iterable of options."""
        if options is None:
            return cls()
        if isinstance(options, OptionSequence):
            return options
        if isinstance(options, QueryOption):
            return cls((options,))
        return cls(()).append(*options)

    def append(self, *items: OptionLike) -> OptionSequence:
        """Return a new sequence with items appended, in order.

        Each item may be a single option or another sequence, which is
        flattened into this one.
        """
        result = list(self._options)
        for item in items:
            if isinstance(item, QueryOption):
                result.append(item)
            elif isinstance(item, OptionSequence):
                result.extend(item._options)
            else:
                raise TypeError(
                    f"Cannot combine {type(item).__name__} with query options"
                )
        return OptionSequence(result)

    def of_kind(self, kind: type[QueryOption]) -> list[QueryOption]:
        """Return the options of the given kind, in order."""
        return [o for o in self._options if isinstance(o, kind)]

    def __add__(self, other: OptionLike) -> OptionSequence:
        return self.append(other)

    def __iter__(self) -> Iterator[QueryOption]:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __getitem__(self, index: int) -> QueryOption:
        return self._options[index]

    def __bool__(self) -> bool:
        return bool(self._options)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OptionSequence):
            return NotImplemented
        return self._options == other._options

    def __hash__(self) -> int:
        return hash(self._options)

    def __repr__(self) -> str:
        return f"OptionSequence({list(self._options)!r})"


OptionLike = Union[QueryOption, OptionSequence]


def combine(*items: OptionLike) -> OptionSequence:
    """Combine options and sequences left to right into one sequence."""
    return OptionSequence().append(*items)
