"""
Match predicates and the filter builder.

A predicate is a small tree of ``Eq``, ``Contains``, ``In``, ``And`` and
``Or`` nodes.  The record store compiles a tree into a parameterised
SQL ``WHERE`` fragment over the JSON documents, so the same predicate
object can be reused for the windowed query and for the count query.

``FilterBuilder`` turns optional query parameters into one predicate:

* exact reference matches and the boolean flag are ANDed together;
* domain substring filters (e.g. carrier name) form one OR clause;
* the free-text search forms a second, independent OR clause over a
  fixed list of fields, optionally extended with ``In`` terms for
  referenced records whose own fields matched the text;
* no parameters at all yields ``MatchAll``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .ids import require_id

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Fields stored as table columns rather than inside the JSON document.
_COLUMNS = {"id": "id", "created_at": "created_at", "updated_at": "updated_at"}


def field_expression(name: str) -> str:
    """Return the SQL expression addressing document field ``name``."""
    if name in _COLUMNS:
        return _COLUMNS[name]
    if not _FIELD_RE.match(name):
        raise ValueError(f"Illegal field name: {name!r}")
    return f"json_extract(data, '$.{name}')"


def _sql_value(value: Any) -> Any:
    # json_extract returns 1/0 for JSON booleans
    if isinstance(value, bool):
        return int(value)
    return value


class Predicate:
    """Base class of the predicate tree."""

    def to_sql(self) -> Tuple[str, List[Any]]:
        raise NotImplementedError


class MatchAll(Predicate):
    def to_sql(self) -> Tuple[str, List[Any]]:
        return "1 = 1", []

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MatchAll)

    def __repr__(self) -> str:
        return "MatchAll()"


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: Any

    def to_sql(self) -> Tuple[str, List[Any]]:
        if self.value is None:
            return f"{field_expression(self.field)} IS NULL", []
        return f"{field_expression(self.field)} = ?", [_sql_value(self.value)]


@dataclass(frozen=True)
class Ne(Predicate):
    field: str
    value: Any

    def to_sql(self) -> Tuple[str, List[Any]]:
        return f"{field_expression(self.field)} IS NOT ?", [_sql_value(self.value)]


@dataclass(frozen=True)
class Contains(Predicate):
    """Case-insensitive, unanchored substring match.

    The text is matched literally; the store's ``REGEXP`` function
    receives it escaped.
    """

    field: str
    text: str

    def to_sql(self) -> Tuple[str, List[Any]]:
        return f"{field_expression(self.field)} REGEXP ?", [re.escape(self.text)]


@dataclass(frozen=True)
class In(Predicate):
    field: str
    values: Tuple[Any, ...]

    def to_sql(self) -> Tuple[str, List[Any]]:
        if not self.values:
            return "0 = 1", []
        # One JSON array parameter, so the list length never meets the
        # bound-variable limit.
        return (
            f"{field_expression(self.field)} IN (SELECT value FROM json_each(?))",
            [json.dumps([_sql_value(v) for v in self.values])],
        )


@dataclass(frozen=True)
class And(Predicate):
    terms: Tuple[Predicate, ...]

    def to_sql(self) -> Tuple[str, List[Any]]:
        return _join(self.terms, " AND ")


@dataclass(frozen=True)
class Or(Predicate):
    terms: Tuple[Predicate, ...]

    def to_sql(self) -> Tuple[str, List[Any]]:
        return _join(self.terms, " OR ")


def _join(terms: Sequence[Predicate], glue: str) -> Tuple[str, List[Any]]:
    parts: List[str] = []
    params: List[Any] = []
    for term in terms:
        sql, term_params = term.to_sql()
        parts.append(f"({sql})")
        params.extend(term_params)
    return glue.join(parts), params


def all_of(terms: Sequence[Predicate]) -> Predicate:
    """AND the given terms, collapsing the trivial cases."""
    terms = [t for t in terms if not isinstance(t, MatchAll)]
    if not terms:
        return MatchAll()
    if len(terms) == 1:
        return terms[0]
    return And(tuple(terms))


def any_of(terms: Sequence[Predicate]) -> Optional[Predicate]:
    if not terms:
        return None
    if len(terms) == 1:
        return terms[0]
    return Or(tuple(terms))


@dataclass
class FilterParams:
    """Optional query parameters accepted by list, search and export."""

    search: Optional[str] = None
    references: Dict[str, Optional[str]] = field(default_factory=dict)
    flag: Optional[bool] = None
    substrings: Dict[str, Optional[str]] = field(default_factory=dict)
    exact: Dict[str, Any] = field(default_factory=dict)


class FilterBuilder:
    """Build a store predicate from ``FilterParams``.

    Parameters
    ----------
    search_fields : sequence of str
        Document fields scanned by the free-text search.
    reference_fields : sequence of str
        Fields accepted as exact reference matches.  Values must be
        well-formed identifiers.
    flag_field : str, optional
        Boolean field compared with ``FilterParams.flag``.
    substring_filters : mapping
        Parameter name to the fields it is matched against.  All
        supplied substring filters share one OR clause.
    exact_fields : sequence of str
        Plain fields accepted for exact equality (e.g. ``status``).
    """

    def __init__(
        self,
        search_fields: Sequence[str],
        reference_fields: Sequence[str] = (),
        flag_field: Optional[str] = None,
        substring_filters: Optional[Mapping[str, Sequence[str]]] = None,
        exact_fields: Sequence[str] = (),
    ) -> None:
        self.search_fields = tuple(search_fields)
        self.reference_fields = tuple(reference_fields)
        self.flag_field = flag_field
        self.substring_filters = dict(substring_filters or {})
        self.exact_fields = tuple(exact_fields)

    def reference_terms(self, params: FilterParams) -> List[Predicate]:
        """Validate and return the exact reference terms.

        Raises ``InvalidReference`` for a malformed identifier, so a
        caller can run this before touching the store.
        """
        terms: List[Predicate] = []
        for name, raw in params.references.items():
            if raw is None or raw == "":
                continue
            if name not in self.reference_fields:
                raise ValueError(f"Unsupported reference filter: {name}")
            terms.append(Eq(name, require_id(raw, name)))
        return terms

    def validate(self, params: FilterParams) -> None:
        self.reference_terms(params)

    def build(
        self,
        params: FilterParams,
        reference_hits: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> Predicate:
        """Return the predicate for ``params``.

        ``reference_hits`` maps a reference field to the identifiers of
        referenced records whose searchable fields matched the free
        text; each non-empty entry adds an ``In`` term to the search
        clause.
        """
        terms: List[Predicate] = self.reference_terms(params)

        if params.flag is not None and self.flag_field:
            terms.append(Eq(self.flag_field, params.flag))

        for name, value in params.exact.items():
            if value is None or value == "":
                continue
            if name not in self.exact_fields:
                raise ValueError(f"Unsupported exact filter: {name}")
            terms.append(Eq(name, value))

        substring_terms: List[Predicate] = []
        for name, text in params.substrings.items():
            if not text:
                continue
            for target in self.substring_filters.get(name, ()):
                substring_terms.append(Contains(target, text))
        substring_clause = any_of(substring_terms)
        if substring_clause is not None:
            terms.append(substring_clause)

        search = (params.search or "").strip()
        if search:
            search_terms: List[Predicate] = [Contains(f, search) for f in self.search_fields]
            for ref_field, ids in (reference_hits or {}).items():
                if ids:
                    search_terms.append(In(ref_field, tuple(ids)))
            search_clause = any_of(search_terms)
            if search_clause is not None:
                terms.append(search_clause)

        return all_of(terms)
