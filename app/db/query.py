"""
Query pipeline — turns raw query-string parameters into a bounded SELECT.

    ?price[gte]=100&difficulty=easy&sort=price,-duration&fields=name,price&page=2&limit=5

``QuerySpec.from_params`` parses the request once; ``QueryFeatures`` then
composes the stages onto a ``Select`` in a fixed order:

    filter → sort → limit_fields → paginate

Only columns the model exposes publicly may be filtered, sorted or
selected. Anything else is a ``BadRequest`` rather than being forwarded to
the database.
"""

from __future__ import annotations

import enum
import operator
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import Select, select

from app.core.exceptions import BadRequest
from app.db.base import Base

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
DEFAULT_SORT = "price"

COMPARISONS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

_OPERATOR_KEY = re.compile(r"^(?P<field>\w+)\[(?P<op>gte|gt|lte|lt)\]$")
_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: str


@dataclass(frozen=True)
class QuerySpec:
    filters: tuple[Condition, ...] = ()
    sort: tuple[str, ...] = ()
    fields: tuple[str, ...] = ()
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> QuerySpec:
        filters = []
        for key, value in params.items():
            if key in RESERVED_PARAMS:
                continue
            match = _OPERATOR_KEY.match(key)
            if match:
                filters.append(Condition(match["field"], match["op"], value))
            else:
                filters.append(Condition(key, "eq", value))

        return cls(
            filters=tuple(filters),
            sort=_split(params.get("sort")),
            fields=_split(params.get("fields")),
            page=_positive_int(params.get("page"), DEFAULT_PAGE),
            limit=_positive_int(params.get("limit"), DEFAULT_LIMIT),
        )


def _split(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _positive_int(raw: str | None, default: int) -> int:
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _coerce(field: str, column: Any, raw: str) -> Any:
    """Bind *raw* through the column's Python type so the engine can compare it."""
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw

    try:
        if python_type is bool:
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if python_type is date:
            return date.fromisoformat(raw)
        if issubclass(python_type, enum.Enum):
            return python_type(raw)
        return python_type(raw)
    except (TypeError, ValueError) as exc:
        raise BadRequest(f"Invalid value '{raw}' for field '{field}'") from exc


class QueryFeatures:
    """Chainable pipeline stages applied to a ``Select`` for *model*."""

    def __init__(
        self,
        model: type[Base],
        params: QuerySpec | Mapping[str, str],
        *,
        statement: Select[Any] | None = None,
        default_sort: str = DEFAULT_SORT,
    ) -> None:
        self.model = model
        self.spec = params if isinstance(params, QuerySpec) else QuerySpec.from_params(params)
        self.statement = statement if statement is not None else select(model)
        self.default_sort = default_sort
        self._columns = model.public_columns()

    def _column(self, name: str, stage: str) -> Any:
        column = self._columns.get(name)
        if column is None:
            raise BadRequest(f"Cannot {stage} by unknown field '{name}'")
        return column

    def filter(self) -> QueryFeatures:
        for cond in self.spec.filters:
            column = self._column(cond.field, "filter")
            value = _coerce(cond.field, column, cond.value)
            self.statement = self.statement.where(COMPARISONS[cond.op](column, value))
        return self

    def sort(self) -> QueryFeatures:
        keys = self.spec.sort or (self.default_sort,)
        order = []
        for key in keys:
            descending = key.startswith("-")
            column = self._column(key.lstrip("-"), "sort")
            order.append(column.desc() if descending else column.asc())
        # stable pages when sort keys tie
        order.append(self._columns["id"].asc())
        self.statement = self.statement.order_by(*order)
        return self

    def limit_fields(self) -> QueryFeatures:
        """Project onto the requested fields, or drop the ``-``-prefixed ones.

        Inclusion and exclusion cannot be mixed. ``id`` is always returned.
        """
        requested = list(self.spec.fields)
        excluded = [name[1:] for name in requested if name.startswith("-")]
        if excluded and len(excluded) != len(requested):
            raise BadRequest("Cannot mix included and excluded fields")

        if excluded:
            for name in excluded:
                self._column(name, "select")
            names = [name for name in self.model.default_fields() if name not in excluded]
        else:
            names = requested or self.model.default_fields()
        if "id" not in names:
            names.insert(0, "id")
        columns = [self._column(name, "select") for name in dict.fromkeys(names)]
        self.statement = self.statement.with_only_columns(*columns)
        return self

    def paginate(self) -> QueryFeatures:
        self.statement = self.statement.offset(self.spec.skip).limit(self.spec.limit)
        return self

    def build(self) -> Select[Any]:
        """Run every stage in order and return the final statement."""
        return self.filter().sort().limit_fields().paginate().statement
