"""
Declarative base shared by every model.

Besides the metadata, the base knows which columns of a model are safe to
expose (``public_columns``) and how to turn a loaded row into a plain dict.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from sqlalchemy import inspect
from sqlalchemy.orm import DeclarativeBase, InstrumentedAttribute

# Optimistic-concurrency counter; present on every model, hidden by default.
VERSION_FIELD = "version"


class Base(DeclarativeBase):
    # models use plain Column() declarations with bare annotations
    __allow_unmapped__ = True

    # Columns that must never leave the service (password hashes etc.)
    __hidden__: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def public_columns(cls) -> dict[str, InstrumentedAttribute[Any]]:
        return {
            attr.key: getattr(cls, attr.key)
            for attr in inspect(cls).column_attrs
            if attr.key not in cls.__hidden__
        }

    @classmethod
    def default_fields(cls) -> list[str]:
        return [key for key in cls.public_columns() if key != VERSION_FIELD]

    def to_dict(self, *, expand: Iterable[str] = ()) -> dict[str, Any]:
        data = {key: getattr(self, key) for key in self.default_fields()}
        for name in expand:
            related = getattr(self, name)
            if related is None:
                data[name] = None
            elif isinstance(related, list):
                data[name] = [item.to_dict() for item in related]
            else:
                data[name] = related.to_dict()
        return data
