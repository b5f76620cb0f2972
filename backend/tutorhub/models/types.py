# backend/tutorhub/models/types.py
"""
Custom SQLAlchemy types that work across different database backends.
"""

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, TypeDecorator
from sqlalchemy.dialects.postgresql import ARRAY

if TYPE_CHECKING:
    from sqlalchemy.sql.type_api import TypeDecorator as _TypeDecorator

    TypeDecoratorProtocol = _TypeDecorator[Any]
else:
    TypeDecoratorProtocol = TypeDecorator


class StringArrayType(TypeDecoratorProtocol):
    """
    A list of strings stored as a PostgreSQL ARRAY when available,
    falling back to JSON text for other databases (like SQLite).

    ``None`` is stored as an empty list so tag columns are always iterable.
    """

    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(ARRAY(String))
        return dialect.type_descriptor(String(2048))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            value = []
        elif isinstance(value, str):
            value = [value]
        items = [str(v) for v in value]
        if dialect.name == "postgresql":
            return items
        return json.dumps(items)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return []
        if dialect.name == "postgresql":
            return list(value)
        if isinstance(value, str):
            return json.loads(value)
        return list(value)
