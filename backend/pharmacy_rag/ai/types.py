from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from sqlalchemy.types import TEXT, TypeDecorator, UserDefinedType


class _PgVector(UserDefinedType):
    cache_ok = True

    def __init__(self, dimensions: int):
        self.dimensions = dimensions

    def get_col_spec(self, **_: Any) -> str:
        return f"vector({self.dimensions})"


def format_pgvector(values: Sequence[float]) -> str:
    # pgvector text input: "[1,2,3]"
    return "[" + ",".join(f"{float(x):.8f}" for x in values) + "]"


def parse_stored_vector(raw: Any) -> list[float] | None:
    """
    Decode a stored vector: a driver-side list, pgvector text or a JSON array.

    Anything else loads as None; validation of the numbers themselves
    (empty, non-finite) happens in the store's record layer.
    """
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        items: Any = list(raw)
    elif isinstance(raw, str):
        try:
            items = json.loads(raw)
        except ValueError:
            return None
    else:
        return None
    if not isinstance(items, list):
        return None
    try:
        return [float(x) for x in items]
    except (TypeError, ValueError):
        return None


class EmbeddingVector(TypeDecorator):
    """`vector(dim)` on Postgres (pgvector), JSON text everywhere else."""

    cache_ok = True
    impl = TEXT

    def __init__(self, dimensions: int):
        super().__init__()
        self.dimensions = dimensions

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(_PgVector(self.dimensions))
        return dialect.type_descriptor(TEXT())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return format_pgvector(value)
        return json.dumps([float(x) for x in value])

    def process_result_value(self, value, dialect):
        return parse_stored_vector(value)
