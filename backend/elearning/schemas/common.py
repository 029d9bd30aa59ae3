from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StoreRecord(BaseModel):
    """Shape shared by everything persisted in the document store: camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_record(self, *, exclude: set[str] | None = None) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude=exclude, exclude_none=True)


def as_list(value: Any) -> Any:
    # The store hands back mappings with "0", "1", ... keys for anything written as a list.
    if isinstance(value, Mapping):
        try:
            return [v for _, v in sorted(value.items(), key=lambda kv: int(kv[0]))]
        except (TypeError, ValueError):
            return list(value.values())
    return value


def as_mapping(value: Any) -> Any:
    # ...and realtime databases hand back lists for mappings with sequential integer keys.
    if isinstance(value, list):
        return {idx: v for idx, v in enumerate(value) if v is not None}
    return value
