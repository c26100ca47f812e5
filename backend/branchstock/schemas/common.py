"""
Shared schema pieces: camelCase base model, response envelopes, pagination.
"""
import math
from typing import Any, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """JSON uses camelCase; request bodies also accept snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class LineKey(CamelModel):
    """(product, variant) part of a stock key as sent by clients."""
    product_id: UUID
    variant_sku: Optional[str] = Field(None, max_length=100)

    @field_validator("variant_sku", mode="before")
    @classmethod
    def _blank_variant_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class VariantOut(CamelModel):
    """Stored "" variants are shown as null."""

    @field_validator("variant_sku", mode="before", check_fields=False)
    @classmethod
    def _empty_variant_is_null(cls, v):
        return v or None


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


def dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def dump_all(schema, rows: Iterable[Any]) -> List[dict]:
    return [dump(schema.model_validate(row)) for row in rows]


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope: {success, data, message?}"""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def paginated(data: List[Any], page: int, limit: int, total: int, message: Optional[str] = None) -> dict:
    body = ok(data, message)
    body["pagination"] = dump(Pagination.build(page, limit, total))
    return body
