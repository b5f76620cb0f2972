"""
Base schemas with standardized field types for consistent API responses.

The wire format is camelCase; Python code uses snake_case field names.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model: camelCase aliases on the wire, ORM objects accepted."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class StrictRequestModel(CamelModel):
    """Request DTO base that forbids unexpected fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="forbid",
        validate_assignment=True,
    )


def reject_null(value: Any, name: str) -> Any:
    """Partial updates may omit a field but not clear a required column."""
    if value is None:
        raise ValueError(f"{name} cannot be null")
    return value


class Money(Decimal):
    """Money field that always serializes as float"""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def reject_bool(value: Any) -> Any:
            # bool is an int subclass; lax int parsing would turn True into 1
            if isinstance(value, bool):
                raise ValueError("Cannot convert bool to Money")
            return value

        def validate_money(value: Any) -> Decimal:
            if isinstance(value, (int, float)):
                return Decimal(str(value))
            if isinstance(value, str):
                try:
                    return Decimal(value.strip())
                except InvalidOperation as exc:
                    raise ValueError(f"Invalid amount: {value!r}") from exc
            if isinstance(value, Decimal):
                return value
            raise ValueError(f"Cannot convert {type(value)} to Money")

        return core_schema.no_info_before_validator_function(
            reject_bool,
            core_schema.no_info_after_validator_function(
                validate_money,
                core_schema.union_schema(
                    [
                        core_schema.int_schema(),
                        core_schema.float_schema(),
                        core_schema.str_schema(),
                        core_schema.is_instance_schema(Decimal),
                    ]
                ),
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float,
                info_arg=False,
                return_schema=core_schema.float_schema(),
            ),
        )


class ApiResponse(CamelModel, Generic[T]):
    """Success envelope used by every endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
