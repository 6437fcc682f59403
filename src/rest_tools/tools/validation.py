"""Structural validation of call arguments against a tool's input schema.

Validation never stops at the first problem: every violation is collected so
the caller can report them together. Missing required arguments are a separate
check that runs first; ``None`` values are never flagged by type validation.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping

from rest_tools.tools.schemas import (
    ArraySchema,
    BooleanSchema,
    InputSchema,
    IntegerSchema,
    NullSchema,
    NumberSchema,
    ObjectSchema,
    StringSchema,
)


@dataclass(frozen=True)
class Violation:
    field: str
    message: str
    keyword: str

    def __str__(self) -> str:
        return self.message


def check_required(schema: InputSchema, args: Mapping[str, Any]) -> list[Violation]:
    if not isinstance(schema, ObjectSchema):
        return []
    return [
        Violation(name, f"Missing required argument: {name}", "required")
        for name in schema.required
        if args.get(name) is None
    ]


def validate_arguments(
    schema: InputSchema,
    args: Mapping[str, Any],
    *,
    strict: bool = False,
) -> list[Violation]:
    if not isinstance(schema, ObjectSchema):
        return []

    violations: list[Violation] = []
    for name, value in args.items():
        prop = schema.properties.get(name)
        if prop is None:
            if strict and schema.additional_properties is not True:
                violations.append(
                    Violation(name, f"{name} is not a declared argument", "additionalProperties")
                )
            continue
        violations.extend(validate_value(value, prop, name))
    return violations


def validate_value(value: Any, schema: InputSchema, field: str) -> list[Violation]:
    if value is None:
        return []
    return _VALIDATORS[type(schema)](value, schema, field)


def _validate_string(value: Any, schema: StringSchema, field: str) -> list[Violation]:
    if not isinstance(value, str):
        return [_type_violation(field, "a string", value)]
    violations: list[Violation] = []
    if schema.min_length is not None and len(value) < schema.min_length:
        violations.append(
            Violation(
                field,
                f"{field} must be at least {schema.min_length} characters long",
                "minLength",
            )
        )
    if schema.max_length is not None and len(value) > schema.max_length:
        violations.append(
            Violation(
                field,
                f"{field} must be at most {schema.max_length} characters long",
                "maxLength",
            )
        )
    if schema.pattern is not None and _compiled(schema.pattern).search(value) is None:
        violations.append(
            Violation(field, f"{field} does not match required pattern", "pattern")
        )
    violations.extend(_check_enum(value, schema.enum, field))
    return violations


def _validate_number(
    value: Any, schema: NumberSchema | IntegerSchema, field: str
) -> list[Violation]:
    is_number = (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not (isinstance(value, float) and math.isnan(value))
    )
    if not is_number or (isinstance(schema, IntegerSchema) and not _is_whole(value)):
        article = "an" if schema.type == "integer" else "a"
        return [Violation(field, f"{field} must be {article} {schema.type}", "type")]

    violations: list[Violation] = []
    if schema.minimum is not None and value < schema.minimum:
        violations.append(
            Violation(field, f"{field} must be at least {schema.minimum}", "minimum")
        )
    if schema.maximum is not None and value > schema.maximum:
        violations.append(
            Violation(field, f"{field} must be at most {schema.maximum}", "maximum")
        )
    violations.extend(_check_enum(value, schema.enum, field))
    return violations


def _validate_boolean(value: Any, schema: BooleanSchema, field: str) -> list[Violation]:
    if not isinstance(value, bool):
        return [_type_violation(field, "a boolean", value)]
    return _check_enum(value, schema.enum, field)


def _validate_null(value: Any, schema: NullSchema, field: str) -> list[Violation]:
    return [_type_violation(field, "null", value)]


def _validate_array(value: Any, schema: ArraySchema, field: str) -> list[Violation]:
    if not isinstance(value, list):
        return [_type_violation(field, "an array", value)]
    if schema.items is None:
        return []
    violations: list[Violation] = []
    for index, item in enumerate(value):
        violations.extend(validate_value(item, schema.items, f"{field}[{index}]"))
    return violations


def _validate_object(value: Any, schema: ObjectSchema, field: str) -> list[Violation]:
    if not isinstance(value, Mapping):
        return [_type_violation(field, "an object", value)]
    violations: list[Violation] = []
    for name, item in value.items():
        prop = schema.properties.get(name)
        if prop is not None:
            violations.extend(validate_value(item, prop, f"{field}.{name}"))
    return violations


_VALIDATORS: dict[type, Callable[[Any, Any, str], list[Violation]]] = {
    StringSchema: _validate_string,
    NumberSchema: _validate_number,
    IntegerSchema: _validate_number,
    BooleanSchema: _validate_boolean,
    NullSchema: _validate_null,
    ArraySchema: _validate_array,
    ObjectSchema: _validate_object,
}


def _check_enum(value: Any, options: list[Any] | None, field: str) -> list[Violation]:
    if options is None:
        return []
    for option in options:
        if option == value and isinstance(option, bool) == isinstance(value, bool):
            return []
    rendered = ", ".join(str(option) for option in options)
    return [Violation(field, f"{field} must be one of: {rendered}", "enum")]


def _type_violation(field: str, expected: str, value: Any) -> Violation:
    return Violation(field, f"{field} must be {expected}, got {json_type_name(value)}", "type")


def _is_whole(value: int | float) -> bool:
    return isinstance(value, int) or (math.isfinite(value) and value.is_integer())


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__
