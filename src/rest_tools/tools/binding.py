"""Expression binding for tool templates.

Configuration strings may embed expressions that are resolved per call:

- ``{args.name}`` / ``{env.NAME}``: value from the call arguments or the environment snapshot
- ``{args.name || default}``: typed default literal when the key is absent
- ``{args.name?}``: optional; the enclosing mapping key is dropped when absent

A string that is exactly one expression keeps the native type of the resolved
value. Expressions embedded in longer text are coerced to text.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Union

_EXPRESSION = re.compile(
    r"\{(?P<kind>args|env)\.(?P<key>[a-zA-Z_][a-zA-Z0-9_]*)(?P<optional>\?)?\s*"
    r"(?:\|\|\s*(?P<default>[^}]+))?\}"
)
_INTEGER_LITERAL = re.compile(r"[0-9]+")
_FLOAT_LITERAL = re.compile(r"[0-9]+\.[0-9]+")


class _Marker:
    """Sentinel resolution outcome, distinct from ``None``."""

    __slots__ = ("_name", "_text")

    def __init__(self, name: str, text: str) -> None:
        self._name = name
        self._text = text

    def __repr__(self) -> str:
        return self._name

    def __str__(self) -> str:
        return self._text

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Marker:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Marker:
        return self


# Drop the enclosing mapping key entirely.
OMIT = _Marker("OMIT", "")
# Key absent with no default and not optional.
UNDEFINED = _Marker("UNDEFINED", "undefined")


@dataclass(frozen=True)
class Expression:
    kind: str
    key: str
    text: str
    default_literal: str | None = None
    optional: bool = False

    @property
    def has_default(self) -> bool:
        return self.default_literal is not None

    @property
    def default(self) -> Any:
        if self.default_literal is None:
            return UNDEFINED
        return parse_default_literal(self.default_literal)


Segment = Union[str, Expression]


@dataclass(frozen=True)
class CallContext:
    """Per-call namespaces. Never shared between calls."""

    args: Mapping[str, Any]
    env: Mapping[str, str]

    @classmethod
    def create(
        cls,
        args: Mapping[str, Any] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CallContext:
        return cls(
            args=MappingProxyType(dict(args or {})),
            env=MappingProxyType(dict(env or {})),
        )

    def lookup(self, expression: Expression) -> Any:
        namespace = self.args if expression.kind == "args" else self.env
        value = namespace.get(expression.key, UNDEFINED)
        if value is not UNDEFINED:
            return value
        if expression.has_default:
            return expression.default
        if expression.optional:
            return OMIT
        return UNDEFINED


def parse_default_literal(raw: str) -> Any:
    trimmed = raw.strip()
    if trimmed and trimmed[0] in {'"', "'"} and trimmed.endswith(trimmed[0]):
        return trimmed[1:-1]
    if _INTEGER_LITERAL.fullmatch(trimmed):
        return int(trimmed)
    if _FLOAT_LITERAL.fullmatch(trimmed):
        return float(trimmed)
    if trimmed == "true":
        return True
    if trimmed == "false":
        return False
    if trimmed == "null":
        return None
    if trimmed == "undefined":
        return UNDEFINED
    return trimmed


@lru_cache(maxsize=1024)
def parse_template(text: str) -> tuple[Segment, ...]:
    """Split a string into literal text and expressions in a single pass."""
    segments: list[Segment] = []
    cursor = 0
    for match in _EXPRESSION.finditer(text):
        if match.start() > cursor:
            segments.append(text[cursor : match.start()])
        segments.append(
            Expression(
                kind=match.group("kind"),
                key=match.group("key"),
                text=match.group(0),
                default_literal=match.group("default"),
                optional=match.group("optional") is not None,
            )
        )
        cursor = match.end()
    if cursor < len(text):
        segments.append(text[cursor:])
    return tuple(segments)


def resolve(value: Any, context: CallContext) -> Any:
    """Resolve every embedded expression in ``value``, preserving its shape."""
    if isinstance(value, str):
        return resolve_string(value, context)
    if isinstance(value, Mapping):
        resolved: dict[str, Any] = {}
        for key, item in value.items():
            resolved_item = resolve(item, context)
            if resolved_item is not OMIT:
                resolved[key] = resolved_item
        return resolved
    if isinstance(value, (list, tuple)):
        return [resolve(item, context) for item in value]
    return value


def resolve_string(value: str, context: CallContext) -> Any:
    segments = parse_template(value)
    if len(segments) == 1 and isinstance(segments[0], Expression):
        return context.lookup(segments[0])
    if not any(isinstance(segment, Expression) for segment in segments):
        return value
    return "".join(
        to_text(context.lookup(segment)) if isinstance(segment, Expression) else segment
        for segment in segments
    )


def to_text(value: Any) -> str:
    """Coerce a resolved value for substitution inside a larger string."""
    if isinstance(value, str):
        return value
    if isinstance(value, _Marker):
        return str(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def strip_undefined(value: Any) -> Any:
    """Make a resolved value JSON-ready: undefined keys vanish, markers in sequences become null."""
    if isinstance(value, _Marker):
        return None
    if isinstance(value, Mapping):
        return {
            key: strip_undefined(item)
            for key, item in value.items()
            if not isinstance(item, _Marker)
        }
    if isinstance(value, list):
        return [strip_undefined(item) for item in value]
    return value


def is_unset(value: Any) -> bool:
    return value is None or isinstance(value, _Marker)


def extract_expressions(value: Any) -> list[Expression]:
    if isinstance(value, str):
        return [segment for segment in parse_template(value) if isinstance(segment, Expression)]
    if isinstance(value, Mapping):
        return [expr for item in value.values() for expr in extract_expressions(item)]
    if isinstance(value, (list, tuple)):
        return [expr for item in value for expr in extract_expressions(item)]
    return []


def required_args(expressions: Iterable[Expression]) -> list[str]:
    """Argument keys referenced without a default and without the optional suffix."""
    keys: dict[str, None] = {}
    for expression in expressions:
        if expression.kind == "args" and not expression.has_default and not expression.optional:
            keys.setdefault(expression.key, None)
    return list(keys)


def referenced_env_vars(
    expressions: Iterable[Expression], *, without_default: bool = False
) -> list[str]:
    names: dict[str, None] = {}
    for expression in expressions:
        if expression.kind != "env":
            continue
        if without_default and (expression.has_default or expression.optional):
            continue
        names.setdefault(expression.key, None)
    return list(names)
