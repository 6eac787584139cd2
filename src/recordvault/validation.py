"""Schema validation for inbound payloads.

Schemas are data, not code. A ``RecordSchema`` is a versioned descriptor
whose fields map to a tagged-variant rule set (discriminated on ``type``)
that is interpreted at request time, so a new ``schema_version`` only needs a
new descriptor:

    version: 2
    properties:
      name: {type: string, max_length: 64}
      age: {type: integer, minimum: 0, required: false}
      tags: {type: array, items: {type: string}}

The validator itself holds no mutable state and is safe to share across
concurrent requests.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Iterable, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError, FieldError, ValidationError

ROOT_PATH = "$"


class _Rule(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    required: bool = True
    nullable: bool = False


class StringRule(_Rule):
    type: Literal["string"]
    min_length: Optional[int] = Field(default=None, ge=0)
    max_length: Optional[int] = Field(default=None, ge=0)
    pattern: Optional[str] = None
    enum: Optional[list[str]] = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern {value!r}: {e}") from e
        return value


class IntegerRule(_Rule):
    type: Literal["integer"]
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    enum: Optional[list[int]] = None


class NumberRule(_Rule):
    type: Literal["number"]
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class BooleanRule(_Rule):
    type: Literal["boolean"]


class AnyRule(_Rule):
    type: Literal["any"]


class ArrayRule(_Rule):
    type: Literal["array"]
    items: Optional["FieldRule"] = None
    min_items: Optional[int] = Field(default=None, ge=0)
    max_items: Optional[int] = Field(default=None, ge=0)


class ObjectRule(_Rule):
    type: Literal["object"]
    properties: dict[str, "FieldRule"] = Field(default_factory=dict)
    allow_unknown: bool = False


FieldRule = Annotated[
    Union[StringRule, IntegerRule, NumberRule, BooleanRule, ArrayRule, ObjectRule, AnyRule],
    Field(discriminator="type"),
]

ArrayRule.model_rebuild()
ObjectRule.model_rebuild()


class RecordSchema(BaseModel):
    """Versioned descriptor of a record payload.

    Attributes:
        version: Schema version referenced by writes
        properties: Top-level fields and their rules
        allow_unknown: Accept top-level fields not listed in ``properties``
        max_payload_bytes: Per-schema size limit (overrides the global limit)
        description: Free-form documentation
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    version: int = Field(ge=1)
    properties: dict[str, FieldRule] = Field(default_factory=dict)
    allow_unknown: bool = False
    max_payload_bytes: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None


class SchemaRegistry:
    """Versioned collection of record schemas."""

    def __init__(self, schemas: Iterable[RecordSchema] = ()):
        self._schemas: dict[int, RecordSchema] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: RecordSchema) -> None:
        """Add a schema version.

        Re-registering an identical descriptor is a no-op; changing an
        existing version is refused since stored records reference it.
        """
        existing = self._schemas.get(schema.version)
        if existing is not None and existing != schema:
            raise ConfigurationError(
                f"Schema version {schema.version} is already registered with a different definition"
            )
        self._schemas[schema.version] = schema

    def get(self, version: int) -> Optional[RecordSchema]:
        return self._schemas.get(version)

    def versions(self) -> list[int]:
        return sorted(self._schemas)

    def __contains__(self, version: object) -> bool:
        return version in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    @classmethod
    def from_dicts(cls, items: Iterable[dict[str, Any]]) -> "SchemaRegistry":
        """Build a registry from raw descriptors (e.g. parsed YAML)."""
        schemas = []
        for item in items:
            try:
                schemas.append(RecordSchema.model_validate(item))
            except PydanticValidationError as e:
                raise ConfigurationError(f"Invalid schema definition: {e}") from e
        return cls(schemas)

    @classmethod
    def from_file(cls, path: str | Path) -> "SchemaRegistry":
        """Load schemas from a YAML or JSON file.

        The file holds either a list of descriptors or a mapping with a
        ``schemas`` list.
        """
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigurationError(f"Schema file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get("schemas", [])
        if not isinstance(data, list):
            raise ConfigurationError(f"Schema file {path} must contain a list of schemas")
        return cls.from_dicts(data)


@dataclass(frozen=True)
class ValidatedPayload:
    """A payload that passed validation."""
    payload: dict[str, Any]
    schema_version: int
    size_bytes: int


class _StopAtFirst(Exception):
    pass


class _Walk:
    """Collects field errors while walking a payload against its rules."""

    def __init__(self, collect_all: bool):
        self.collect_all = collect_all
        self.errors: list[FieldError] = []

    def fail(self, path: str, message: str) -> None:
        self.errors.append(FieldError(path, message))
        if not self.collect_all:
            raise _StopAtFirst()

    def check_members(
        self,
        value: dict,
        properties: dict[str, Any],
        allow_unknown: bool,
        prefix: str,
    ) -> None:
        for name, rule in properties.items():
            path = _join(prefix, name)
            if name not in value:
                if rule.required:
                    self.fail(path, "is required")
                continue
            self.check(value[name], rule, path)

        for name in value:
            if not isinstance(name, str):
                self.fail(_join(prefix, str(name)), "field names must be strings")
            elif name not in properties:
                if allow_unknown:
                    self.check_keys(value[name], _join(prefix, name))
                else:
                    self.fail(_join(prefix, name), "is not allowed")

    def check_keys(self, value: Any, path: str) -> None:
        """Reject non-string keys in values no rule describes."""
        if isinstance(value, dict):
            for name, item in value.items():
                if not isinstance(name, str):
                    self.fail(_join(path, str(name)), "field names must be strings")
                else:
                    self.check_keys(item, _join(path, name))
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                self.check_keys(item, f"{path}[{i}]")

    def check(self, value: Any, rule: Any, path: str) -> None:
        if value is None:
            if not (rule.nullable or rule.type == "any"):
                self.fail(path, "must not be null")
            return

        if rule.type == "string":
            if not isinstance(value, str):
                self.fail(path, "must be a string")
                return
            if rule.min_length is not None and len(value) < rule.min_length:
                self.fail(path, f"must be at least {rule.min_length} characters")
            if rule.max_length is not None and len(value) > rule.max_length:
                self.fail(path, f"must be at most {rule.max_length} characters")
            if rule.pattern is not None and not re.search(rule.pattern, value):
                self.fail(path, f"must match pattern {rule.pattern!r}")
            if rule.enum is not None and value not in rule.enum:
                self.fail(path, f"must be one of {rule.enum}")

        elif rule.type in ("integer", "number"):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                self.fail(path, f"must be {'an integer' if rule.type == 'integer' else 'a number'}")
                return
            if rule.type == "integer" and not isinstance(value, int):
                self.fail(path, "must be an integer")
                return
            if rule.minimum is not None and value < rule.minimum:
                self.fail(path, f"must be >= {rule.minimum}")
            if rule.maximum is not None and value > rule.maximum:
                self.fail(path, f"must be <= {rule.maximum}")
            if getattr(rule, "enum", None) is not None and value not in rule.enum:
                self.fail(path, f"must be one of {rule.enum}")

        elif rule.type == "boolean":
            if not isinstance(value, bool):
                self.fail(path, "must be a boolean")

        elif rule.type == "array":
            if not isinstance(value, (list, tuple)):
                self.fail(path, "must be an array")
                return
            if rule.min_items is not None and len(value) < rule.min_items:
                self.fail(path, f"must contain at least {rule.min_items} items")
            if rule.max_items is not None and len(value) > rule.max_items:
                self.fail(path, f"must contain at most {rule.max_items} items")
            if rule.items is not None:
                for i, item in enumerate(value):
                    self.check(item, rule.items, f"{path}[{i}]")
            else:
                self.check_keys(value, path)

        elif rule.type == "object":
            if not isinstance(value, dict):
                self.fail(path, "must be an object")
                return
            self.check_members(value, rule.properties, rule.allow_unknown, path)

        elif rule.type == "any":
            self.check_keys(value, path)


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


class Validator:
    """Checks payloads against the schemas of a registry.

    Args:
        registry: Known schema versions
        max_payload_bytes: Global limit on the encoded payload size
        collect_all: Report every failing field instead of the first one
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        max_payload_bytes: int = 64 * 1024,
        collect_all: bool = False,
    ):
        self.registry = registry
        self.max_payload_bytes = max_payload_bytes
        self.collect_all = collect_all

    def validate(self, payload: Any, schema_version: int) -> ValidatedPayload:
        """Validate ``payload`` against schema ``schema_version``.

        Raises:
            ValidationError: with the failing field paths
        """
        schema = self.registry.get(schema_version)
        if schema is None:
            raise ValidationError([
                FieldError("schema_version", f"unknown schema version {schema_version}")
            ])

        if not isinstance(payload, dict):
            raise ValidationError([FieldError(ROOT_PATH, "payload must be a JSON object")])

        try:
            encoded = json.dumps(
                payload, ensure_ascii=False, separators=(",", ":"), allow_nan=False
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ValidationError([
                FieldError(ROOT_PATH, f"payload is not JSON-compatible: {e}")
            ]) from e

        limit = schema.max_payload_bytes or self.max_payload_bytes
        if len(encoded) > limit:
            raise ValidationError([
                FieldError(ROOT_PATH, f"payload is {len(encoded)} bytes, limit is {limit}")
            ])

        walk = _Walk(self.collect_all)
        try:
            walk.check_members(payload, schema.properties, schema.allow_unknown, "")
        except _StopAtFirst:
            pass
        if walk.errors:
            raise ValidationError(walk.errors)

        return ValidatedPayload(
            payload=payload,
            schema_version=schema_version,
            size_bytes=len(encoded),
        )
