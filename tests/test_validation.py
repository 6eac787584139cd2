"""Tests for schema descriptors and payload validation."""

import pytest

from recordvault.errors import ConfigurationError, ValidationError
from recordvault.validation import RecordSchema, SchemaRegistry, Validator


class TestSchemaRegistry:
    """Tests for loading and registering schemas."""

    def test_from_dicts(self, registry):
        assert registry.versions() == [1, 2]
        assert 1 in registry
        assert len(registry) == 2

    def test_unknown_rule_type_rejected(self):
        with pytest.raises(ConfigurationError, match="Invalid schema"):
            SchemaRegistry.from_dicts([
                {"version": 1, "properties": {"x": {"type": "date"}}}
            ])

    def test_invalid_pattern_rejected(self):
        with pytest.raises(ConfigurationError):
            SchemaRegistry.from_dicts([
                {"version": 1, "properties": {"x": {"type": "string", "pattern": "("}}}
            ])

    def test_reregistering_same_schema_is_noop(self, registry):
        schema = registry.get(1)
        registry.register(RecordSchema.model_validate(schema.model_dump()))
        assert registry.versions() == [1, 2]

    def test_changing_existing_version_refused(self, registry):
        changed = RecordSchema.model_validate({
            "version": 1,
            "properties": {"name": {"type": "integer"}},
        })
        with pytest.raises(ConfigurationError, match="already registered"):
            registry.register(changed)

    def test_new_version_without_code_change(self, registry):
        registry.register(RecordSchema.model_validate({
            "version": 3,
            "properties": {"sku": {"type": "string"}},
        }))
        validator = Validator(registry)
        result = validator.validate({"sku": "A-1"}, 3)
        assert result.schema_version == 3

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "schemas.yaml"
        path.write_text(
            "schemas:\n"
            "  - version: 7\n"
            "    properties:\n"
            "      title: {type: string}\n"
            "      score: {type: number, minimum: 0}\n"
        )
        registry = SchemaRegistry.from_file(path)
        assert registry.versions() == [7]

    def test_from_json_list_file(self, tmp_path):
        path = tmp_path / "schemas.json"
        path.write_text('[{"version": 1, "properties": {"a": {"type": "boolean"}}}]')
        registry = SchemaRegistry.from_file(path)
        assert registry.get(1).properties["a"].type == "boolean"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            SchemaRegistry.from_file(tmp_path / "nope.yaml")


class TestValidatorAccepts:
    """Valid payloads pass."""

    def test_minimal_payload(self, validator):
        result = validator.validate({"name": "a"}, 1)
        assert result.payload == {"name": "a"}
        assert result.schema_version == 1
        assert result.size_bytes == len('{"name":"a"}')

    def test_full_payload(self, validator):
        payload = {
            "name": "Ada",
            "age": 36,
            "tags": ["math", "engines"],
            "address": {"city": "London", "zip": "12345"},
            "nickname": None,
        }
        assert validator.validate(payload, 2).payload == payload

    def test_optional_fields_may_be_absent(self, validator):
        validator.validate({"name": "Ada"}, 2)

    @pytest.mark.parametrize("name", ["a", "Grace Hopper", "x" * 64])
    def test_valid_names(self, validator, name):
        validator.validate({"name": name}, 2)


class TestValidatorRejects:
    """Invalid payloads are rejected with field paths."""

    def test_missing_required_field_is_named(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({}, 1)
        assert exc_info.value.paths == ["name"]
        assert exc_info.value.kind == "validation"

    def test_unknown_field(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": "a", "extra": 1}, 1)
        assert exc_info.value.paths == ["extra"]

    def test_allow_unknown(self):
        registry = SchemaRegistry.from_dicts([
            {"version": 1, "allow_unknown": True, "properties": {"name": {"type": "string"}}}
        ])
        Validator(registry).validate({"name": "a", "extra": 1}, 1)

    def test_non_string_key_rejected_with_allow_unknown(self):
        registry = SchemaRegistry.from_dicts([
            {"version": 1, "allow_unknown": True, "properties": {"name": {"type": "string"}}}
        ])
        with pytest.raises(ValidationError) as exc_info:
            Validator(registry).validate({"name": "a", 1: "x"}, 1)
        assert exc_info.value.paths == ["1"]
        assert exc_info.value.errors[0].message == "field names must be strings"

    def test_non_string_key_rejected_in_untyped_value(self):
        registry = SchemaRegistry.from_dicts([
            {"version": 1, "properties": {"meta": {"type": "any"}}}
        ])
        validator = Validator(registry)
        validator.validate({"meta": {"a": [{"b": 1}]}}, 1)
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"meta": {"a": [{2: 1}]}}, 1)
        assert exc_info.value.paths == ["meta.a[0].2"]

    def test_wrong_type(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": 5}, 1)
        assert exc_info.value.errors[0].message == "must be a string"

    def test_bool_is_not_an_integer(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": "a", "age": True}, 2)
        assert exc_info.value.paths == ["age"]

    def test_float_is_not_an_integer(self, validator):
        with pytest.raises(ValidationError):
            validator.validate({"name": "a", "age": 3.5}, 2)

    def test_range(self, validator):
        with pytest.raises(ValidationError, match="must be <= 150"):
            validator.validate({"name": "a", "age": 151}, 2)

    def test_null_not_allowed_unless_nullable(self, validator):
        with pytest.raises(ValidationError, match="must not be null"):
            validator.validate({"name": None}, 2)

    def test_nested_object_path(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": "a", "address": {"zip": "123"}}, 2)
        assert exc_info.value.paths == ["address.city"]

    def test_array_item_path(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": "a", "tags": ["ok", 3]}, 2)
        assert exc_info.value.paths == ["tags[1]"]

    def test_array_too_long(self, validator):
        with pytest.raises(ValidationError, match="at most 5 items"):
            validator.validate({"name": "a", "tags": ["t"] * 6}, 2)

    def test_pattern(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": "a", "address": {"city": "x", "zip": "abc"}}, 2)
        assert exc_info.value.paths == ["address.zip"]

    def test_unknown_schema_version(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"name": "a"}, 99)
        assert exc_info.value.paths == ["schema_version"]

    def test_payload_must_be_object(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(["name"], 1)
        assert exc_info.value.paths == ["$"]

    def test_not_json_compatible(self, validator):
        with pytest.raises(ValidationError, match="JSON-compatible"):
            validator.validate({"name": {1, 2}}, 1)

    def test_nan_not_json_compatible(self):
        registry = SchemaRegistry.from_dicts([
            {"version": 1, "properties": {"x": {"type": "number"}}}
        ])
        with pytest.raises(ValidationError, match="JSON-compatible"):
            Validator(registry).validate({"x": float("nan")}, 1)

    def test_payload_size_limit(self, validator):
        with pytest.raises(ValidationError, match="limit is 1024") as exc_info:
            validator.validate({"name": "x" * 2000}, 1)
        assert exc_info.value.paths == ["$"]

    def test_schema_size_limit_overrides_global(self):
        registry = SchemaRegistry.from_dicts([
            {"version": 1, "max_payload_bytes": 20, "properties": {"name": {"type": "string"}}}
        ])
        with pytest.raises(ValidationError, match="limit is 20"):
            Validator(registry, max_payload_bytes=10_000).validate({"name": "x" * 30}, 1)


class TestCollectAll:
    """First-error versus all-errors reporting."""

    PAYLOAD = {"age": -1, "tags": [1], "extra": True}

    def test_first_error_only_by_default(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(self.PAYLOAD, 2)
        assert len(exc_info.value.errors) == 1
        assert exc_info.value.paths == ["name"]

    def test_collect_all(self, registry):
        validator = Validator(registry, collect_all=True)
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(self.PAYLOAD, 2)
        assert exc_info.value.paths == ["name", "age", "tags[0]", "extra"]

    def test_error_serialization(self, registry):
        validator = Validator(registry, collect_all=True)
        with pytest.raises(ValidationError) as exc_info:
            validator.validate({"age": -1}, 2)
        data = exc_info.value.to_dict()
        assert data["kind"] == "validation"
        assert {"path": "name", "message": "is required"} in data["errors"]
