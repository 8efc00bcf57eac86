"""Tests for clientgen.parser.resolver."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from clientgen.exceptions import (
    AmbiguousMergeError,
    ResolutionError,
    UnresolvedReferenceError,
)
from clientgen.ir import (
    ArrayNode,
    EnumNode,
    ModuleDescriptor,
    ObjectNode,
    PrimitiveKind,
    PrimitiveNode,
    ReferenceNode,
    UnionNode,
)
from clientgen.parser.resolver import resolve, resolve_timestamp

SCHEMAS = "#/components/schemas"


# ---------------------------------------------------------------------------
# Petstore
# ---------------------------------------------------------------------------


class TestPetstore:
    """Resolve the shared petstore document."""

    def test_metadata(self, petstore_module: ModuleDescriptor) -> None:
        assert petstore_module.title == "Petstore"
        assert petstore_module.version == "1.0.0"
        assert petstore_module.servers == ("https://petstore.example.com/v1",)
        assert petstore_module.module_prefix == "Petstore"
        assert petstore_module.generation_timestamp == "2024-01-01 00:00:00"
        assert petstore_module.api_key_header == "X-Pet-Key"

    def test_roots_in_document_order(self, petstore_module: ModuleDescriptor) -> None:
        names = [ref.rsplit("/", 1)[-1] for ref in petstore_module.roots]
        assert names == ["Status", "Pet", "NewPet", "Error", "Node", "Shape", "Circle", "Square"]

    def test_declarations(self, petstore_module: ModuleDescriptor) -> None:
        assert petstore_module.declarations == (
            f"{SCHEMAS}/Status",
            f"{SCHEMAS}/Pet",
            f"{SCHEMAS}/NewPet",
            f"{SCHEMAS}/Error",
            f"{SCHEMAS}/Node",
            f"{SCHEMAS}/Shape",
            f"{SCHEMAS}/Circle",
            f"{SCHEMAS}/Circle/properties/kind",
            f"{SCHEMAS}/Square",
            f"{SCHEMAS}/Square/properties/kind",
        )

    def test_object_fields(self, petstore_module: ModuleDescriptor) -> None:
        pet = petstore_module.node(f"{SCHEMAS}/Pet")
        assert isinstance(pet, ObjectNode)
        assert [f.name for f in pet.fields] == ["id", "name", "tag", "status"]
        assert pet.field("id").required
        assert not pet.field("tag").required
        assert pet.field("tag").nullable
        assert pet.field("status").type == f"{SCHEMAS}/Status"

        id_node = petstore_module.node(pet.field("id").type)
        assert isinstance(id_node, PrimitiveNode)
        assert id_node.primitive == PrimitiveKind.INTEGER
        assert id_node.format == "int64"

    def test_enum(self, petstore_module: ModuleDescriptor) -> None:
        status = petstore_module.node(f"{SCHEMAS}/Status")
        assert isinstance(status, EnumNode)
        assert status.values == ("available", "pending", "sold")
        assert status.description == "Adoption status."

    def test_self_reference_becomes_reference_node(self, petstore_module: ModuleDescriptor) -> None:
        node = petstore_module.node(f"{SCHEMAS}/Node")
        next_ref = node.field("next").type
        assert next_ref == f"{SCHEMAS}/Node@ref"
        back = petstore_module.node(next_ref)
        assert isinstance(back, ReferenceNode)
        assert back.target == f"{SCHEMAS}/Node"
        assert petstore_module.deref(next_ref) is node
        assert petstore_module.recursive_targets == frozenset({f"{SCHEMAS}/Node"})

    def test_discriminated_union(self, petstore_module: ModuleDescriptor) -> None:
        shape = petstore_module.node(f"{SCHEMAS}/Shape")
        assert isinstance(shape, UnionNode)
        assert shape.discriminated
        assert shape.discriminator == "kind"
        assert shape.tags == ("circle", "square")
        assert shape.variants == (f"{SCHEMAS}/Circle", f"{SCHEMAS}/Square")

    def test_inline_response_array(self, petstore_module: ModuleDescriptor) -> None:
        list_pets = petstore_module.operations[0]
        response = list_pets.responses[0]
        node = petstore_module.node(response.type)
        assert isinstance(node, ArrayNode)
        assert node.element == f"{SCHEMAS}/Pet"
        assert not petstore_module.is_declared(node.id)

    def test_same_document_resolves_to_equal_ir(self, petstore_document: dict[str, Any]) -> None:
        first = resolve(petstore_document, "Petstore", generation_timestamp="x")
        second = resolve(petstore_document, "Petstore", generation_timestamp="x")
        assert first == second
        assert first.model_dump() == second.model_dump()


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------


class TestCycles:
    """Test cycle detection through the active-resolution stack."""

    def test_mutual_recursion(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "A": {"type": "object", "properties": {"b": {"$ref": f"{SCHEMAS}/B"}}},
                "B": {"type": "object", "properties": {"a": {"$ref": f"{SCHEMAS}/A"}}},
            }
        )
        module = resolve(document)
        a = module.node(f"{SCHEMAS}/A")
        b = module.node(f"{SCHEMAS}/B")
        assert a.field("b").type == f"{SCHEMAS}/B"
        assert b.field("a").type == f"{SCHEMAS}/A@ref"
        assert module.recursive_targets == frozenset({f"{SCHEMAS}/A"})

    def test_recursive_array(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "Tree": {
                    "type": "object",
                    "properties": {
                        "children": {"type": "array", "items": {"$ref": f"{SCHEMAS}/Tree"}}
                    },
                }
            }
        )
        module = resolve(document)
        children = module.node(module.node(f"{SCHEMAS}/Tree").field("children").type)
        assert isinstance(children, ArrayNode)
        assert children.element == f"{SCHEMAS}/Tree@ref"

    def test_alias_only_cycle_is_rejected(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "A": {"$ref": f"{SCHEMAS}/B"},
                "B": {"$ref": f"{SCHEMAS}/A"},
            }
        )
        with pytest.raises(UnresolvedReferenceError):
            resolve(document)


# ---------------------------------------------------------------------------
# allOf
# ---------------------------------------------------------------------------


class TestAllOf:
    """Test allOf merging."""

    def test_merges_fields_and_required(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "Extended": {
                    "allOf": [
                        {"$ref": f"{SCHEMAS}/Base"},
                        {
                            "type": "object",
                            "required": ["name"],
                            "properties": {"name": {"type": "string"}},
                        },
                    ]
                },
                "Base": {
                    "type": "object",
                    "required": ["id"],
                    "properties": {"id": {"type": "integer"}},
                },
            }
        )
        module = resolve(document)
        extended = module.node(f"{SCHEMAS}/Extended")
        assert isinstance(extended, ObjectNode)
        assert [(f.name, f.required) for f in extended.fields] == [("id", True), ("name", True)]

    def test_same_field_same_type_merges(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "Both": {
                    "allOf": [
                        {"type": "object", "properties": {"x": {"type": "string"}}},
                        {"type": "object", "required": ["x"], "properties": {"x": {"type": "string"}}},
                    ]
                }
            }
        )
        module = resolve(document)
        fields = module.node(f"{SCHEMAS}/Both").fields
        assert len(fields) == 1
        assert fields[0].required

    def test_conflicting_field_types_raise(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "Merged": {
                    "allOf": [
                        {"type": "object", "properties": {"x": {"type": "string"}}},
                        {"type": "object", "properties": {"x": {"type": "integer"}}},
                    ]
                }
            }
        )
        with pytest.raises(AmbiguousMergeError, match="conflicting types") as exc_info:
            resolve(document)
        assert exc_info.value.schema_path == f"{SCHEMAS}/Merged"

    def test_non_object_member_raises(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {"Odd": {"allOf": [{"type": "object", "properties": {"a": {}}}, {"type": "string"}]}}
        )
        with pytest.raises(AmbiguousMergeError, match="only objects"):
            resolve(document)

    def test_single_member_is_an_alias(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {
                "Wrapper": {"allOf": [{"$ref": f"{SCHEMAS}/Inner"}]},
                "Inner": {"type": "object", "properties": {"v": {"type": "string"}}},
            }
        )
        module = resolve(document)
        assert f"{SCHEMAS}/Wrapper" not in module.nodes
        assert module.roots == (f"{SCHEMAS}/Inner",)


# ---------------------------------------------------------------------------
# Unions and nullability
# ---------------------------------------------------------------------------


class TestUnions:
    """Test oneOf/anyOf handling."""

    def test_untagged_union(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document({"Id": {"oneOf": [{"type": "string"}, {"type": "integer"}]}})
        module = resolve(document)
        union = module.node(f"{SCHEMAS}/Id")
        assert isinstance(union, UnionNode)
        assert not union.discriminated
        assert len(union.variants) == 2

    def test_implicit_discriminator_from_single_value_enums(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        document = make_document(
            {
                "Pet": {"anyOf": [{"$ref": f"{SCHEMAS}/Cat"}, {"$ref": f"{SCHEMAS}/Dog"}]},
                "Cat": {
                    "type": "object",
                    "properties": {"type": {"const": "cat"}, "purrs": {"type": "boolean"}},
                },
                "Dog": {
                    "type": "object",
                    "properties": {"type": {"const": "dog"}, "barks": {"type": "boolean"}},
                },
            }
        )
        union = resolve(document).node(f"{SCHEMAS}/Pet")
        assert union.discriminated
        assert union.discriminator == "type"
        assert union.tags == ("cat", "dog")

    def test_null_member_makes_reference_nullable(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        document = make_document(
            {
                "Holder": {
                    "type": "object",
                    "properties": {
                        "inner": {"oneOf": [{"$ref": f"{SCHEMAS}/Inner"}, {"type": "null"}]}
                    },
                },
                "Inner": {"type": "object", "properties": {"v": {"type": "string"}}},
            }
        )
        field = resolve(document).node(f"{SCHEMAS}/Holder").field("inner")
        assert field.type == f"{SCHEMAS}/Inner"
        assert field.nullable

    def test_type_array_with_null(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {"Item": {"type": "object", "properties": {"note": {"type": ["string", "null"]}}}}
        )
        module = resolve(document)
        field = module.node(f"{SCHEMAS}/Item").field("note")
        assert field.nullable
        assert module.node(field.type).primitive == PrimitiveKind.STRING


# ---------------------------------------------------------------------------
# Degradations
# ---------------------------------------------------------------------------


class TestDegradations:
    """Schemas without a generatable shape degrade instead of failing."""

    def test_object_without_properties_is_any(self, make_document: Callable[..., dict[str, Any]]) -> None:
        module = resolve(make_document({"Bag": {"type": "object"}}))
        node = module.node(f"{SCHEMAS}/Bag")
        assert isinstance(node, PrimitiveNode)
        assert node.primitive == PrimitiveKind.ANY

    def test_integer_enum_keeps_its_type(self, make_document: Callable[..., dict[str, Any]]) -> None:
        module = resolve(make_document({"Level": {"type": "integer", "enum": [1, 2, 3]}}))
        node = module.node(f"{SCHEMAS}/Level")
        assert isinstance(node, PrimitiveNode)
        assert node.primitive == PrimitiveKind.INTEGER

    def test_unknown_type_is_any(
        self, make_document: Callable[..., dict[str, Any]], caplog: pytest.LogCaptureFixture
    ) -> None:
        module = resolve(make_document({"Weird": {"type": "file"}}))
        assert module.node(f"{SCHEMAS}/Weird").primitive == PrimitiveKind.ANY
        assert "Unknown schema type 'file'" in caplog.text

    def test_duplicate_enum_values_collapse(self, make_document: Callable[..., dict[str, Any]]) -> None:
        module = resolve(make_document({"E": {"type": "string", "enum": ["a", "b", "a"]}}))
        assert module.node(f"{SCHEMAS}/E").values == ("a", "b")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    """Resolution stops at the first error."""

    def test_missing_reference(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document(
            {"Pet": {"type": "object", "properties": {"owner": {"$ref": f"{SCHEMAS}/Missing"}}}}
        )
        with pytest.raises(UnresolvedReferenceError, match="'Missing' not found") as exc_info:
            resolve(document)
        assert exc_info.value.schema_path == f"{SCHEMAS}/Pet/properties/owner"

    def test_external_reference(self, make_document: Callable[..., dict[str, Any]]) -> None:
        document = make_document({"Remote": {"$ref": "other.yaml#/Pet"}})
        with pytest.raises(UnresolvedReferenceError, match="External"):
            resolve(document)

    def test_schema_must_be_mapping(self, make_document: Callable[..., dict[str, Any]]) -> None:
        with pytest.raises(ResolutionError, match="Schema must be an object"):
            resolve(make_document({"Bad": ["not", "a", "schema"]}))

    def test_document_must_be_mapping(self) -> None:
        with pytest.raises(ResolutionError, match="must be a mapping"):
            resolve([])  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class TestOptions:
    """Test prune_unused and the generation timestamp."""

    def test_prune_unused_drops_unreferenced_schemas(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        document = make_document(
            {
                "Used": {"type": "object", "properties": {"v": {"type": "string"}}},
                "Unused": {"type": "object", "properties": {"w": {"type": "string"}}},
            }
        )
        full = resolve(document)
        pruned = resolve(document, prune_unused=True)
        assert f"{SCHEMAS}/Unused" in full.declarations
        assert f"{SCHEMAS}/Unused" not in pruned.nodes
        assert pruned.roots == (f"{SCHEMAS}/Used",)

    def test_prune_keeps_types_reached_through_bodies_and_parameters(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/items": {
                "post": {
                    "operationId": "createItem",
                    "parameters": [
                        {"name": "tag", "in": "query", "schema": {"$ref": f"{SCHEMAS}/Tag"}}
                    ],
                    "requestBody": {
                        "content": {
                            "application/json": {"schema": {"$ref": f"{SCHEMAS}/Item"}}
                        }
                    },
                    "responses": {"204": {"description": "created"}},
                }
            }
        }
        document = make_document(
            {
                "Item": {
                    "type": "object",
                    "properties": {
                        "parts": {"type": "array", "items": {"$ref": f"{SCHEMAS}/Part"}}
                    },
                },
                "Part": {"type": "object", "properties": {"n": {"type": "integer"}}},
                "Tag": {"type": "string", "enum": ["a", "b"]},
                "Orphan": {"type": "object", "properties": {"x": {"type": "string"}}},
            },
            paths,
        )
        module = resolve(document, prune_unused=True)
        assert module.roots == (f"{SCHEMAS}/Item", f"{SCHEMAS}/Part", f"{SCHEMAS}/Tag")
        assert f"{SCHEMAS}/Orphan" not in module.nodes

    def test_prune_keeps_recursive_types(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        document = make_document(
            {
                "Tree": {
                    "type": "object",
                    "properties": {
                        "children": {"type": "array", "items": {"$ref": f"{SCHEMAS}/Tree"}}
                    },
                },
                "Orphan": {"type": "string"},
            }
        )
        module = resolve(document, prune_unused=True)
        assert f"{SCHEMAS}/Tree@ref" in module.nodes
        assert module.recursive_targets == frozenset({f"{SCHEMAS}/Tree"})
        assert f"{SCHEMAS}/Orphan" not in module.nodes

    def test_explicit_timestamp_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOURCE_DATE_EPOCH", "86400")
        assert resolve_timestamp("2030-05-05 10:00:00") == "2030-05-05 10:00:00"

    def test_source_date_epoch(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOURCE_DATE_EPOCH", "86400")
        assert resolve_timestamp() == "1970-01-02 00:00:00"

    def test_defaults_to_epoch(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SOURCE_DATE_EPOCH", raising=False)
        assert resolve_timestamp() == "1970-01-01 00:00:00"
