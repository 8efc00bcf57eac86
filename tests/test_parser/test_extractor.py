"""Tests for clientgen.parser.extractor."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from clientgen.exceptions import (
    EmptyOperationsError,
    MalformedOperationError,
    PathParameterMismatchError,
)
from clientgen.ir import ModuleDescriptor
from clientgen.models import ContentKind, HTTPMethod, ParameterLocation
from clientgen.parser.extractor import (
    content_kind,
    extract_servers,
    normalize_status,
    select_media_type,
)
from clientgen.parser.resolver import resolve

OK = {"200": {"description": "ok"}}


def _get(operation_id: str = "op", **fields: Any) -> dict[str, Any]:
    return {"get": {"operationId": operation_id, "responses": OK, **fields}}


# ---------------------------------------------------------------------------
# Petstore operations
# ---------------------------------------------------------------------------


class TestPetstoreOperations:
    """Operations extracted from the shared petstore document."""

    def test_operation_order(self, petstore_module: ModuleDescriptor) -> None:
        assert [op.operation_id for op in petstore_module.operations] == [
            "listPets",
            "createPet",
            "getPet",
            "deletePet",
            "listShapes",
            "getNode",
        ]

    def test_methods_and_paths(self, petstore_module: ModuleDescriptor) -> None:
        get_pet = petstore_module.operations[2]
        assert get_pet.method == HTTPMethod.GET
        assert get_pet.path == "/pets/{petId}"
        assert get_pet.summary == "Fetch one pet"

    def test_cookie_parameter_is_skipped(self, petstore_module: ModuleDescriptor) -> None:
        list_pets = petstore_module.operations[0]
        assert [p.name for p in list_pets.parameters] == ["limit", "tags"]
        assert all(p.location == ParameterLocation.QUERY for p in list_pets.parameters)
        assert not any(p.required for p in list_pets.parameters)

    def test_path_level_parameters_are_inherited(self, petstore_module: ModuleDescriptor) -> None:
        get_pet, delete_pet = petstore_module.operations[2], petstore_module.operations[3]
        assert [(p.name, p.location) for p in get_pet.parameters] == [
            ("petId", ParameterLocation.PATH),
            ("X-Request-Id", ParameterLocation.HEADER),
        ]
        assert [p.name for p in delete_pet.parameters] == ["petId"]
        assert get_pet.parameters[0].type == delete_pet.parameters[0].type

    def test_request_body(self, petstore_module: ModuleDescriptor) -> None:
        create = petstore_module.operations[1]
        assert create.body is not None
        assert create.body.required
        assert create.body.content_type == "application/json"
        assert create.body.content_kind == ContentKind.JSON
        assert create.body.type == "#/components/schemas/NewPet"

    def test_response_statuses(self, petstore_module: ModuleDescriptor) -> None:
        get_pet = petstore_module.operations[2]
        assert [r.status for r in get_pet.responses] == ["200", "2XX", "404", "default"]
        no_body = get_pet.responses[1]
        assert no_body.type is None
        assert no_body.is_success

    def test_global_security_applies(self, petstore_module: ModuleDescriptor) -> None:
        assert all(op.security == ("petKey",) for op in petstore_module.operations)

    def test_deprecated_flag(self, petstore_module: ModuleDescriptor) -> None:
        assert petstore_module.operations[3].deprecated
        assert not petstore_module.operations[2].deprecated


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


class TestParameters:
    """Parameter merging and validation."""

    def test_operation_parameter_overrides_path_parameter(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/items": {
                "parameters": [{"name": "q", "in": "query", "schema": {"type": "string"}}],
                **_get(
                    "search",
                    parameters=[
                        {"name": "q", "in": "query", "required": True, "schema": {"type": "integer"}}
                    ],
                ),
            }
        }
        module = resolve(make_document(paths=paths))
        (param,) = module.operations[0].parameters
        assert param.required
        assert module.node(param.type).primitive.value == "integer"

    def test_path_parameters_are_always_required(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/items/{id}": _get(
                "getItem", parameters=[{"name": "id", "in": "path", "schema": {"type": "string"}}]
            )
        }
        module = resolve(make_document(paths=paths))
        assert module.operations[0].parameters[0].required

    def test_missing_schema_defaults_to_string(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {"/items": _get("list", parameters=[{"name": "q", "in": "query"}])}
        module = resolve(make_document(paths=paths))
        param = module.operations[0].parameters[0]
        assert module.node(param.type).primitive.value == "string"

    def test_parameter_reference_is_followed(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {"/items": _get("list", parameters=[{"$ref": "#/components/parameters/Limit"}])}
        document = make_document(paths=paths)
        document["components"]["parameters"] = {
            "Limit": {"name": "limit", "in": "query", "schema": {"type": "integer"}}
        }
        module = resolve(document)
        param = module.operations[0].parameters[0]
        assert param.name == "limit"
        assert param.type == "#/components/parameters/Limit/schema"

    def test_parameter_without_name_raises(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {"/items": _get("list", parameters=[{"in": "query"}])}
        with pytest.raises(MalformedOperationError, match="'name' and 'in'") as exc_info:
            resolve(make_document(paths=paths))
        assert exc_info.value.operation_id == "list"

    def test_unknown_location_raises(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {"/items": _get("list", parameters=[{"name": "x", "in": "body"}])}
        with pytest.raises(MalformedOperationError, match="unknown location"):
            resolve(make_document(paths=paths))

    def test_cookie_parameter_warning(
        self, make_document: Callable[..., dict[str, Any]], caplog: pytest.LogCaptureFixture
    ) -> None:
        paths = {"/items": _get("list", parameters=[{"name": "sid", "in": "cookie"}])}
        module = resolve(make_document(paths=paths))
        assert module.operations[0].parameters == ()
        assert "Skipping cookie parameter 'sid'" in caplog.text


# ---------------------------------------------------------------------------
# Path templates
# ---------------------------------------------------------------------------


class TestPathTemplates:
    """Path templates must agree with declared path parameters."""

    def test_undeclared_template_parameter(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {"/items/{id}": _get("getItem")}
        with pytest.raises(PathParameterMismatchError) as exc_info:
            resolve(make_document(paths=paths))
        assert exc_info.value.operation_id == "getItem"

    def test_declared_parameter_missing_from_template(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/items": _get(
                "list", parameters=[{"name": "id", "in": "path", "schema": {"type": "string"}}]
            )
        }
        with pytest.raises(PathParameterMismatchError, match="does not match"):
            resolve(make_document(paths=paths))

    def test_repeated_template_parameter(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {
            "/a/{id}/b/{id}": _get(
                "twice", parameters=[{"name": "id", "in": "path", "schema": {"type": "string"}}]
            )
        }
        with pytest.raises(PathParameterMismatchError):
            resolve(make_document(paths=paths))


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class TestOperations:
    """Operation-level validation."""

    def test_no_operations(self, make_document: Callable[..., dict[str, Any]]) -> None:
        with pytest.raises(EmptyOperationsError):
            resolve(make_document(paths={}))

    def test_no_responses(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {"/items": {"get": {"operationId": "list", "responses": {}}}}
        with pytest.raises(MalformedOperationError, match="no responses"):
            resolve(make_document(paths=paths))

    def test_invalid_status_key(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {"/items": {"get": {"operationId": "list", "responses": {"teapot": {}}}}}
        with pytest.raises(MalformedOperationError, match="Invalid response status"):
            resolve(make_document(paths=paths))

    def test_duplicate_operation_id(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {"/a": _get("same"), "/b": _get("same")}
        with pytest.raises(MalformedOperationError, match="Duplicate operationId 'same'"):
            resolve(make_document(paths=paths))

    def test_derived_operation_id(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {
            "/pets/{petId}": {
                "get": {
                    "parameters": [{"name": "petId", "in": "path", "schema": {"type": "string"}}],
                    "responses": OK,
                }
            }
        }
        module = resolve(make_document(paths=paths))
        assert module.operations[0].operation_id == "get_pets_petId"

    def test_derived_ids_are_made_unique(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/a-b": {"get": {"responses": OK}},
            "/a_b": {"get": {"responses": OK}},
            "/a.b": {"get": {"responses": OK}},
        }
        module = resolve(make_document(paths=paths))
        assert [op.operation_id for op in module.operations] == ["get_a_b", "get_a_b_2", "get_a_b_3"]

    def test_explicit_id_wins_over_earlier_derived_id(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/pets": {"get": {"responses": OK}},
            "/animals": _get("get_pets"),
        }
        module = resolve(make_document(paths=paths))
        assert [op.operation_id for op in module.operations] == ["get_pets_2", "get_pets"]

    def test_derived_id_skips_taken_suffix(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {
            "/a-b": {"get": {"responses": OK}},
            "/a_b": {"get": {"responses": OK}},
            "/c": _get("get_a_b_2"),
        }
        module = resolve(make_document(paths=paths))
        assert [op.operation_id for op in module.operations] == ["get_a_b", "get_a_b_3", "get_a_b_2"]

    def test_operation_security_overrides_global(
        self, make_document: Callable[..., dict[str, Any]]
    ) -> None:
        paths = {"/open": _get("open", security=[]), "/closed": _get("closed")}
        document = make_document(paths=paths, security=[{"token": []}])
        open_op, closed_op = resolve(document).operations
        assert open_op.security == ()
        assert closed_op.security == ("token",)

    def test_body_without_content(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {
            "/items": {
                "post": {"operationId": "create", "requestBody": {"content": {}}, "responses": OK}
            }
        }
        with pytest.raises(MalformedOperationError, match="no content"):
            resolve(make_document(paths=paths))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestNormalizeStatus:
    """Response keys normalise to a code, a class pattern or default."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (200, "200"),
            ("404", "404"),
            ("2xx", "2XX"),
            ("5XX", "5XX"),
            ("Default", "default"),
            ("600", None),
            ("20", None),
            ("ok", None),
        ],
    )
    def test_normalize(self, raw: Any, expected: Any) -> None:
        assert normalize_status(raw) == expected


class TestMediaTypes:
    """Media type selection and body kinds."""

    def test_json_preferred(self) -> None:
        content = {"text/plain": {}, "application/json": {"schema": {}}}
        assert select_media_type(content)[0] == "application/json"

    def test_vendor_json_preferred_over_form(self) -> None:
        content = {"application/x-www-form-urlencoded": {}, "application/vnd.api+json": {}}
        assert select_media_type(content)[0] == "application/vnd.api+json"

    def test_first_entry_fallback(self) -> None:
        content = {"image/png": {}, "image/jpeg": {}}
        assert select_media_type(content)[0] == "image/png"

    @pytest.mark.parametrize(
        ("content_type", "kind"),
        [
            ("application/json", ContentKind.JSON),
            ("application/problem+json; charset=utf-8", ContentKind.JSON),
            ("application/x-www-form-urlencoded", ContentKind.FORM),
            ("multipart/form-data", ContentKind.FORM),
            ("text/csv", ContentKind.TEXT),
            ("application/octet-stream", ContentKind.BINARY),
        ],
    )
    def test_content_kind(self, content_type: str, kind: ContentKind) -> None:
        assert content_kind(content_type) == kind


class TestServers:
    """Server URL extraction."""

    def test_variables_are_substituted(self) -> None:
        document = {
            "servers": [
                {
                    "url": "https://{region}.example.com/v1/",
                    "variables": {"region": {"default": "eu"}},
                },
                {"description": "no url"},
            ]
        }
        assert extract_servers(document) == ["https://eu.example.com/v1"]

    def test_no_servers(self) -> None:
        assert extract_servers({}) == []
