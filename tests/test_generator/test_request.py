"""Tests for clientgen.generator.request.

Covers:
- Function, parameter and response naming
- Path template parsing and percent-encoding
- Query building (explode, omission of missing values)
- Header assembly order
- Response selection precedence and resolve_response failure kinds
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from clientgen.backends.elm import ELM_NAMING, ELM_SYNTAX
from clientgen.backends.python import PYTHON_NAMING, PYTHON_SYNTAX
from clientgen.exceptions import ClientCallError
from clientgen.generator.codec import ABSENT
from clientgen.generator.descriptors import DescriptorSet, build_descriptors
from clientgen.generator.request import RequestDescriptor, parse_path, stringify
from clientgen.ir import ModuleDescriptor
from clientgen.models import ConnectionConfig, ContentKind, HTTPMethod, ParameterLocation
from clientgen.parser.resolver import resolve


@pytest.fixture
def elm(petstore_module: ModuleDescriptor) -> DescriptorSet:
    return build_descriptors(petstore_module, ELM_NAMING, ELM_SYNTAX)


@pytest.fixture
def python(petstore_module: ModuleDescriptor) -> DescriptorSet:
    return build_descriptors(petstore_module, PYTHON_NAMING, PYTHON_SYNTAX)


def _request(descriptors: DescriptorSet, operation_id: str) -> RequestDescriptor:
    for request in descriptors.requests:
        if request.operation_id == operation_id:
            return request
    raise AssertionError(f"no request {operation_id}")


# ------------------------------------------------------------------ #
# Naming
# ------------------------------------------------------------------ #


class TestNaming:
    """Function and argument names per backend."""

    def test_function_names(self, elm: DescriptorSet, python: DescriptorSet) -> None:
        assert [r.function_name for r in elm.requests] == [
            "listPets",
            "createPet",
            "getPet",
            "deletePet",
            "listShapes",
            "getNode",
        ]
        assert _request(python, "getPet").function_name == "get_pet"

    def test_parameter_names(self, elm: DescriptorSet, python: DescriptorSet) -> None:
        assert [(p.wire_name, p.name) for p in _request(elm, "getPet").parameters] == [
            ("petId", "petId"),
            ("X-Request-Id", "xRequestId"),
        ]
        assert [p.name for p in _request(python, "getPet").parameters] == [
            "pet_id",
            "x_request_id",
        ]

    def test_parameter_expressions(self, elm: DescriptorSet) -> None:
        limit, tags = _request(elm, "listPets").parameters
        assert (limit.expression, limit.required) == ("Int", False)
        assert tags.expression == "List String"
        assert tags.location == ParameterLocation.QUERY

    def test_reserved_argument_names(self, make_document: Callable[..., dict[str, Any]]) -> None:
        paths = {
            "/search": {
                "get": {
                    "operationId": "search",
                    "parameters": [
                        {"name": "body", "in": "query", "schema": {"type": "string"}},
                        {"name": "config", "in": "query", "schema": {"type": "string"}},
                    ],
                    "responses": {"200": {"description": "ok"}},
                }
            }
        }
        module = resolve(make_document(paths=paths))
        (request,) = build_descriptors(module, PYTHON_NAMING, PYTHON_SYNTAX).requests
        assert [p.name for p in request.parameters] == ["body2", "config2"]

    def test_response_constructors(self, elm: DescriptorSet) -> None:
        request = _request(elm, "getPet")
        assert [(r.status, r.constructor) for r in request.responses] == [
            ("200", "GetPetSuccess200"),
            ("404", "GetPetError404"),
            ("2XX", "GetPetSuccess2XX"),
            ("default", "GetPetErrorDefault"),
        ]
        assert request.error_type == "GetPetError"
        assert request.success_union == "GetPetSuccess"
        assert request.success_type == "GetPetSuccess"


# ------------------------------------------------------------------ #
# Shape of the descriptor
# ------------------------------------------------------------------ #


class TestDescriptor:
    """Bodies, responses and success types."""

    def test_body(self, elm: DescriptorSet) -> None:
        request = _request(elm, "createPet")
        assert request.method == HTTPMethod.POST
        assert request.body is not None
        assert request.body.expression == "NewPet"
        assert request.body.encoder_name == "encodeNewPet"
        assert request.body.content_kind == ContentKind.JSON
        assert request.body.required

    def test_single_success_type(self, elm: DescriptorSet) -> None:
        request = _request(elm, "listPets")
        assert request.success_type == "List Pet"
        assert request.success_union is None
        assert [r.status for r in request.error_responses] == ["default"]

    def test_no_body_success(self, elm: DescriptorSet) -> None:
        request = _request(elm, "deletePet")
        assert request.deprecated
        (response,) = request.responses
        assert response.type_id is None
        assert response.expression is None
        assert request.success_type is None

    def test_response_properties(self, elm: DescriptorSet) -> None:
        ok, not_found, success_class, default = _request(elm, "getPet").responses
        assert ok.is_exact and ok.status_code == 200
        assert success_class.status_class == 2
        assert success_class.status_code is None
        assert default.status_class is None
        assert not default.is_success
        assert not not_found.is_success


# ------------------------------------------------------------------ #
# Paths and query strings
# ------------------------------------------------------------------ #


class TestPaths:
    """Path templates and percent-encoding."""

    def test_parse_path(self) -> None:
        segments = parse_path("/pets/{petId}/toys")
        assert [(s.text, s.parameter) for s in segments] == [
            ("/pets/", None),
            ("petId", "petId"),
            ("/toys", None),
        ]

    def test_render_path(self, elm: DescriptorSet) -> None:
        request = _request(elm, "getPet")
        assert request.render_path({"petId": 42}) == "/pets/42"

    def test_values_are_percent_encoded(self, elm: DescriptorSet) -> None:
        request = _request(elm, "getNode")
        assert request.render_path({"nodeId": "a/b c"}) == "/nodes/a%2Fb%20c"

    def test_missing_path_value(self, elm: DescriptorSet) -> None:
        with pytest.raises(ValueError, match="petId"):
            _request(elm, "getPet").render_path({})


class TestQuery:
    """Query pairs in declaration order."""

    def test_lists_explode(self, elm: DescriptorSet) -> None:
        pairs = _request(elm, "listPets").build_query({"limit": 10, "tags": ["a", "b"]})
        assert pairs == [("limit", "10"), ("tags", "a"), ("tags", "b")]

    def test_missing_values_are_omitted(self, elm: DescriptorSet) -> None:
        request = _request(elm, "listPets")
        assert request.build_query({"limit": None, "tags": ABSENT}) == []
        assert request.build_query({}) == []

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(True, "true"), (False, "false"), (1.5, "1.5"), (["a", 1], "a,1")],
    )
    def test_stringify(self, value: Any, expected: str) -> None:
        assert stringify(value) == expected


# ------------------------------------------------------------------ #
# Headers
# ------------------------------------------------------------------ #


class TestHeaders:
    """Later header sources win."""

    def test_full_assembly(self, elm: DescriptorSet) -> None:
        config = ConnectionConfig(
            base_url="https://petstore.example.com/v1",
            api_key="k",
            api_key_header="X-Pet-Key",
            bearer_token="t",
            basic_auth=("u", "p"),
            extra_headers={"X-Extra": "1", "X-Request-Id": "from-config"},
        )
        headers = _request(elm, "getPet").build_headers(
            config, {"X-Request-Id": "r1"}, {"X-Extra": "2"}
        )
        assert headers == {
            "X-Pet-Key": "k",
            "Authorization": "Bearer t",
            "X-Extra": "2",
            "X-Request-Id": "r1",
        }

    def test_basic_auth(self, elm: DescriptorSet) -> None:
        config = ConnectionConfig(base_url="https://x.test", basic_auth=("u", "p"))
        headers = _request(elm, "getPet").build_headers(config, {})
        assert headers == {"Authorization": "Basic dTpw"}

    def test_missing_header_parameter_is_omitted(self, elm: DescriptorSet) -> None:
        config = ConnectionConfig(base_url="https://x.test")
        assert _request(elm, "getPet").build_headers(config, {"X-Request-Id": None}) == {}


# ------------------------------------------------------------------ #
# Responses
# ------------------------------------------------------------------ #


class TestSelectResponse:
    """Exact code, then class pattern, then default."""

    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [(200, "200"), (204, "2XX"), (404, "404"), (500, "default"), (302, "default")],
    )
    def test_precedence(self, elm: DescriptorSet, status_code: int, expected: str) -> None:
        assert _request(elm, "getPet").select_response(status_code).status == expected

    def test_no_match(self, elm: DescriptorSet) -> None:
        assert _request(elm, "listShapes").select_response(500) is None


class TestResolveResponse:
    """Decoding received responses."""

    def test_success(self, elm: DescriptorSet) -> None:
        response, decoded = _request(elm, "getPet").resolve_response(
            200, {"id": 1, "name": "Rex"}, elm.codecs
        )
        assert response.status == "200"
        assert response.is_success
        assert decoded["name"] == "Rex"

    def test_declared_error(self, elm: DescriptorSet) -> None:
        response, decoded = _request(elm, "getPet").resolve_response(
            404, {"code": 404, "message": "not found"}, elm.codecs
        )
        assert response.constructor == "GetPetError404"
        assert not response.is_success
        assert decoded == {"code": 404, "message": "not found"}

    def test_response_without_body(self, elm: DescriptorSet) -> None:
        response, decoded = _request(elm, "getPet").resolve_response(204, None, elm.codecs)
        assert response.status == "2XX"
        assert decoded is None

    def test_network_failure(self, elm: DescriptorSet) -> None:
        with pytest.raises(ClientCallError) as exc_info:
            _request(elm, "getPet").resolve_response(None, None, elm.codecs)
        assert exc_info.value.kind == "network"
        assert exc_info.value.status_code is None

    def test_unexpected_status(self, elm: DescriptorSet) -> None:
        with pytest.raises(ClientCallError) as exc_info:
            _request(elm, "listShapes").resolve_response(418, None, elm.codecs)
        assert exc_info.value.kind == "unexpected_status"
        assert exc_info.value.status_code == 418

    def test_decode_failure(self, elm: DescriptorSet) -> None:
        with pytest.raises(ClientCallError, match=r"\.id") as exc_info:
            _request(elm, "getPet").resolve_response(200, {"id": "x", "name": "a"}, elm.codecs)
        assert exc_info.value.kind == "decode"
        assert exc_info.value.status_code == 200
