"""Conversion between API request/response models and YAML document nodes.

Models use a bare ``ref`` (``"User"``) where the document stores a full
``$ref`` (``"#/components/schemas/User"``).
"""
from __future__ import annotations

from typing import Any

from src.shared.constants import (
    X_DIFF,
    X_ID,
    X_MOCK,
    X_ORDERS,
    X_PROGRESS,
    X_TAG,
)
from src.shared.models.rest_spec import (
    ApiResponse,
    MediaType,
    Parameter,
    RequestBody,
    ResponseHeader,
    RestApiSpecResponse,
    SchemaDefinition,
    SchemaProperty,
    SchemaResponse,
    SecurityRequirement,
)
from src.shared.utils import last_ref_segment, to_schema_ref

# Plain constraint fields: model attribute -> document key
_PROPERTY_CONSTRAINTS = (
    ("min_items", "minItems"),
    ("max_items", "maxItems"),
    ("format", "format"),
    ("enum_values", "enum"),
    ("pattern", "pattern"),
    ("min_length", "minLength"),
    ("max_length", "maxLength"),
    ("minimum", "minimum"),
    ("maximum", "maximum"),
)


# ----------------------------------------------------------------------
# schemas
# ----------------------------------------------------------------------


def property_to_node(prop: SchemaProperty) -> dict[str, Any]:
    if prop.ref:
        return {"$ref": to_schema_ref(prop.ref)}
    node: dict[str, Any] = {"type": prop.type or "string"}
    if prop.description is not None:
        node["description"] = prop.description
    if prop.mock_expression is not None:
        node[X_MOCK] = prop.mock_expression
    if prop.properties:
        node["properties"] = {k: property_to_node(v) for k, v in prop.properties.items()}
    if prop.required:
        node["required"] = list(prop.required)
    if prop.items is not None:
        node["items"] = property_to_node(prop.items)
    for attr, key in _PROPERTY_CONSTRAINTS:
        value = getattr(prop, attr)
        if value is not None:
            node[key] = list(value) if isinstance(value, list) else value
    return node


def node_to_property(node: dict[str, Any]) -> SchemaProperty:
    if node.get("$ref"):
        return SchemaProperty(ref=last_ref_segment(node["$ref"]))
    properties = node.get("properties")
    items = node.get("items")
    values: dict[str, Any] = {
        "type": node.get("type"),
        "description": node.get("description"),
        "mock_expression": node.get(X_MOCK),
        "required": node.get("required"),
        "properties": (
            {k: node_to_property(v) for k, v in properties.items() if isinstance(v, dict)}
            if isinstance(properties, dict)
            else None
        ),
        "items": node_to_property(items) if isinstance(items, dict) else None,
    }
    for attr, key in _PROPERTY_CONSTRAINTS:
        values[attr] = node.get(key)
    if values["enum_values"] is not None:
        values["enum_values"] = [str(v) for v in values["enum_values"]]
    return SchemaProperty(**values)


def definition_to_node(schema: SchemaDefinition) -> dict[str, Any]:
    if schema.ref:
        return {"$ref": to_schema_ref(schema.ref)}
    node: dict[str, Any] = {}
    if schema.type is not None:
        node["type"] = schema.type
    if schema.title is not None:
        node["title"] = schema.title
    if schema.description is not None:
        node["description"] = schema.description
    if schema.properties:
        node["properties"] = {k: property_to_node(v) for k, v in schema.properties.items()}
    if schema.required:
        node["required"] = list(schema.required)
    if schema.orders:
        node[X_ORDERS] = list(schema.orders)
    if schema.xml_name:
        node["xml"] = {"name": schema.xml_name}
    if schema.items is not None:
        node["items"] = property_to_node(schema.items)
    if schema.min_items is not None:
        node["minItems"] = schema.min_items
    if schema.max_items is not None:
        node["maxItems"] = schema.max_items
    return node


def node_to_definition(node: Any) -> SchemaDefinition | None:
    if not isinstance(node, dict):
        return None
    if node.get("$ref"):
        return SchemaDefinition(ref=last_ref_segment(node["$ref"]))
    properties = node.get("properties")
    items = node.get("items")
    xml = node.get("xml")
    return SchemaDefinition(
        type=node.get("type"),
        title=node.get("title"),
        description=node.get("description"),
        properties=(
            {k: node_to_property(v) for k, v in properties.items() if isinstance(v, dict)}
            if isinstance(properties, dict)
            else None
        ),
        required=node.get("required"),
        orders=node.get(X_ORDERS),
        xml_name=xml.get("name") if isinstance(xml, dict) else None,
        items=node_to_property(items) if isinstance(items, dict) else None,
        min_items=node.get("minItems"),
        max_items=node.get("maxItems"),
    )


def node_to_schema_response(name: str, node: dict[str, Any]) -> SchemaResponse:
    definition = node_to_definition(node) or SchemaDefinition()
    return SchemaResponse(
        schema_name=name,
        type=definition.type,
        title=definition.title,
        description=definition.description,
        properties=definition.properties,
        required=definition.required,
        orders=definition.orders,
        xml_name=definition.xml_name,
    )


# ----------------------------------------------------------------------
# operation parts
# ----------------------------------------------------------------------


def _content_to_node(content: dict[str, MediaType] | None) -> dict[str, Any] | None:
    if content is None:
        return None
    return {
        media_type: ({"schema": definition_to_node(media.schema_)} if media.schema_ else {})
        for media_type, media in content.items()
    }


def _node_to_content(node: Any) -> dict[str, MediaType] | None:
    if not isinstance(node, dict):
        return None
    return {
        media_type: MediaType(schema=node_to_definition((media or {}).get("schema")))
        for media_type, media in node.items()
    }


def parameter_to_node(param: Parameter) -> dict[str, Any]:
    node: dict[str, Any] = {"name": param.name, "in": param.in_}
    if param.description is not None:
        node["description"] = param.description
    node["required"] = True if param.in_ == "path" else param.required
    if param.schema_ is not None:
        node["schema"] = definition_to_node(param.schema_)
    return node


def node_to_parameter(node: dict[str, Any]) -> Parameter:
    return Parameter(
        name=node.get("name", ""),
        **{"in": node.get("in", "query")},
        description=node.get("description"),
        required=bool(node.get("required", False)),
        schema=node_to_definition(node.get("schema")),
    )


def request_body_to_node(body: RequestBody) -> dict[str, Any]:
    node: dict[str, Any] = {}
    if body.description is not None:
        node["description"] = body.description
    node["required"] = body.required
    content = _content_to_node(body.content)
    if content is not None:
        node["content"] = content
    return node


def node_to_request_body(node: Any) -> RequestBody | None:
    if not isinstance(node, dict):
        return None
    return RequestBody(
        description=node.get("description"),
        required=bool(node.get("required", False)),
        content=_node_to_content(node.get("content")),
    )


def response_to_node(response: ApiResponse) -> dict[str, Any]:
    node: dict[str, Any] = {"description": response.description or ""}
    content = _content_to_node(response.content)
    if content is not None:
        node["content"] = content
    if response.headers:
        headers: dict[str, Any] = {}
        for name, header in response.headers.items():
            header_node: dict[str, Any] = {}
            if header.description is not None:
                header_node["description"] = header.description
            if header.required:
                header_node["required"] = True
            if header.schema_ is not None:
                header_node["schema"] = definition_to_node(header.schema_)
            headers[name] = header_node
        node["headers"] = headers
    return node


def node_to_response(node: Any) -> ApiResponse:
    if not isinstance(node, dict):
        return ApiResponse()
    headers = node.get("headers")
    return ApiResponse(
        description=node.get("description"),
        content=_node_to_content(node.get("content")),
        headers=(
            {
                name: ResponseHeader(
                    description=(h or {}).get("description"),
                    required=bool((h or {}).get("required", False)),
                    schema=node_to_definition((h or {}).get("schema")),
                )
                for name, h in headers.items()
            }
            if isinstance(headers, dict)
            else None
        ),
    )


def security_to_node(security: list[SecurityRequirement]) -> list[dict[str, list[str]]]:
    return [dict(req.requirements) for req in security]


def node_to_security(node: Any) -> list[SecurityRequirement] | None:
    if not isinstance(node, list):
        return None
    return [
        SecurityRequirement(requirements={k: list(v or []) for k, v in req.items()})
        for req in node
        if isinstance(req, dict)
    ]


def operation_to_response(path: str, method: str, operation: dict[str, Any]) -> RestApiSpecResponse:
    """Project a stored operation onto the API response model."""
    responses = operation.get("responses")
    parameters = operation.get("parameters")
    return RestApiSpecResponse(
        id=str(operation.get(X_ID, "")),
        path=path,
        method=method.upper(),
        summary=operation.get("summary"),
        description=operation.get("description"),
        tags=operation.get("tags"),
        parameters=(
            [node_to_parameter(p) for p in parameters if isinstance(p, dict)]
            if isinstance(parameters, list)
            else None
        ),
        request_body=node_to_request_body(operation.get("requestBody")),
        responses=(
            {str(status): node_to_response(r) for status, r in responses.items()}
            if isinstance(responses, dict)
            else None
        ),
        security=node_to_security(operation.get("security")),
        progress=operation.get(X_PROGRESS),
        tag=operation.get(X_TAG),
        diff=operation.get(X_DIFF),
    )


# ----------------------------------------------------------------------
# AsyncAPI ref keys
# ----------------------------------------------------------------------


def refs_to_api(node: Any) -> Any:
    """Copy of a document node with ``$ref`` keys renamed to ``ref``."""
    if isinstance(node, dict):
        return {("ref" if k == "$ref" else k): refs_to_api(v) for k, v in node.items()}
    if isinstance(node, list):
        return [refs_to_api(v) for v in node]
    return node


def refs_to_document(node: Any) -> Any:
    """Copy of an API node with ``ref`` keys renamed to ``$ref``.

    Keys inside ``properties`` maps are property names and are left alone.
    """
    if isinstance(node, dict):
        converted: dict[str, Any] = {}
        for key, value in node.items():
            if key == "properties" and isinstance(value, dict):
                converted[key] = {k: refs_to_document(v) for k, v in value.items()}
            elif key == "ref" and isinstance(value, str):
                converted["$ref"] = value
            else:
                converted[key] = refs_to_document(value)
        return converted
    if isinstance(node, list):
        return [refs_to_document(v) for v in node]
    return node
