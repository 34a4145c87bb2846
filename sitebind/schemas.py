from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


SITE_NAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class WireModel(BaseModel):
    """Base for every payload exchanged with the admin UI (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _normalize_method(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if not normalized:
        raise ValueError("method cannot be empty")
    return normalized


class SiteCreate(WireModel):
    name: str = Field(min_length=1, max_length=120, pattern=SITE_NAME_PATTERN)


class FieldMapping(WireModel):
    response_path: str
    request_field: str
    location: Literal["body", "query"] = "body"


class MappingConfig(WireModel):
    content_type: Literal["json-raw", "form-urlencoded", "form-elements", "query"] = "json-raw"
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    raw_body_template: str | None = None


class ApiDefinitionCreate(WireModel):
    name: str = Field(min_length=1, max_length=120)
    url: str = Field(min_length=1, max_length=2000)
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] = Field(default_factory=dict)
    body_template: Any = None
    mapping_config: MappingConfig | None = None

    check_method = field_validator("method")(_normalize_method)


class ApiDefinitionUpdate(WireModel):
    url: str | None = Field(default=None, min_length=1, max_length=2000)
    method: str | None = None
    headers: dict[str, str] | None = None
    params: dict[str, str] | None = None
    body_template: Any = None
    mapping_config: MappingConfig | None = None

    check_method = field_validator("method")(_normalize_method)


class ApiDefinitionRead(WireModel):
    name: str
    url: str
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] = Field(default_factory=dict)
    body_template: Any = None
    mapping_config: MappingConfig | None = None


class SiteRead(WireModel):
    name: str
    apis: list[ApiDefinitionRead] = Field(default_factory=list)


class MappingCreate(WireModel):
    placeholder: str = Field(min_length=1, max_length=255)
    api_name: str = Field(min_length=1, max_length=120)
    json_path: str = Field(min_length=1, max_length=1000)
    pages: list[str] = Field(default_factory=list)


class MappingRead(WireModel):
    placeholder: str
    api_name: str
    json_path: str
    pages: list[str] = Field(default_factory=list)


class ActionCreate(WireModel):
    selector: str = Field(min_length=1)
    api_name: str = Field(min_length=1, max_length=120)
    method: str = "POST"
    fields: list[str] = Field(default_factory=list)
    page: str | None = None

    check_method = field_validator("method")(_normalize_method)


class ActionRead(WireModel):
    id: str
    selector: str
    api_name: str
    method: str = "POST"
    fields: list[str] = Field(default_factory=list)
    page: str | None = None


class PageMappingUpsert(WireModel):
    page: str = Field(min_length=1, max_length=1000)
    api_name: str = Field(min_length=1, max_length=120)
    method: str | None = None
    field_mappings: dict[str, Any] | None = None
    submit_selector: str | None = None

    check_method = field_validator("method")(_normalize_method)


class PageMappingRead(WireModel):
    id: str
    page: str
    api_name: str
    method: str
    field_mappings: dict[str, Any] = Field(default_factory=dict)
    submit_selector: str | None = None


class PageSaveRequest(WireModel):
    path: str = Field(min_length=1)
    content: str = ""


class TreeNode(WireModel):
    name: str
    path: str
    type: Literal["dir", "file"]
    children: list[TreeNode] | None = None


class ExecuteRequest(WireModel):
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class ExecuteResponse(WireModel):
    status: int
    data: Any = None
    headers: dict[str, str] = Field(default_factory=dict)


class ClientLogEntry(WireModel):
    level: str = "info"
    message: str = ""
    meta: Any = None


class OkResponse(WireModel):
    ok: bool = True


class SuccessResponse(WireModel):
    success: bool = True
