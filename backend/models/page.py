"""Page models for the composition service."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CreatePageRequest(BaseModel):
    """What the client sends to POST /api/pages."""

    model_config = {"extra": "forbid"}

    title: str | None = Field(default=None, max_length=200)


class CreatePageResponse(BaseModel):
    page_id: str


class SavePageResponse(BaseModel):
    """What PUT /api/pages/{page_id} returns."""

    page_id: str
    components: int


class StyleRuleModel(BaseModel):
    """One stylesheet rule: selector plus ordered declarations."""

    selector: str
    declarations: list[tuple[str, str]]
    component_id: str
    state: str
    media: str | None = None


class StylesheetResponse(BaseModel):
    """What GET /api/pages/{page_id}/stylesheet returns."""

    page_id: str
    rules: list[StyleRuleModel]
    css: str


class PublishRequest(BaseModel):
    """What the client sends to publish a page."""

    model_config = {"extra": "forbid"}

    slug: str | None = Field(default=None, pattern=r"^[a-z0-9](?:[a-z0-9-]{0,62}[a-z0-9])?$")


class PublishResponse(BaseModel):
    """What the publish endpoint returns."""

    slug: str
    url: str
