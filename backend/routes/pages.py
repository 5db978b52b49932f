"""Page routes — create, save, render, stylesheet, publish, and serve published pages."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, Response

from backend.models.page import (
    CreatePageRequest,
    CreatePageResponse,
    PublishRequest,
    PublishResponse,
    SavePageResponse,
    StyleRuleModel,
    StylesheetResponse,
)
from studio.kernel.assembly import PageAssembly
from studio.kernel.errors import (
    InvalidBreakpointError,
    PageNotFound,
    PersistenceError,
    StructuralError,
)
from studio.kernel.stylesheet import to_css
from studio.kernel.types import BREAKPOINTS

router = APIRouter(tags=["pages"])
logger = logging.getLogger(__name__)

# Cache-Control TTL: 5 minutes for stale-while-revalidate, 1 hour shared cache
_CACHE_CONTROL = "public, max-age=300, s-maxage=3600, stale-while-revalidate=86400"


def get_assembly(request: Request) -> PageAssembly:
    """The process-wide assembly, built in the app lifespan."""
    return request.app.state.assembly


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, PageNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found.")
    if isinstance(e, InvalidBreakpointError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.warning("Page document rejected: %s", e)
    return HTTPException(status_code=422, detail=str(e))


@router.post("/api/pages", status_code=201)
async def create_page(
    req: CreatePageRequest,
    assembly: PageAssembly = Depends(get_assembly),
) -> CreatePageResponse:
    """Create an empty page holding only the root component."""
    page_id = await assembly.create(req.title)
    return CreatePageResponse(page_id=page_id)


@router.put("/api/pages/{page_id}")
async def save_page(
    page_id: str,
    document: dict[str, Any] = Body(...),
    assembly: PageAssembly = Depends(get_assembly),
) -> SavePageResponse:
    """
    Replace the stored document.

    The body is a full page document (current or v1 format). It is validated
    before storing; malformed documents are rejected with 422 and the stored
    page is left as it was.
    """
    try:
        saved = await assembly.replace_document(page_id, document)
    except (PersistenceError, StructuralError) as e:
        raise _http_error(e) from e
    return SavePageResponse(page_id=page_id, components=len(saved["components"]))


@router.get("/api/pages/{page_id}/render", response_class=HTMLResponse)
async def render_page(
    page_id: str,
    breakpoint: str = Query(default="desktop"),
    assembly: PageAssembly = Depends(get_assembly),
) -> HTMLResponse:
    """Render the stored page as an HTML fragment at one breakpoint."""
    try:
        html = await assembly.render(page_id, breakpoint)
    except (PersistenceError, StructuralError, InvalidBreakpointError) as e:
        raise _http_error(e) from e
    return HTMLResponse(content=html)


@router.get("/api/pages/{page_id}/stylesheet")
async def get_stylesheet(
    page_id: str,
    minify: bool = False,
    assembly: PageAssembly = Depends(get_assembly),
) -> StylesheetResponse:
    """Ordered interaction-state rules for the stored page."""
    try:
        rules = await assembly.stylesheet(page_id)
    except (PersistenceError, StructuralError) as e:
        raise _http_error(e) from e
    return StylesheetResponse(
        page_id=page_id,
        rules=[
            StyleRuleModel(
                selector=r.selector,
                declarations=list(r.declarations),
                component_id=r.component_id,
                state=r.state,
                media=r.media,
            )
            for r in rules
        ],
        css=to_css(rules, minify=minify),
    )


@router.post("/api/pages/{page_id}/publish", status_code=200)
async def publish_page(
    page_id: str,
    req: PublishRequest,
    assembly: PageAssembly = Depends(get_assembly),
) -> PublishResponse:
    """
    Publish the stored page.

    Renders every breakpoint plus the stylesheet and writes the bundle to
    published storage under the slug.
    """
    try:
        published = await assembly.publish(page_id, slug=req.slug)
    except (PersistenceError, StructuralError) as e:
        raise _http_error(e) from e
    return PublishResponse(slug=published.slug, url=published.url)


@router.get("/p/{slug}", response_class=HTMLResponse)
async def serve_published_page(
    slug: str,
    breakpoint: str = Query(default="desktop"),
    assembly: PageAssembly = Depends(get_assembly),
) -> Response:
    """
    Serve a published page.

    In production, this is served from a CDN.
    This route exists for local development.
    """
    if breakpoint not in BREAKPOINTS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown breakpoint '{breakpoint}'.")

    text = await assembly.storage.get_published(slug)
    if text is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found.")

    bundle = json.loads(text)
    return Response(
        content=bundle["html"][breakpoint],
        media_type="text/html; charset=utf-8",
        headers={
            "Cache-Control": _CACHE_CONTROL,
            "X-Content-Type-Options": "nosniff",
        },
    )
