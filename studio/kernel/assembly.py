"""
Studio Kernel — Assembly Layer

Sits between the pure kernel (mutations, renderer, stylesheet) and the
outside world (page storage, the HTTP service). Coordinates the lifecycle of
a page document.

Operations: create, load, open (editing session), save, publish

This is where IO happens. Everything it calls into is synchronous and pure.

Saves are debounced, single-flight per page, coalesced, and retried with
exponential backoff. A failed save never touches the document or its
history; the page simply stays dirty.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from studio.kernel.document import deserialize, dumps, empty_document, loads, serialize
from studio.kernel.dragdrop import DragController, LayoutProbe
from studio.kernel.errors import PageNotFound, SaveFailed
from studio.kernel.mutations import MutationEngine
from studio.kernel.registry import ComponentRegistry
from studio.kernel.renderer import render, render_page
from studio.kernel.stylesheet import generate, to_css
from studio.kernel.types import BREAKPOINTS, HISTORY_LIMIT, StyleRule

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class PageStorage:
    """
    Abstract storage interface.
    Implement with Postgres for production, or in-memory for tests.
    """

    async def get(self, page_id: str) -> str | None:
        """Fetch the serialized document for a page. Returns None if not found."""
        raise NotImplementedError

    async def put(self, page_id: str, text: str) -> None:
        """Write the serialized document for a page."""
        raise NotImplementedError

    async def put_published(self, slug: str, text: str) -> None:
        """Write a published bundle under its public slug."""
        raise NotImplementedError

    async def get_published(self, slug: str) -> str | None:
        raise NotImplementedError


class MemoryStorage(PageStorage):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.workspace: dict[str, str] = {}
        self.published: dict[str, str] = {}

    async def get(self, page_id: str) -> str | None:
        return self.workspace.get(page_id)

    async def put(self, page_id: str, text: str) -> None:
        self.workspace[page_id] = text

    async def put_published(self, slug: str, text: str) -> None:
        self.published[slug] = text

    async def get_published(self, slug: str) -> str | None:
        return self.published.get(slug)


# ---------------------------------------------------------------------------
# Save coordination
# ---------------------------------------------------------------------------


class SaveCoordinator:
    """
    Persists one page's committed document.

    request_save() marks the page dirty and schedules a debounced timer. When
    the timer fires it starts the drain task, the only place saves happen.
    While the drain task runs, further requests only re-mark the page dirty;
    the drain loop picks that up as exactly one follow-up save.
    """

    def __init__(
        self,
        page_id: str,
        engine: MutationEngine,
        storage: PageStorage,
        *,
        debounce_s: float = 0.5,
        max_retries: int = 3,
        backoff_s: float = 0.2,
        on_error: Callable[[SaveFailed], None] | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._page_id = page_id
        self._engine = engine
        self._storage = storage
        self._debounce_s = debounce_s
        self._max_retries = max_retries
        self._backoff_s = backoff_s
        self._on_error = on_error
        self._sleep = sleep
        self._dirty = False
        self._timer: asyncio.Task | None = None
        self._drain_task: asyncio.Task | None = None
        self.saved_revision: int | None = None
        self.save_count = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def saving(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def request_save(self, revision: int | None = None) -> None:
        """Mark dirty and make sure a save is pending. Needs a running loop."""
        self._dirty = True
        if self.saving:
            return
        if self._timer is None or self._timer.done():
            self._timer = asyncio.get_running_loop().create_task(self._debounce())

    async def flush(self) -> bool:
        """
        Save now, skipping the debounce. Joins an in-flight save instead of
        starting a second one. Returns True when nothing is left unsaved.
        """
        timer = self._timer
        if timer is not None and not timer.done():
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer

        if self.saving:
            return await asyncio.shield(self._drain_task)
        if not self._dirty:
            return True
        return await asyncio.shield(self._start_drain())

    async def wait(self) -> None:
        """Wait for the pending timer and save, if any, to finish."""
        if self._timer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer
        if self._drain_task is not None:
            await self._drain_task

    async def _debounce(self) -> None:
        await self._sleep(self._debounce_s)
        self._start_drain()

    def _start_drain(self) -> asyncio.Task:
        if not self.saving:
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return self._drain_task

    async def _drain(self) -> bool:
        while self._dirty:
            self._dirty = False
            if not await self._save_with_retry():
                self._dirty = True
                return False
        return True

    async def _save_with_retry(self) -> bool:
        revision = self._engine.revision
        text = dumps(self._engine.committed_snapshot())

        for attempt in range(self._max_retries + 1):
            try:
                await self._storage.put(self._page_id, text)
            except Exception as e:
                if attempt == self._max_retries:
                    error = SaveFailed(f"Saving page {self._page_id} failed after {attempt + 1} attempts: {e}")
                    logger.error("%s", error)
                    if self._on_error is not None:
                        self._on_error(error)
                    return False
                delay = self._backoff_s * (2**attempt)
                logger.warning("Save of page %s failed (%s); retrying in %.2fs", self._page_id, e, delay)
                await self._sleep(delay)
            else:
                self.saved_revision = revision
                self.save_count += 1
                logger.info("Saved page %s at revision %s", self._page_id, revision)
                return True
        return False


# ---------------------------------------------------------------------------
# Editing session
# ---------------------------------------------------------------------------


class PageSession:
    """
    One open page: the mutation engine plus its save coordinator.
    Every committed change (including undo/redo) schedules a save.
    """

    def __init__(self, page_id: str, engine: MutationEngine, saver: SaveCoordinator) -> None:
        self.page_id = page_id
        self.engine = engine
        self.saver = saver
        engine.add_listener(saver.request_save)

    def document(self) -> dict[str, Any]:
        return self.engine.snapshot()

    def render(self, breakpoint: str = "desktop", viewer_state: dict[str, str] | None = None) -> str:
        return render(self.engine.snapshot(), self.engine.registry, breakpoint, viewer_state)

    def stylesheet(self) -> list[StyleRule]:
        return generate(self.engine.committed_snapshot(), self.engine.registry)

    def drag_controller(self, layout: LayoutProbe, **kwargs: Any) -> DragController:
        return DragController(self.engine, layout, **kwargs)

    async def close(self) -> bool:
        """Flush pending changes and detach from the engine."""
        saved = await self.saver.flush()
        self.engine.remove_listener(self.saver.request_save)
        return saved


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


@dataclass
class PublishedPage:
    page_id: str
    slug: str
    url: str
    html: dict[str, str] = field(default_factory=dict)  # breakpoint -> full page
    css: str = ""
    rules: list[StyleRule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "page_id": self.page_id,
            "slug": self.slug,
            "url": self.url,
            "html": dict(self.html),
            "css": self.css,
            "rules": [r.to_dict() for r in self.rules],
        }


# ---------------------------------------------------------------------------
# Assembly class
# ---------------------------------------------------------------------------


class PageAssembly:
    """
    Manages page documents in storage.
    Coordinates mutation engine + renderer + stylesheet + storage.
    """

    def __init__(
        self,
        storage: PageStorage,
        registry: ComponentRegistry,
        *,
        history_limit: int = HISTORY_LIMIT,
        debounce_s: float = 0.5,
        max_retries: int = 3,
        backoff_s: float = 0.2,
        public_url: str = "http://localhost:8000",
        on_save_error: Callable[[SaveFailed], None] | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._storage = storage
        self._registry = registry
        self._history_limit = history_limit
        self._debounce_s = debounce_s
        self._max_retries = max_retries
        self._backoff_s = backoff_s
        self._public_url = public_url.rstrip("/")
        self._on_save_error = on_save_error
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def registry(self) -> ComponentRegistry:
        return self._registry

    @property
    def storage(self) -> PageStorage:
        return self._storage

    def _get_lock(self, page_id: str) -> asyncio.Lock:
        """Per-page asyncio lock so publishes of one page do not interleave."""
        if page_id not in self._locks:
            self._locks[page_id] = asyncio.Lock()
        return self._locks[page_id]

    # -- create --

    async def create(self, title: str | None = None, page_id: str | None = None) -> str:
        """Store a new page holding only the root. Returns its id."""
        page_id = page_id or str(uuid.uuid4())
        await self._storage.put(page_id, dumps(empty_document(title)))
        logger.info("Created page %s", page_id)
        return page_id

    # -- load --

    async def load(self, page_id: str) -> dict[str, Any]:
        """
        Read and validate a stored page.
        Raises PageNotFound, ParseError, VersionNotSupported or IntegrityError.
        """
        text = await self._storage.get(page_id)
        if text is None:
            raise PageNotFound(page_id)
        return loads(text)

    # -- open --

    async def open(self, page_id: str) -> PageSession:
        """Start an editing session. The registry is frozen from here on."""
        document = await self.load(page_id)
        self._registry.freeze()
        engine = MutationEngine(self._registry, document, history_limit=self._history_limit)
        saver = SaveCoordinator(
            page_id,
            engine,
            self._storage,
            debounce_s=self._debounce_s,
            max_retries=self._max_retries,
            backoff_s=self._backoff_s,
            on_error=self._on_save_error,
            sleep=self._sleep,
        )
        return PageSession(page_id, engine, saver)

    # -- replace --

    async def replace_document(self, page_id: str, data: Any) -> dict[str, Any]:
        """
        Overwrite a stored page with a client-supplied document. The document
        is validated (and upgraded from v1) before anything is written.
        Raises PageNotFound, ParseError, VersionNotSupported or IntegrityError.
        """
        async with self._get_lock(page_id):
            if await self._storage.get(page_id) is None:
                raise PageNotFound(page_id)
            document = deserialize(data)
            await self._storage.put(page_id, dumps(document))

        logger.info("Replaced page %s (%s components)", page_id, len(document["components"]))
        return document

    # -- read-only views --

    async def render(
        self,
        page_id: str,
        breakpoint: str = "desktop",
        viewer_state: dict[str, str] | None = None,
    ) -> str:
        return render(await self.load(page_id), self._registry, breakpoint, viewer_state)

    async def stylesheet(self, page_id: str) -> list[StyleRule]:
        return generate(await self.load(page_id), self._registry)

    # -- publish --

    async def publish(self, page_id: str, *, slug: str | None = None, minify: bool = True) -> PublishedPage:
        """
        Render the stored page at every breakpoint plus its stylesheet and
        write the bundle to published storage. Returns the published page.
        """
        if slug is None:
            slug = uuid.uuid4().hex[:8]

        async with self._get_lock(page_id):
            document = await self.load(page_id)
            rules = generate(document, self._registry)
            published = PublishedPage(
                page_id=page_id,
                slug=slug,
                url=f"{self._public_url}/p/{slug}",
                html={bp: render_page(document, self._registry, bp, minify=minify) for bp in BREAKPOINTS},
                css=to_css(rules, minify=minify),
                rules=rules,
            )
            bundle = published.to_dict()
            bundle["document"] = serialize(document)
            await self._storage.put_published(slug, json.dumps(bundle, sort_keys=True, ensure_ascii=False))

        logger.info("Published page %s as %s", page_id, slug)
        return published
