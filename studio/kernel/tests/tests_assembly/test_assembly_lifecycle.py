"""
Studio Assembly -- Lifecycle Tests

Create, load, open, render, publish against MemoryStorage.

Load failures surface as typed errors and never hand back a partially
repaired document. Opening a page freezes the registry.
"""

import json

import pytest

from studio.kernel.assembly import MemoryStorage, PageAssembly
from studio.kernel.blocks import BUTTON, load_block_library
from studio.kernel.document import dumps, empty_document, loads
from studio.kernel.errors import (
    IntegrityError,
    PageNotFound,
    ParseError,
    RegistryFrozenError,
    VersionNotSupported,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def assembly(storage):
    return PageAssembly(storage, load_block_library(), debounce_s=0)


# ============================================================================
# Create / load
# ============================================================================


class TestCreateAndLoad:
    @pytest.mark.asyncio
    async def test_create_stores_empty_page(self, assembly, storage):
        page_id = await assembly.create("Home")
        doc = loads(storage.workspace[page_id])
        assert doc == empty_document("Home")

    @pytest.mark.asyncio
    async def test_create_with_explicit_id(self, assembly):
        assert await assembly.create(page_id="landing") == "landing"
        assert (await assembly.load("landing"))["root_id"] == "root"

    @pytest.mark.asyncio
    async def test_missing_page(self, assembly):
        with pytest.raises(PageNotFound):
            await assembly.load("nope")

    @pytest.mark.asyncio
    async def test_corrupt_json(self, assembly, storage):
        storage.workspace["bad"] = "{oops"
        with pytest.raises(ParseError):
            await assembly.load("bad")

    @pytest.mark.asyncio
    async def test_future_version(self, assembly, storage):
        data = json.loads(dumps(empty_document()))
        data["version"] = 99
        storage.workspace["future"] = json.dumps(data)
        with pytest.raises(VersionNotSupported):
            await assembly.load("future")

    @pytest.mark.asyncio
    async def test_broken_tree_rejected(self, assembly, storage):
        data = json.loads(dumps(empty_document()))
        data["components"]["root"]["children"] = ["ghost"]
        storage.workspace["broken"] = json.dumps(data)
        with pytest.raises(IntegrityError):
            await assembly.open("broken")


# ============================================================================
# Editing sessions
# ============================================================================


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_freezes_registry(self, assembly):
        page_id = await assembly.create()
        assert not assembly.registry.frozen
        await assembly.open(page_id)
        assert assembly.registry.frozen
        with pytest.raises(RegistryFrozenError):
            assembly.registry.register("Link", BUTTON)

    @pytest.mark.asyncio
    async def test_session_edits_are_saved(self, assembly):
        page_id = await assembly.create()
        session = await assembly.open(page_id)
        text = session.engine.add("Text", {"text": "Hello"})
        assert await session.close()

        doc = await assembly.load(page_id)
        assert doc["components"]["root"]["children"] == [text]

    @pytest.mark.asyncio
    async def test_session_views(self, assembly):
        page_id = await assembly.create()
        session = await assembly.open(page_id)
        button = session.engine.add("Button")
        session.engine.update_state(button, "hover", {"backgroundColor": "#111"})

        assert f'data-component-id="{button}"' in session.render("mobile")
        assert [r.state for r in session.stylesheet()] == ["default", "hover"]
        assert session.document()["components"][button]["type"] == "Button"
        await session.close()

    @pytest.mark.asyncio
    async def test_close_detaches_listener(self, assembly):
        page_id = await assembly.create()
        session = await assembly.open(page_id)
        await session.close()
        session.engine.add("Text")
        assert not session.saver.dirty


# ============================================================================
# Replacing documents
# ============================================================================


def _page_with_text(text="Hello"):
    doc = empty_document("Saved")
    doc["components"]["t1"] = {
        "id": "t1",
        "type": "Text",
        "properties": {"text": text},
        "parent_id": "root",
        "zone_id": None,
        "locked": False,
        "hidden": False,
    }
    doc["components"]["root"]["children"] = ["t1"]
    return doc


class TestReplaceDocument:
    @pytest.mark.asyncio
    async def test_replace_stores_document(self, assembly, storage):
        page_id = await assembly.create()
        doc = await assembly.replace_document(page_id, _page_with_text())

        assert doc["components"]["t1"]["properties"]["text"] == "Hello"
        assert loads(storage.workspace[page_id]) == doc
        assert "Hello" in await assembly.render(page_id)

    @pytest.mark.asyncio
    async def test_unknown_page(self, assembly, storage):
        with pytest.raises(PageNotFound):
            await assembly.replace_document("nope", _page_with_text())
        assert "nope" not in storage.workspace

    @pytest.mark.asyncio
    async def test_invalid_document_leaves_page_untouched(self, assembly, storage):
        page_id = await assembly.create()
        stored = storage.workspace[page_id]
        broken = _page_with_text()
        del broken["components"]["t1"]["type"]

        with pytest.raises(IntegrityError):
            await assembly.replace_document(page_id, broken)
        assert storage.workspace[page_id] == stored


# ============================================================================
# Read-only views and publishing
# ============================================================================


class TestPublish:
    @pytest.mark.asyncio
    async def test_render_stored_page(self, assembly):
        page_id = await assembly.create()
        html = await assembly.render(page_id, "tablet")
        assert html.startswith('<main data-component-id="root"')

    @pytest.mark.asyncio
    async def test_publish_bundle(self, assembly, storage):
        page_id = await assembly.create("Launch")
        session = await assembly.open(page_id)
        button = session.engine.add("Button", {"text": "Join"})
        session.engine.update_state(button, "hover", {"backgroundColor": "#111"})
        await session.close()

        published = await assembly.publish(page_id, slug="launch")

        assert published.url == "http://localhost:8000/p/launch"
        assert set(published.html) == {"mobile", "tablet", "desktop"}
        assert "<title>Launch</title>" in published.html["desktop"]
        assert f'[data-component-id="{button}"]:hover{{background-color:#111}}' in published.css

        bundle = json.loads(storage.published["launch"])
        assert bundle["page_id"] == page_id
        assert bundle["html"]["mobile"] == published.html["mobile"]
        assert loads(json.dumps(bundle["document"])) == await assembly.load(page_id)
        assert [r["state"] for r in bundle["rules"]] == ["default", "hover"]

    @pytest.mark.asyncio
    async def test_publish_generates_slug(self, assembly, storage):
        page_id = await assembly.create()
        published = await assembly.publish(page_id)
        assert len(published.slug) == 8
        assert published.slug in storage.published

    @pytest.mark.asyncio
    async def test_publish_missing_page(self, assembly):
        with pytest.raises(PageNotFound):
            await assembly.publish("nope", slug="x")

    @pytest.mark.asyncio
    async def test_stylesheet_of_stored_page(self, assembly):
        page_id = await assembly.create()
        assert await assembly.stylesheet(page_id) == []
