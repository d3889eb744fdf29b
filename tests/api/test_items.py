"""Tests for item endpoints."""
from unittest.mock import AsyncMock, patch

from httpx import ASGITransport, AsyncClient

from api.main import create_app
from core.config import Settings
from db.session import TransactionalStore
from services.url_scraper import PageTitle


async def _create(client: AsyncClient, title: str, url: str, tags: list[str] | None = None) -> str:
    response = await client.post("/items", json={"title": title, "url": url, "tags": tags or []})
    assert response.status_code == 201
    return response.json()["id"]


async def test_create_item_returns_201_with_id(client: AsyncClient) -> None:
    """Creating an item returns only its id."""
    response = await client.post(
        "/items",
        json={"title": "Python", "url": "https://python.org", "tags": ["python", "lang"]},
    )
    assert response.status_code == 201

    data = response.json()
    assert set(data) == {"id"}

    item = (await client.get(f"/items/{data['id']}")).json()
    assert item["title"] == "Python"
    assert item["url"] == "https://python.org"
    assert item["starred"] is False
    assert [tag["name"] for tag in item["tags"]] == ["python", "lang"]


async def test_item_response_uses_camel_case(client: AsyncClient) -> None:
    """Timestamps are serialized as createdAt/updatedAt."""
    item_id = await _create(client, "A", "http://a")

    item = (await client.get(f"/items/{item_id}")).json()

    assert set(item) == {
        "id", "title", "url", "starred", "read", "notes", "createdAt", "updatedAt", "tags",
    }
    assert item["createdAt"] == item["updatedAt"]


async def test_create_item_null_tags(client: AsyncClient) -> None:
    """A null tag list is the same as none."""
    response = await client.post("/items", json={"title": "A", "url": "http://a", "tags": None})
    assert response.status_code == 201

    item = (await client.get(f"/items/{response.json()['id']}")).json()
    assert item["tags"] == []


async def test_create_item_blank_tags_dropped(client: AsyncClient) -> None:
    """Blank and repeated tag names are cleaned up before storage."""
    item_id = await _create(client, "A", "http://a", [" python ", "", "python", "web"])

    item = (await client.get(f"/items/{item_id}")).json()
    assert [tag["name"] for tag in item["tags"]] == ["python", "web"]


async def test_create_item_empty_title_returns_400(client: AsyncClient) -> None:
    """Empty title is a catalog validation error."""
    response = await client.post("/items", json={"title": "", "url": "http://a"})
    assert response.status_code == 400
    assert response.json()["detail"] == "title is required"


async def test_create_item_missing_url_returns_422(client: AsyncClient) -> None:
    """Malformed bodies are rejected by request validation."""
    response = await client.post("/items", json={"title": "A"})
    assert response.status_code == 422


async def test_create_item_unknown_field_returns_422(client: AsyncClient) -> None:
    """Unknown fields are rejected."""
    response = await client.post("/items", json={"title": "A", "url": "http://a", "color": "x"})
    assert response.status_code == 422


async def test_list_items(client: AsyncClient) -> None:
    """All items are listed, sorted by id."""
    ids = [await _create(client, "A", "http://a", ["x"]), await _create(client, "B", "http://b")]

    response = await client.get("/items")
    assert response.status_code == 200

    data = response.json()
    assert [item["id"] for item in data] == sorted(ids)


async def test_list_items_empty(client: AsyncClient) -> None:
    """An empty catalog returns an empty list."""
    response = await client.get("/items")
    assert response.status_code == 200
    assert response.json() == []


async def test_get_item_not_found(client: AsyncClient) -> None:
    """Unknown ids return 404."""
    response = await client.get("/items/does-not-exist")
    assert response.status_code == 404
    assert response.json()["detail"] == "Item not found: does-not-exist"


async def test_update_item_partial(client: AsyncClient) -> None:
    """PATCH changes only the supplied fields."""
    item_id = await _create(client, "A", "http://a", ["x"])

    response = await client.patch(f"/items/{item_id}", json={"starred": True})
    assert response.status_code == 200

    data = response.json()
    assert data["starred"] is True
    assert data["title"] == "A"
    assert [tag["name"] for tag in data["tags"]] == ["x"]


async def test_update_item_tag_names(client: AsyncClient) -> None:
    """tagNames replaces the tag set and unused tags disappear."""
    item_id = await _create(client, "A", "http://a", ["x", "y"])

    response = await client.patch(f"/items/{item_id}", json={"tagNames": ["y", "z"]})
    assert response.status_code == 200
    assert sorted(tag["name"] for tag in response.json()["tags"]) == ["y", "z"]

    tags = (await client.get("/tags")).json()
    assert [tag["name"] for tag in tags] == ["y", "z"]


async def test_update_item_not_found(client: AsyncClient) -> None:
    """PATCH on an unknown id returns 404."""
    response = await client.patch("/items/nope", json={"title": "B"})
    assert response.status_code == 404


async def test_update_item_empty_title_returns_400(client: AsyncClient) -> None:
    """A supplied empty title is invalid."""
    item_id = await _create(client, "A", "http://a")
    response = await client.patch(f"/items/{item_id}", json={"title": ""})
    assert response.status_code == 400


async def test_update_item_unknown_field_returns_422(client: AsyncClient) -> None:
    """Unknown PATCH fields are rejected."""
    item_id = await _create(client, "A", "http://a")
    response = await client.patch(f"/items/{item_id}", json={"description": "x"})
    assert response.status_code == 422


async def test_tag_and_untag(client: AsyncClient) -> None:
    """Tag takes a JSON string body, untag a JSON integer id."""
    item_id = await _create(client, "A", "http://a")

    response = await client.post(f"/items/{item_id}/tag", json="python")
    assert response.status_code == 200
    tags = response.json()["tags"]
    assert [tag["name"] for tag in tags] == ["python"]

    response = await client.post(f"/items/{item_id}/untag", json=tags[0]["id"])
    assert response.status_code == 200
    assert response.json()["tags"] == []
    assert (await client.get("/tags")).json() == []


async def test_tag_item_not_found(client: AsyncClient) -> None:
    """Tagging an unknown item returns 404."""
    response = await client.post("/items/nope/tag", json="python")
    assert response.status_code == 404


async def test_tag_item_empty_name_returns_422(client: AsyncClient) -> None:
    """An empty tag name body is rejected."""
    item_id = await _create(client, "A", "http://a")
    response = await client.post(f"/items/{item_id}/tag", json="")
    assert response.status_code == 422


async def test_tag_item_name_is_stripped(client: AsyncClient) -> None:
    """Surrounding whitespace is dropped, so " x " is the same tag as "x"."""
    first = await _create(client, "A", "http://a", ["x"])
    second = await _create(client, "B", "http://b")

    response = await client.post(f"/items/{second}/tag", json=" x ")
    assert response.status_code == 200

    first_tags = (await client.get(f"/items/{first}")).json()["tags"]
    assert response.json()["tags"] == first_tags
    assert [tag["name"] for tag in (await client.get("/tags")).json()] == ["x"]


async def test_tag_item_blank_name_returns_400(client: AsyncClient) -> None:
    """A whitespace-only tag name is a validation error and creates nothing."""
    item_id = await _create(client, "A", "http://a")

    response = await client.post(f"/items/{item_id}/tag", json="   ")

    assert response.status_code == 400
    assert response.json()["detail"] == "tag name is required"
    assert (await client.get("/tags")).json() == []


async def test_untag_unknown_tag_returns_404(client: AsyncClient) -> None:
    """Untagging a tag id that does not exist returns 404."""
    item_id = await _create(client, "A", "http://a")
    response = await client.post(f"/items/{item_id}/untag", json=12345)
    assert response.status_code == 404
    assert response.json()["detail"] == "Tag not found: 12345"


async def test_lookup_by_url(client: AsyncClient) -> None:
    """Lookup reports whether a URL is already bookmarked."""
    item_id = await _create(client, "A", "https://example.com/a")

    found = await client.get("/items/lookup", params={"url": "https://example.com/a"})
    assert found.status_code == 200
    assert found.json()["found"] is True
    assert found.json()["item"]["id"] == item_id

    missing = await client.get("/items/lookup", params={"url": "https://example.com/b"})
    assert missing.json() == {"found": False, "item": None}


async def test_lookup_requires_url(client: AsyncClient) -> None:
    """The url query parameter is required."""
    response = await client.get("/items/lookup")
    assert response.status_code == 422


async def test_fetch_title(client: AsyncClient) -> None:
    """fetch-title returns what the scraper found, camelCased."""
    page = PageTitle(
        url="https://example.com",
        final_url="https://example.com/",
        title="Example Domain",
        error=None,
    )
    with patch(
        "api.routers.items.fetch_page_title", new_callable=AsyncMock, return_value=page,
    ) as mock:
        response = await client.get("/items/fetch-title", params={"url": "https://example.com"})

    assert response.status_code == 200
    assert response.json() == {
        "url": "https://example.com",
        "finalUrl": "https://example.com/",
        "title": "Example Domain",
        "error": None,
    }
    assert mock.await_args.args == ("https://example.com",)


async def test_fetch_title_failure_is_200(client: AsyncClient) -> None:
    """Scrape failures are reported in the body, not as HTTP errors."""
    page = PageTitle(url="http://x", final_url="http://x", title=None, error="Request timed out")
    with patch("api.routers.items.fetch_page_title", new_callable=AsyncMock, return_value=page):
        response = await client.get("/items/fetch-title", params={"url": "http://x"})

    assert response.status_code == 200
    assert response.json()["title"] is None
    assert response.json()["error"] == "Request timed out"


async def test_fetch_title_uses_app_settings(settings: Settings, store: TransactionalStore) -> None:
    """The timeout comes from the settings the app was created with."""
    app = create_app(settings.model_copy(update={"fetch_timeout": 1.5}))
    app.state.store = store
    app.state.redis = None
    page = PageTitle(url="http://x", final_url="http://x", title="X", error=None)

    with patch(
        "api.routers.items.fetch_page_title", new_callable=AsyncMock, return_value=page,
    ) as mock:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/items/fetch-title", params={"url": "http://x"})

    assert response.status_code == 200
    mock.assert_awaited_once_with("http://x", timeout=1.5)


async def test_import_bookmarks(client: AsyncClient) -> None:
    """A bookmark export body is imported; known URLs are skipped."""
    await _create(client, "Existing", "https://a.example/")
    html = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<DL><p>
    <DT><A HREF="https://a.example/">A</A>
    <DT><H3>Dev</H3>
    <DL><p>
        <DT><A HREF="https://b.example/">B</A>
    </DL><p>
</DL><p>
"""
    response = await client.post(
        "/items/import", content=html, headers={"Content-Type": "text/html"},
    )
    assert response.status_code == 200
    assert response.json() == {"imported": 1, "skipped": 1}

    lookup = (await client.get("/items/lookup", params={"url": "https://b.example/"})).json()
    assert [tag["name"] for tag in lookup["item"]["tags"]] == ["dev"]


async def test_create_and_update_notes(client: AsyncClient) -> None:
    """Notes are optional on create and cleared by a blank PATCH value."""
    response = await client.post(
        "/items", json={"title": "A", "url": "http://a", "notes": "read later"},
    )
    item_id = response.json()["id"]
    assert (await client.get(f"/items/{item_id}")).json()["notes"] == "read later"

    response = await client.patch(f"/items/{item_id}", json={"notes": ""})
    assert response.status_code == 200
    assert response.json()["notes"] is None


async def test_set_read(client: AsyncClient) -> None:
    """The read route takes a JSON boolean and moves updatedAt."""
    item_id = await _create(client, "A", "http://a")
    before = (await client.get(f"/items/{item_id}")).json()
    assert before["read"] is False

    response = await client.post(f"/items/{item_id}/read", json=True)
    assert response.status_code == 200
    assert response.json()["read"] is True
    assert response.json()["updatedAt"] >= before["updatedAt"]

    response = await client.post(f"/items/{item_id}/read", json=False)
    assert response.json()["read"] is False


async def test_set_read_not_found(client: AsyncClient) -> None:
    """Marking an unknown item returns 404."""
    response = await client.post("/items/nope/read", json=True)
    assert response.status_code == 404


async def test_bulk_read(client: AsyncClient) -> None:
    """Several items are marked in one request."""
    ids = [await _create(client, "A", "http://a"), await _create(client, "B", "http://b")]

    response = await client.post("/items/bulk/read", json={"itemIds": ids, "read": True})

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == sorted(ids)
    assert all(item["read"] for item in response.json())


async def test_bulk_read_unknown_id_returns_404(client: AsyncClient) -> None:
    """An unknown id fails the whole request and nothing changes."""
    item_id = await _create(client, "A", "http://a")

    response = await client.post(
        "/items/bulk/read", json={"itemIds": [item_id, "nope"], "read": True},
    )

    assert response.status_code == 404
    assert (await client.get(f"/items/{item_id}")).json()["read"] is False


async def test_bulk_tag(client: AsyncClient) -> None:
    """Tags are added to every listed item; blank names are dropped."""
    a = await _create(client, "A", "http://a", ["old"])
    b = await _create(client, "B", "http://b")

    response = await client.post(
        "/items/bulk/tag", json={"itemIds": [a, b], "tagNames": [" python ", "", "python"]},
    )

    assert response.status_code == 200
    by_id = {item["id"]: item for item in response.json()}
    assert [tag["name"] for tag in by_id[a]["tags"]] == ["old", "python"]
    assert [tag["name"] for tag in by_id[b]["tags"]] == ["python"]


async def test_bulk_tag_empty_lists(client: AsyncClient) -> None:
    """Empty id or name lists succeed without changing anything."""
    item_id = await _create(client, "A", "http://a")

    response = await client.post("/items/bulk/tag", json={"itemIds": [item_id], "tagNames": []})

    assert response.status_code == 200
    assert response.json() == []
    assert (await client.get("/tags")).json() == []


async def test_bulk_tag_unknown_id_returns_404(client: AsyncClient) -> None:
    """Nothing is tagged when any id is unknown."""
    item_id = await _create(client, "A", "http://a")

    response = await client.post(
        "/items/bulk/tag", json={"itemIds": [item_id, "nope"], "tagNames": ["x"]},
    )

    assert response.status_code == 404
    assert (await client.get("/tags")).json() == []
