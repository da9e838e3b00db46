import asyncio

import httpx
import pytest

from shared.clients.source.DocumentSourceManager import DocumentSourceManager
from shared.clients.source.confluence.DocumentSourceConfluence import DocumentSourceConfluence, storage_to_text
from shared.clients.source.paperless.DocumentSourcePaperless import DocumentSourcePaperless
from shared.errors import ConfigurationError, DocumentSourceError


def _list(client, handler):
    async def run():
        await client.boot(transport=httpx.MockTransport(handler))
        try:
            return await client.do_list_documents()
        finally:
            await client.close()
    return asyncio.run(run())


def _page(page_id: str, storage: str | None = "<p>Hello</p>", version: int = 3) -> dict:
    page = {
        "id": page_id,
        "title": f"Page {page_id}",
        "spaceId": "99",
        "status": "current",
        "version": {"number": version, "createdAt": "2024-05-01T10:00:00.000Z"},
        "_links": {"webui": f"/spaces/ENG/pages/{page_id}"},
    }
    if storage is not None:
        page["body"] = {"storage": {"value": storage, "representation": "storage"}}
    return page


@pytest.fixture
def confluence_env(monkeypatch):
    monkeypatch.setenv("SOURCE_CONFLUENCE_BASE_URL", "https://example.atlassian.net")
    monkeypatch.setenv("SOURCE_CONFLUENCE_EMAIL", "bot@example.com")
    monkeypatch.setenv("SOURCE_CONFLUENCE_API_TOKEN", "token")


def test_storage_to_text():
    storage = "<h1>Reset</h1><p>Use&nbsp;the <strong>settings</strong> page.\x07</p>\n\n<p>Done &amp; dusted</p>"

    assert storage_to_text(storage) == "Reset Use the settings page. Done & dusted"


def test_confluence_tracked_pages(helper_config, confluence_env, monkeypatch):
    monkeypatch.setenv("SOURCE_CONFLUENCE_PAGE_IDS", "[1,2,3]")
    seen_auth = []

    def handler(request):
        seen_auth.append(request.headers["Authorization"])
        page_id = request.url.path.rsplit("/", 1)[-1]
        if page_id == "2":
            return httpx.Response(404, json={"errors": []})
        return httpx.Response(200, json=_page(page_id, storage=None if page_id == "3" else "<p>Hello</p>"))

    documents = _list(DocumentSourceConfluence(helper_config=helper_config), handler)

    assert [doc.id for doc in documents] == ["1", "3"]
    first = documents[0]
    assert first.title == "Page 1"
    assert first.body == "Hello"
    assert first.version == 3
    assert first.last_modified.isoformat() == "2024-05-01T10:00:00+00:00"
    assert first.metadata["url"] == "https://example.atlassian.net/wiki/spaces/ENG/pages/1"
    assert documents[1].body is None
    assert seen_auth[0].startswith("Basic ")


def test_confluence_server_error_is_not_a_deletion(helper_config, confluence_env, monkeypatch):
    monkeypatch.setenv("SOURCE_CONFLUENCE_PAGE_IDS", "[1]")

    def handler(request):
        return httpx.Response(503, text="maintenance")

    with pytest.raises(DocumentSourceError) as exc_info:
        _list(DocumentSourceConfluence(helper_config=helper_config), handler)
    assert exc_info.value.transient is True


def test_confluence_space_pagination(helper_config, confluence_env, monkeypatch):
    monkeypatch.setenv("SOURCE_CONFLUENCE_SPACE_ID", "99")
    monkeypatch.delenv("SOURCE_CONFLUENCE_PAGE_IDS", raising=False)

    def handler(request):
        if request.url.params.get("cursor") == "abc":
            return httpx.Response(200, json={"results": [_page("2")], "_links": {}})
        return httpx.Response(200, json={
            "results": [_page("1")],
            "_links": {"next": "/wiki/api/v2/spaces/99/pages?body-format=storage&cursor=abc"},
        })

    documents = _list(DocumentSourceConfluence(helper_config=helper_config), handler)

    assert [doc.id for doc in documents] == ["1", "2"]


def test_confluence_needs_pages_or_space(helper_config, confluence_env, monkeypatch):
    monkeypatch.delenv("SOURCE_CONFLUENCE_PAGE_IDS", raising=False)
    monkeypatch.delenv("SOURCE_CONFLUENCE_SPACE_ID", raising=False)

    with pytest.raises(ConfigurationError):
        DocumentSourceConfluence(helper_config=helper_config)


def test_paperless_pagination(helper_config, monkeypatch):
    monkeypatch.setenv("SOURCE_PAPERLESS_BASE_URL", "http://paperless:8000")
    monkeypatch.setenv("SOURCE_PAPERLESS_API_KEY", "tok")

    def handler(request):
        assert request.headers["Authorization"] == "Token tok"
        if request.url.params.get("page") == "2":
            return httpx.Response(200, json={"next": None, "results": [
                {"id": 2, "title": "Scan", "modified": "2024-02-01T08:00:00Z", "tags": []},
            ]})
        return httpx.Response(200, json={"next": "http://paperless:8000/api/documents/?page=2&page_size=100", "results": [
            {"id": 1, "title": "Invoice", "content": "Total 42 EUR", "modified": "2024-01-01T08:00:00Z",
             "correspondent": 7, "tags": [1, 4]},
        ]})

    documents = _list(DocumentSourcePaperless(helper_config=helper_config), handler)

    assert [doc.id for doc in documents] == ["1", "2"]
    assert documents[0].body == "Total 42 EUR"
    assert documents[0].metadata == {"correspondent": "7", "tags": "1,4"}
    assert documents[1].body is None


def test_manager_instantiates_configured_engine(helper_config, confluence_env, monkeypatch):
    monkeypatch.setenv("SOURCE_ENGINE", "confluence")
    monkeypatch.setenv("SOURCE_CONFLUENCE_PAGE_IDS", "[1]")

    client = DocumentSourceManager(helper_config=helper_config).get_client()

    assert isinstance(client, DocumentSourceConfluence)
