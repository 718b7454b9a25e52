import json

import httpx
import pytest

from listy.client import http
from listy.client.storage import BY_RECIPE, CURRENT_CHAT_ID, JsonFileStore, MemoryStore


def test_memory_store_typed_values():
    store = MemoryStore()
    assert store.get_bool(BY_RECIPE) is False
    store.set_bool(BY_RECIPE, True)
    assert store.get_raw(BY_RECIPE) == "true"
    assert store.get_bool(BY_RECIPE) is True

    assert store.get_str(CURRENT_CHAT_ID) is None
    store.set_str(CURRENT_CHAT_ID, "chat-1")
    assert store.get_raw(CURRENT_CHAT_ID) == '"chat-1"'
    assert store.get_str(CURRENT_CHAT_ID) == "chat-1"


def test_garbage_and_wrong_types_fall_back():
    store = MemoryStore({BY_RECIPE: "not json", CURRENT_CHAT_ID: "42"})
    assert store.get_bool(BY_RECIPE, default=True) is True
    assert store.get_str(CURRENT_CHAT_ID) is None


def test_json_file_store_persists(tmp_path):
    path = tmp_path / "prefs" / "listy.json"
    JsonFileStore(path).set_bool(BY_RECIPE, True)
    again = JsonFileStore(path)
    assert again.get_bool(BY_RECIPE) is True

    again.delete(BY_RECIPE)
    assert JsonFileStore(path).get_raw(BY_RECIPE) is None


def test_json_file_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "listy.json"
    path.write_text("{oops", encoding="utf-8")
    store = JsonFileStore(path)
    assert store.get_bool(BY_RECIPE) is False
    store.set_bool(BY_RECIPE, True)
    assert store.get_bool(BY_RECIPE) is True


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


@pytest.mark.asyncio
async def test_http_helpers_parse_json():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, request.content))
        return httpx.Response(200, json={"ok": True})

    async with mock_client(handler) as client:
        assert await http.get("/a", client=client) == {"ok": True}
        assert await http.put("/b", {"x": 1}, client=client) == {"ok": True}
        assert await http.post("/c", b"raw", client=client) == {"ok": True}

    assert seen[0][:2] == ("GET", "/a")
    assert seen[1][:2] == ("PUT", "/b")
    assert json.loads(seen[1][2]) == {"x": 1}
    assert seen[2] == ("POST", "/c", b"raw")


@pytest.mark.asyncio
async def test_http_helpers_swallow_bad_bodies_and_transport_errors():
    def not_json(request):
        return httpx.Response(500, text="<html>oops</html>")

    async with mock_client(not_json) as client:
        assert await http.get("/a", client=client) == {}

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    async with mock_client(refuse) as client:
        assert await http.post("/a", {"x": 1}, client=client) == {}
