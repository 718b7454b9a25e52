import httpx
import pytest

from listy import schemas
from listy.client.cache import QueryCache
from listy.client.chat import ChatSession, messages_key, recipe_path
from listy.client.list_controller import ListController
from listy.client.notify import Toasts
from listy.client.recipe_controller import (
    IngredientSelection,
    RecipeController,
    is_heading,
    recipe_key,
)
from listy.client.rpc import BAD_PAYLOAD, RemoteError, RpcClient
from listy.client.storage import CURRENT_CHAT_ID, MemoryStore

COOK = "cook@example.com"

RECIPE_TEXT = (
    "Name: Pancakes\n"
    "Description: Fluffy.\n"
    "Ingredients:\n"
    "- flour\n"
    "- milk\n"
    "\n"
    "Instructions:\n"
    "Mix.\n"
    "Fry.\n"
    "\n"
)


@pytest.fixture
def rpc(api_client):
    return RpcClient(api_client, user=COOK)


async def seed_recipe(rpc, ingredients=("For the batter:", "flour", "milk")):
    return await rpc.recipe_create(
        schemas.RecipeCreate(
            name="Pancakes", ingredients=list(ingredients), instructions=["Mix", "Fry"]
        )
    )


# rpc


@pytest.mark.asyncio
async def test_rpc_raises_server_detail(rpc):
    with pytest.raises(RemoteError) as exc_info:
        await rpc.recipe_by_id("missing")
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Recipe not found"


@pytest.mark.asyncio
async def test_rpc_sign_up_conflict(rpc):
    user = await rpc.auth_sign_up("Chef@listy.app", "secret1")
    assert user.username == "chef@listy.app"
    with pytest.raises(RemoteError) as exc_info:
        await rpc.auth_sign_up("chef@listy.app", "secret1")
    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "User already exists."


@pytest.mark.asyncio
async def test_rpc_wraps_transport_errors():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://x") as c:
        with pytest.raises(RemoteError) as exc_info:
            await RpcClient(c).list_by_user_id()
    assert exc_info.value.status_code is None


# list against the real server


@pytest.mark.asyncio
async def test_list_controller_end_to_end(rpc):
    toasts = Toasts()
    controller = ListController(rpc, QueryCache(), toasts, MemoryStore())
    await controller.load()
    assert controller.ingredients == []

    milk = await controller.add("Milk")
    eggs = await controller.add("Eggs")
    assert {i.name for i in controller.ingredients} == {"Milk", "Eggs"}
    assert all(i.id for i in controller.ingredients)

    await controller.check(milk.id, True)
    assert await controller.remove_checked() == 1
    assert [i.id for i in controller.ingredients] == [eggs.id]

    await controller.check("not-on-list", True)
    assert toasts.drain() == [("error", "Ingredient not-on-list is not on the list.")]
    assert [i.id for i in controller.ingredients] == [eggs.id]


@pytest.mark.asyncio
async def test_list_grouped_by_recipe_names(rpc):
    recipe = await seed_recipe(rpc)
    await rpc.list_upsert([schemas.ListUpsertItem(name="flour", recipe_id=recipe.id)])
    controller = ListController(rpc, QueryCache(), Toasts(), MemoryStore())
    await controller.load()
    await controller.add("Salt")

    controller.by_recipe = True
    groups = await controller.grouped()
    assert {k: [i.name for i in v] for k, v in groups.items()} == {
        "Pancakes": ["flour"],
        None: ["Salt"],
    }


# recipes


def test_selection_skips_headings_and_toggles_all():
    ingredients = [
        schemas.Ingredient(id="h", name="For the batter:"),
        schemas.Ingredient(id="a", name="flour"),
        schemas.Ingredient(id="b", name="milk"),
    ]
    assert is_heading("For the batter:") and not is_heading("flour")

    selection = IngredientSelection(ingredients)
    assert selection.all_checked
    assert [i.id for i in selection.selected()] == ["a", "b"]

    selection.toggle("h", True)
    selection.toggle("a", False)
    assert [i.id for i in selection.selected()] == ["b"]

    selection.check_all()
    assert selection.all_checked
    selection.check_all()
    assert selection.none_checked
    assert selection.selected() == []


@pytest.mark.asyncio
async def test_add_selection_to_list(rpc, api_client):
    recipe = await seed_recipe(rpc)
    cache = QueryCache()
    toasts = Toasts()
    lists = ListController(rpc, cache, toasts, MemoryStore())
    await lists.load()
    recipes = RecipeController(rpc, cache, toasts, api_client)

    loaded = await recipes.load(recipe.id)
    selection = IngredientSelection(loaded.ingredients)
    added = await recipes.add_to_list(selection)

    assert [i.name for i in added] == ["flour", "milk"]
    # the list entry was refetched after the upsert
    assert {i.name for i in lists.ingredients} == {"flour", "milk"}
    assert {i.recipe_id for i in lists.ingredients} == {recipe.id}

    assert await recipes.add_to_list(selection) == []
    assert len(lists.ingredients) == 2


@pytest.mark.asyncio
async def test_upload_image_sets_recipe_url(rpc, api_client):
    recipe = await seed_recipe(rpc)
    toasts = Toasts()
    controller = RecipeController(rpc, QueryCache(), toasts, api_client)
    await controller.load(recipe.id)

    updated = await controller.upload_image(recipe.id, "photo.png", b"\x89PNG data")
    assert updated.img_url.startswith("http://testserver/uploads/photo")
    assert controller.cache.get_data(recipe_key(recipe.id)).img_url == updated.img_url
    assert (await rpc.recipe_by_id(recipe.id)).img_url == updated.img_url

    served = await api_client.get(updated.img_url)
    assert served.content == b"\x89PNG data"
    assert toasts.drain() == []


@pytest.mark.asyncio
async def test_upload_image_without_file(rpc, api_client):
    toasts = Toasts()
    controller = RecipeController(rpc, QueryCache(), toasts, api_client)
    assert await controller.upload_image("r1", "photo.png", None) is None
    assert toasts.drain() == [("error", "No file selected.")]


@pytest.mark.asyncio
async def test_upload_image_reports_server_detail(rpc, api_client):
    recipe = await seed_recipe(rpc)
    toasts = Toasts()
    controller = RecipeController(rpc, QueryCache(), toasts, api_client)
    assert await controller.upload_image(recipe.id, "..", b"data") is None
    assert toasts.drain() == [("error", "Invalid filename")]


@pytest.mark.asyncio
async def test_upload_image_non_json_failure(rpc):
    def gateway_down(request):
        return httpx.Response(502, text="Bad Gateway")

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(gateway_down), base_url="http://x"
    ) as broken:
        toasts = Toasts()
        controller = RecipeController(rpc, QueryCache(), toasts, broken)
        assert await controller.upload_image("r1", "photo.png", b"data") is None
    assert toasts.drain() == [("error", "Something went wrong.")]


@pytest.mark.asyncio
async def test_rejected_img_url_rolls_back(rpc, api_client):
    recipe = await seed_recipe(rpc)
    toasts = Toasts()
    controller = RecipeController(rpc, QueryCache(), toasts, api_client)
    before = await controller.load(recipe.id)

    assert await controller.update_img_url(recipe.id, "") is None
    assert controller.cache.get_data(recipe_key(recipe.id)) == before
    [(level, _)] = toasts.drain()
    assert level == "error"


@pytest.mark.asyncio
async def test_img_url_on_cold_cache_does_not_guess(rpc, api_client):
    recipe = await seed_recipe(rpc)
    controller = RecipeController(rpc, QueryCache(), Toasts(), api_client)
    updated = await controller.update_img_url(recipe.id, "http://img/1.png")
    assert updated.img_url == "http://img/1.png"
    assert recipe_key(recipe.id) not in controller.cache


@pytest.mark.asyncio
async def test_add_notes_refreshes_recipe(rpc, api_client):
    recipe = await seed_recipe(rpc)
    controller = RecipeController(rpc, QueryCache(), Toasts(), api_client)
    await controller.load(recipe.id)

    await controller.add_notes(recipe.id, "Less sugar next time")
    assert controller.cache.get_data(recipe_key(recipe.id)).notes == "Less sugar next time"


# chat


def make_session(rpc, store=None, authenticated=True):
    toasts = Toasts()
    session = ChatSession(rpc, QueryCache(), toasts, store or MemoryStore(), authenticated)
    return session, toasts


@pytest.mark.asyncio
async def test_first_exchange_creates_chat_then_appends(rpc):
    store = MemoryStore()
    session, _ = make_session(rpc, store)
    assert session.chat_id is None

    messages = await session.on_finish("Something with eggs?", "Try an omelette.")
    chat_id = session.chat_id
    assert chat_id
    assert store.get_str(CURRENT_CHAT_ID) == chat_id
    assert [m.role for m in messages] == ["user", "assistant"]

    messages = await session.on_finish("And dessert?", "Pancakes.")
    assert session.chat_id == chat_id
    assert [m.content for m in messages] == [
        "Something with eggs?",
        "Try an omelette.",
        "And dessert?",
        "Pancakes.",
    ]
    assert len((await rpc.chat_get_chats())) == 1


@pytest.mark.asyncio
async def test_restore_picks_newest_chat(rpc):
    first, _ = make_session(rpc)
    await first.on_finish("one", "1")
    second, _ = make_session(rpc)
    await second.on_finish("two", "2")

    fresh, _ = make_session(rpc)
    assert await fresh.restore() == second.chat_id
    assert [m.content for m in fresh.messages] == ["two", "2"]
    assert fresh.cache.get_data(messages_key(second.chat_id)) is not None

    # an explicit "new chat" is remembered and not overridden
    fresh.start_new_chat()
    assert await fresh.restore() is None
    assert fresh.messages == []


@pytest.mark.asyncio
async def test_change_chat_loads_its_messages(rpc):
    first, _ = make_session(rpc)
    await first.on_finish("one", "1")
    session, _ = make_session(rpc)
    messages = await session.change_chat(first.chat_id)
    assert [m.content for m in messages] == ["one", "1"]


@pytest.mark.asyncio
async def test_guest_session_stays_local(rpc):
    session, _ = make_session(rpc, authenticated=False)
    messages = await session.on_finish("hi", "hello")
    assert [m.content for m in messages] == ["hi", "hello"]
    assert session.chat_id is None
    assert await rpc.chat_get_chats() == []


@pytest.mark.asyncio
async def test_save_recipe_links_message(rpc):
    session, toasts = make_session(rpc)
    await session.on_finish("Pancakes please", RECIPE_TEXT)
    answer = session.messages[-1]

    recipe = await session.save_recipe(answer.content, answer.id)
    assert recipe.name == "Pancakes"
    assert [i.name for i in recipe.ingredients] == ["flour", "milk"]
    assert [s.description for s in recipe.instructions] == ["Mix.", "Fry."]
    assert session.save_status == "success"
    assert toasts.drain() == [("success", "Recipe saved successfully!")]

    assert session.messages[-1].recipe_id == recipe.id
    stored = await rpc.chat_get_messages_by_chat_id(session.chat_id)
    assert stored.messages[-1].recipe_id == recipe.id
    assert recipe_path(recipe.id, recipe.name) == f"recipes/{recipe.id}?name=Pancakes"


@pytest.mark.asyncio
async def test_save_recipe_refreshes_cached_recipe_queries(rpc):
    session, _ = make_session(rpc)
    cache = session.cache
    await cache.fetch(("recipe.byIds", "x"), lambda: rpc.recipe_by_ids(["x"]))
    assert cache.get_data(("recipe.byIds", "x")) == []

    await session.save_recipe(RECIPE_TEXT)
    assert ("recipe.byIds", "x") in cache


@pytest.mark.asyncio
async def test_save_recipe_without_name(rpc):
    session, toasts = make_session(rpc)
    assert await session.save_recipe("Just some chat.") is None
    assert await session.save_recipe("") is None
    assert toasts.drain() == [("error", "Error: no recipe name found in the message.")]
    assert session.save_status == "error"


@pytest.mark.asyncio
async def test_save_recipe_reports_server_error(rpc, api_client):
    session, toasts = make_session(rpc)
    assert await session.save_recipe(RECIPE_TEXT, "no-such-message") is None
    assert toasts.drain() == [("error", "Error: Message no-such-message not found.")]
    # nothing half-saved
    assert (await api_client.get("/api/recipes")).json() == []


@pytest.mark.asyncio
async def test_guest_save_does_not_link(rpc):
    session, toasts = make_session(rpc, authenticated=False)
    await session.on_finish("Pancakes please", RECIPE_TEXT)
    local = session.messages[-1]

    recipe = await session.save_recipe(local.content, local.id)
    assert recipe is not None
    # the local copy still points at the new recipe
    assert session.messages[-1].recipe_id == recipe.id
    assert toasts.drain() == [("success", "Recipe saved successfully!")]


# payloads the client cannot read


def flaky_list_server(add_response):
    """`add_response` builds the answer to `list.add`."""
    def handler(request):
        if request.method == "GET" and request.url.path == "/api/list":
            return httpx.Response(
                200, json={"ingredients": [{"id": "a", "name": "Milk", "checked": False}]}
            )
        if request.url.path == "/api/list/add":
            return add_response()
        return httpx.Response(404, json={"detail": "Not Found"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://x")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "add_response",
    [
        lambda: httpx.Response(200, text="<html>maintenance</html>"),
        lambda: httpx.Response(200, json={"unexpected": True}),
    ],
)
async def test_unreadable_success_payload_rolls_back(add_response):
    async with flaky_list_server(add_response) as http_client:
        toasts = Toasts()
        controller = ListController(RpcClient(http_client), QueryCache(), toasts, MemoryStore())
        await controller.load()

        assert await controller.add("Eggs") is None

    assert [(i.id, i.name) for i in controller.ingredients] == [("a", "Milk")]
    assert controller.add_status == "error"
    assert toasts.drain() == [("error", BAD_PAYLOAD)]


@pytest.mark.asyncio
async def test_rpc_reports_unreadable_payload():
    async with flaky_list_server(lambda: httpx.Response(200, text="oops")) as http_client:
        with pytest.raises(RemoteError) as exc_info:
            await RpcClient(http_client).list_add("Eggs")
    assert exc_info.value.message == BAD_PAYLOAD
    assert exc_info.value.status_code == 200
