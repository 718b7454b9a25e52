"""Typed client for the Listy JSON procedures.

Every method maps to one server procedure and returns the parsed pydantic
payload. Any non-2xx answer, transport failure or unreadable payload is
raised as :class:`RemoteError` carrying a message fit for the user.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional

import httpx
from pydantic import TypeAdapter

from listy import schemas

logger = logging.getLogger(__name__)

BAD_PAYLOAD = "Unexpected response from the server."


class RemoteError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    detail = data.get("detail") if isinstance(data, dict) else None
    if isinstance(detail, list):
        # FastAPI validation errors
        return "; ".join(str(d.get("msg", d)) for d in detail if d)
    if detail:
        return str(detail)
    return response.reason_phrase or f"HTTP {response.status_code}"


def _deleted(data: Any) -> int:
    return int(data["deleted"])


_ingredients = TypeAdapter(List[schemas.Ingredient])
_summaries = TypeAdapter(List[schemas.RecipeSummary])
_messages = TypeAdapter(List[schemas.Message])
_chats = TypeAdapter(List[schemas.Chat])


class RpcClient:
    def __init__(self, client: httpx.AsyncClient, user: Optional[str] = None):
        self.client = client
        self.user = user

    async def _call(
        self, method: str, path: str, parse: Callable[[Any], Any], **kwargs: Any
    ) -> Any:
        headers = {"X-User": self.user} if self.user else {}
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %r", method, path, exc)
            raise RemoteError(str(exc) or exc.__class__.__name__) from exc
        if response.is_error:
            message = _error_message(response)
            logger.debug("%s %s -> %s %s", method, path, response.status_code, message)
            raise RemoteError(message, response.status_code)
        # pydantic.ValidationError is a ValueError, as is a JSON decode error
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("%s %s returned an unreadable payload: %r", method, path, exc)
            raise RemoteError(BAD_PAYLOAD, response.status_code) from exc

    # list

    async def list_by_user_id(self) -> schemas.GroceryList:
        return await self._call("GET", "/api/list", schemas.GroceryList.model_validate)

    async def list_add(self, new_ingredient_name: str) -> schemas.Ingredient:
        return await self._call(
            "POST",
            "/api/list/add",
            schemas.Ingredient.model_validate,
            json={"new_ingredient_name": new_ingredient_name},
        )

    async def list_clear(self, ids: Iterable[str]) -> int:
        return await self._call(
            "POST", "/api/list/clear", _deleted, json=[{"id": i} for i in ids]
        )

    async def list_check(self, ingredient_id: str, checked: bool) -> schemas.Ingredient:
        return await self._call(
            "POST",
            "/api/list/check",
            schemas.Ingredient.model_validate,
            json={"id": ingredient_id, "checked": checked},
        )

    async def list_check_many(
        self, items: List[schemas.ListCheck]
    ) -> List[schemas.Ingredient]:
        return await self._call(
            "POST",
            "/api/list/check-many",
            _ingredients.validate_python,
            json=[i.model_dump() for i in items],
        )

    async def list_upsert(
        self, items: List[schemas.ListUpsertItem]
    ) -> List[schemas.Ingredient]:
        return await self._call(
            "POST",
            "/api/list/upsert",
            _ingredients.validate_python,
            json=[i.model_dump() for i in items],
        )

    # recipes

    async def recipe_by_id(self, recipe_id: str) -> schemas.Recipe:
        return await self._call(
            "GET", f"/api/recipes/{recipe_id}", schemas.Recipe.model_validate
        )

    async def recipe_by_ids(self, ids: List[str]) -> List[schemas.RecipeSummary]:
        if not ids:
            return []
        return await self._call(
            "GET", "/api/recipes", _summaries.validate_python, params={"ids": ids}
        )

    async def recipe_create(self, recipe: schemas.RecipeCreate) -> schemas.Recipe:
        return await self._call(
            "POST", "/api/recipes", schemas.Recipe.model_validate, json=recipe.model_dump()
        )

    async def recipe_update_img_url(self, recipe_id: str, img_url: str) -> schemas.Recipe:
        return await self._call(
            "PUT",
            f"/api/recipes/{recipe_id}/img-url",
            schemas.Recipe.model_validate,
            json={"img_url": img_url},
        )

    async def recipe_add_notes(self, recipe_id: str, notes: str) -> schemas.Recipe:
        return await self._call(
            "PUT",
            f"/api/recipes/{recipe_id}/notes",
            schemas.Recipe.model_validate,
            json={"notes": notes},
        )

    # chats

    async def chat_create(self, messages: List[schemas.MessageIn]) -> schemas.Chat:
        return await self._call(
            "POST",
            "/api/chats",
            schemas.Chat.model_validate,
            json={"messages": [m.model_dump() for m in messages]},
        )

    async def chat_add_messages(
        self, chat_id: str, messages: List[schemas.MessageIn]
    ) -> List[schemas.Message]:
        return await self._call(
            "POST",
            f"/api/chats/{chat_id}/messages",
            _messages.validate_python,
            json={"messages": [m.model_dump() for m in messages]},
        )

    async def chat_get_messages_by_chat_id(self, chat_id: str) -> schemas.Chat:
        return await self._call(
            "GET", f"/api/chats/{chat_id}/messages", schemas.Chat.model_validate
        )

    async def chat_get_chats(self) -> List[schemas.Chat]:
        return await self._call("GET", "/api/chats", _chats.validate_python)

    # auth

    async def auth_sign_up(self, email: str, password: str) -> schemas.User:
        return await self._call(
            "POST",
            "/api/auth/signup",
            schemas.User.model_validate,
            json={"email": email, "password": password},
        )
