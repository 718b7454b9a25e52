import logging
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlencode

import httpx

from listy import schemas

from . import http
from .cache import QueryCache
from .list_controller import LIST_KEY
from .mutations import OptimisticMutation
from .notify import Notifier
from .rpc import RemoteError, RpcClient

logger = logging.getLogger(__name__)


def recipe_key(recipe_id: str):
    return ("recipe.byId", recipe_id)


def is_heading(name: str) -> bool:
    # "For the sauce:" groups the ingredients below it
    return name.endswith(":")


class IngredientSelection:
    """Which of a recipe's ingredients go onto the list. All start selected."""

    def __init__(self, ingredients: Iterable[schemas.Ingredient]):
        self.ingredients = list(ingredients)
        self.checked: Dict[str, bool] = {
            i.id: True for i in self.ingredients if not is_heading(i.name)
        }

    def toggle(self, ingredient_id: str, checked: bool) -> None:
        if ingredient_id in self.checked:
            self.checked[ingredient_id] = checked

    @property
    def all_checked(self) -> bool:
        return all(self.checked.values())

    @property
    def none_checked(self) -> bool:
        return not any(self.checked.values())

    def check_all(self) -> None:
        target = not self.all_checked
        for ingredient_id in self.checked:
            self.checked[ingredient_id] = target

    def selected(self) -> List[schemas.Ingredient]:
        return [i for i in self.ingredients if self.checked.get(i.id)]


class RecipeController:
    def __init__(
        self,
        rpc: RpcClient,
        cache: QueryCache,
        notifier: Notifier,
        http_client: httpx.AsyncClient,
    ):
        self.rpc = rpc
        self.cache = cache
        self.notifier = notifier
        self.http_client = http_client

    async def load(self, recipe_id: str) -> schemas.Recipe:
        return await self.cache.fetch(
            recipe_key(recipe_id), lambda: self.rpc.recipe_by_id(recipe_id)
        )

    def _img_url_mutation(self, recipe_id: str) -> OptimisticMutation:
        # no empty base: a recipe nobody loaded is not guessed at
        return OptimisticMutation(
            self.cache,
            recipe_key(recipe_id),
            remote=lambda url: self.rpc.recipe_update_img_url(recipe_id, url),
            transform=lambda cur, url: cur.model_copy(update={"img_url": url}),
            notifier=self.notifier,
        )

    async def update_img_url(self, recipe_id: str, img_url: str):
        return await self._img_url_mutation(recipe_id)(img_url)

    async def upload_image(
        self, recipe_id: str, filename: str, data: Optional[bytes]
    ) -> Optional[schemas.Recipe]:
        if not data:
            self.notifier.error("No file selected.")
            return None
        path = "/api/upload?" + urlencode({"filename": filename})
        blob = await http.post(path, data, client=self.http_client)
        url = blob.get("url") if isinstance(blob, dict) else None
        if not url:
            logger.warning("Upload of %s returned no url: %r", filename, blob)
            self.notifier.error(
                (blob.get("detail") if isinstance(blob, dict) else None)
                or "Something went wrong."
            )
            return None
        return await self.update_img_url(recipe_id, url)

    async def add_notes(self, recipe_id: str, notes: str) -> Optional[schemas.Recipe]:
        values = schemas.NotesUpdate(notes=notes)
        try:
            recipe = await self.rpc.recipe_add_notes(recipe_id, values.notes)
        except RemoteError as exc:
            self.notifier.error(exc.message)
            return None
        await self.cache.invalidate(recipe_key(recipe_id))
        return recipe

    async def add_to_list(self, selection: IngredientSelection):
        items = [
            schemas.ListUpsertItem(name=i.name, recipe_id=i.recipe_id)
            for i in selection.selected()
        ]
        if not items:
            return []
        try:
            added = await self.rpc.list_upsert(items)
        except RemoteError as exc:
            self.notifier.error(exc.message)
            return None
        await self.cache.invalidate(LIST_KEY)
        return added
