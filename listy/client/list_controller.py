import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from listy import schemas

from .cache import QueryCache
from .mutations import OptimisticMutation
from .notify import Notifier
from .rpc import RpcClient
from .storage import BY_RECIPE, KeyValueStore

logger = logging.getLogger(__name__)

LIST_KEY = ("list.byUserId",)

PLACEHOLDER_ID = ""


# speculative transforms, all return a new GroceryList


def append_placeholder(current: schemas.GroceryList, name: str) -> schemas.GroceryList:
    placeholder = schemas.Ingredient(id=PLACEHOLDER_ID, name=name, checked=False)
    return schemas.GroceryList(ingredients=[*current.ingredients, placeholder])


def set_checked(
    current: schemas.GroceryList, items: Iterable[schemas.ListCheck]
) -> schemas.GroceryList:
    targets = {i.id: i.checked for i in items}
    return schemas.GroceryList(
        ingredients=[
            i.model_copy(update={"checked": targets[i.id]}) if i.id in targets else i
            for i in current.ingredients
        ]
    )


def drop_ids(current: schemas.GroceryList, ids: Iterable[str]) -> schemas.GroceryList:
    ids = set(ids)
    return schemas.GroceryList(
        ingredients=[i for i in current.ingredients if i.id not in ids]
    )


def check_all_target(ingredients: List[schemas.Ingredient]) -> bool:
    """Everything checked -> uncheck all, anything else -> check all."""
    return not all(i.checked for i in ingredients)


class ListController:
    def __init__(
        self,
        rpc: RpcClient,
        cache: QueryCache,
        notifier: Notifier,
        store: KeyValueStore,
    ):
        self.rpc = rpc
        self.cache = cache
        self.notifier = notifier
        self.store = store

        self.add_mutation = OptimisticMutation(
            cache,
            LIST_KEY,
            remote=lambda v: rpc.list_add(v.new_ingredient_name),
            transform=lambda cur, v: append_placeholder(cur, v.new_ingredient_name),
            notifier=notifier,
            empty=schemas.GroceryList,
        )
        self.check_mutation = OptimisticMutation(
            cache,
            LIST_KEY,
            remote=lambda v: rpc.list_check(v.id, v.checked),
            transform=lambda cur, v: set_checked(cur, [v]),
            notifier=notifier,
            empty=schemas.GroceryList,
        )
        self.check_many_mutation = OptimisticMutation(
            cache,
            LIST_KEY,
            remote=rpc.list_check_many,
            transform=set_checked,
            notifier=notifier,
            empty=schemas.GroceryList,
        )
        self.clear_mutation = OptimisticMutation(
            cache,
            LIST_KEY,
            remote=rpc.list_clear,
            transform=drop_ids,
            notifier=notifier,
            empty=schemas.GroceryList,
        )

    async def load(self) -> schemas.GroceryList:
        return await self.cache.fetch(LIST_KEY, self.rpc.list_by_user_id)

    @property
    def ingredients(self) -> List[schemas.Ingredient]:
        data = self.cache.get_data(LIST_KEY)
        return list(data.ingredients) if data else []

    @property
    def all_checked(self) -> bool:
        return all(i.checked for i in self.ingredients)

    @property
    def none_checked(self) -> bool:
        return not any(i.checked for i in self.ingredients)

    @property
    def add_status(self) -> str:
        return self.add_mutation.status

    async def add(self, name: str) -> Optional[schemas.Ingredient]:
        # raises pydantic.ValidationError before anything is sent
        values = schemas.ListAdd(new_ingredient_name=name)
        return await self.add_mutation(values)

    async def check(self, ingredient_id: str, checked: bool):
        return await self.check_mutation(schemas.ListCheck(id=ingredient_id, checked=checked))

    async def check_all(self, ingredients: Optional[List[schemas.Ingredient]] = None):
        """Set every item to one target computed from ``ingredients``.

        ``ingredients`` is the state the user was looking at, defaulting to
        the cache. Pressing twice on the same observed state sends the same
        batch twice, which leaves the list as one press would.
        """
        if ingredients is None:
            ingredients = self.ingredients
        if not ingredients:
            return None
        target = check_all_target(ingredients)
        batch = [schemas.ListCheck(id=i.id, checked=target) for i in ingredients]
        return await self.check_many_mutation(batch)

    async def remove_checked(self) -> Optional[int]:
        ids = [i.id for i in self.ingredients if i.checked]
        if not ids:
            return 0
        return await self.clear_mutation(ids)

    # grouping

    @property
    def by_recipe(self) -> bool:
        return self.store.get_bool(BY_RECIPE, False)

    @by_recipe.setter
    def by_recipe(self, value: bool) -> None:
        self.store.set_bool(BY_RECIPE, value)

    async def recipe_names(self) -> Dict[str, str]:
        ids = sorted({i.recipe_id for i in self.ingredients if i.recipe_id})
        if not ids:
            return {}
        key = ("recipe.byIds", *ids)
        recipes = await self.cache.fetch(key, lambda: self.rpc.recipe_by_ids(ids))
        return {r.id: r.name for r in recipes or []}

    async def grouped(self) -> "OrderedDict[Optional[str], List[schemas.Ingredient]]":
        """List items keyed by recipe name, or a single ``None`` group.

        Items without a recipe (or with a recipe that no longer resolves)
        land in the ``None`` group.
        """
        groups: "OrderedDict[Optional[str], List[schemas.Ingredient]]" = OrderedDict()
        if not self.by_recipe:
            groups[None] = self.ingredients
            return groups
        names = await self.recipe_names()
        for ingredient in self.ingredients:
            groups.setdefault(names.get(ingredient.recipe_id), []).append(ingredient)
        return groups
