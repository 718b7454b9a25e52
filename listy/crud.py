import logging
from typing import Iterable, List, Optional

import bcrypt
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


class NotFound(Exception):
    pass


class UserExists(Exception):
    pass


# users


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.username == username.lower())
        .first()
    )


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def _new_user(db: Session, username: str, password: Optional[str] = None):
    # every user owns exactly one list
    db_user = models.User(username=username.lower(), password=password)
    db_user.list = models.GroceryList()
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_or_create_user(db: Session, username: str) -> models.User:
    db_user = get_user_by_username(db, username)
    if db_user is None:
        logger.info("Creating user %s on first use", username)
        db_user = _new_user(db, username)
    return db_user


def sign_up(db: Session, data: schemas.SignUp) -> models.User:
    username = data.email.lower()
    if get_user_by_username(db, username):
        raise UserExists("User already exists.")
    hashed = bcrypt.hashpw(data.password.encode("utf-8"), bcrypt.gensalt())
    return _new_user(db, username, hashed.decode("utf-8"))


# list


def get_list(db: Session, user: models.User) -> models.GroceryList:
    if user.list is None:
        user.list = models.GroceryList()
        db.add(user)
        db.commit()
        db.refresh(user)
    return user.list


def _list_ingredient(db: Session, user: models.User, ingredient_id: str):
    db_ingredient = (
        db.query(models.Ingredient)
        .filter(
            models.Ingredient.id == ingredient_id,
            models.Ingredient.list_id == get_list(db, user).id,
        )
        .first()
    )
    if db_ingredient is None:
        raise NotFound(f"Ingredient {ingredient_id} is not on the list.")
    return db_ingredient


def add_to_list(db: Session, user: models.User, name: str) -> models.Ingredient:
    db_ingredient = models.Ingredient(
        list_id=get_list(db, user).id, name=name, checked=False
    )
    db.add(db_ingredient)
    db.commit()
    db.refresh(db_ingredient)
    return db_ingredient


def clear_list(db: Session, user: models.User, ids: Iterable[str]) -> int:
    ids = list(ids)
    if not ids:
        return 0
    deleted = (
        db.query(models.Ingredient)
        .filter(
            models.Ingredient.list_id == get_list(db, user).id,
            models.Ingredient.id.in_(ids),
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def check_ingredient(
    db: Session, user: models.User, ingredient_id: str, checked: bool
) -> models.Ingredient:
    db_ingredient = _list_ingredient(db, user, ingredient_id)
    db_ingredient.checked = checked
    db.commit()
    db.refresh(db_ingredient)
    return db_ingredient


def check_many(
    db: Session, user: models.User, items: List[schemas.ListCheck]
) -> List[models.Ingredient]:
    changed = []
    for item in items:
        db_ingredient = _list_ingredient(db, user, item.id)
        db_ingredient.checked = item.checked
        changed.append(db_ingredient)
    db.commit()
    for db_ingredient in changed:
        db.refresh(db_ingredient)
    return changed


def upsert_list(
    db: Session, user: models.User, items: List[schemas.ListUpsertItem]
) -> List[models.Ingredient]:
    """Copy recipe ingredients onto the list.

    Names already on the list (compared case-insensitively) are skipped, so
    adding the same recipe twice does not duplicate rows.
    """
    db_list = get_list(db, user)
    present = {i.name.strip().lower() for i in db_list.ingredients}
    added = []
    for item in items:
        key = item.name.strip().lower()
        if key in present:
            continue
        present.add(key)
        added.append(
            models.Ingredient(
                list_id=db_list.id, recipe_id=item.recipe_id, name=item.name
            )
        )
    db.add_all(added)
    db.commit()
    for db_ingredient in added:
        db.refresh(db_ingredient)
    return added


# recipes


def get_recipe(db: Session, recipe_id: str) -> Optional[models.Recipe]:
    return db.query(models.Recipe).filter(models.Recipe.id == recipe_id).first()


def get_recipes_by_ids(db: Session, ids: List[str]) -> List[models.Recipe]:
    if not ids:
        return []
    return db.query(models.Recipe).filter(models.Recipe.id.in_(ids)).all()


def get_recipes(db: Session, skip: int = 0, limit: int = 100):
    return (
        db.query(models.Recipe)
        .order_by(models.Recipe.name)
        .offset(skip)
        .limit(limit)
        .all()
    )


def create_recipe(
    db: Session, user: Optional[models.User], recipe: schemas.RecipeCreate
) -> models.Recipe:
    db_recipe = models.Recipe(
        user_id=user.id if user else None,
        name=recipe.name,
        description=recipe.description,
        prep_time=recipe.prep_time or None,
        cook_time=recipe.cook_time or None,
        img_url=recipe.img_url,
        address=recipe.address,
        author=recipe.author,
        notes=recipe.notes,
    )
    db_recipe.instructions = [
        models.Instruction(step=step, description=text)
        for step, text in enumerate(recipe.instructions, start=1)
    ]
    db.add(db_recipe)
    db.flush()
    db.add_all(
        models.Ingredient(recipe_id=db_recipe.id, name=name, position=position)
        for position, name in enumerate(recipe.ingredients)
    )

    if recipe.message_id:
        db_message = (
            db.query(models.Message)
            .filter(models.Message.id == recipe.message_id)
            .first()
        )
        if db_message is None:
            db.rollback()
            raise NotFound(f"Message {recipe.message_id} not found.")
        db_message.recipe_id = db_recipe.id

    db.commit()
    db.refresh(db_recipe)
    return db_recipe


def _existing_recipe(db: Session, recipe_id: str) -> models.Recipe:
    db_recipe = get_recipe(db, recipe_id)
    if db_recipe is None:
        raise NotFound(f"Recipe {recipe_id} not found.")
    return db_recipe


def update_img_url(db: Session, recipe_id: str, img_url: str) -> models.Recipe:
    db_recipe = _existing_recipe(db, recipe_id)
    db_recipe.img_url = img_url
    db.commit()
    db.refresh(db_recipe)
    return db_recipe


def add_notes(db: Session, recipe_id: str, notes: str) -> models.Recipe:
    db_recipe = _existing_recipe(db, recipe_id)
    db_recipe.notes = notes
    db.commit()
    db.refresh(db_recipe)
    return db_recipe


# chats


def _append_messages(db_chat: models.Chat, messages: List[schemas.MessageIn]):
    start = len(db_chat.messages)
    for offset, message in enumerate(messages):
        db_chat.messages.append(
            models.Message(
                position=start + offset,
                role=message.role,
                content=message.content,
                recipe_id=message.recipe_id,
            )
        )


def create_chat(
    db: Session, user: models.User, messages: List[schemas.MessageIn]
) -> models.Chat:
    db_chat = models.Chat(user_id=user.id)
    _append_messages(db_chat, messages)
    db.add(db_chat)
    db.commit()
    db.refresh(db_chat)
    return db_chat


def get_chat(db: Session, user: models.User, chat_id: str) -> models.Chat:
    db_chat = (
        db.query(models.Chat)
        .filter(models.Chat.id == chat_id, models.Chat.user_id == user.id)
        .first()
    )
    if db_chat is None:
        raise NotFound(f"Chat {chat_id} not found.")
    return db_chat


def get_chats(db: Session, user: models.User) -> List[models.Chat]:
    return (
        db.query(models.Chat)
        .filter(models.Chat.user_id == user.id)
        .order_by(models.Chat.created_at.desc())
        .all()
    )


def add_messages(
    db: Session, user: models.User, chat_id: str, messages: List[schemas.MessageIn]
) -> models.Chat:
    db_chat = get_chat(db, user, chat_id)
    _append_messages(db_chat, messages)
    db.commit()
    db.refresh(db_chat)
    return db_chat
