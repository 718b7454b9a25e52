import logging
import uuid
from typing import List, Optional
from urllib.parse import quote

from listy import schemas
from listy.extract import extract_recipe

from .cache import QueryCache
from .notify import Notifier
from .rpc import RemoteError, RpcClient
from .storage import CURRENT_CHAT_ID, KeyValueStore

logger = logging.getLogger(__name__)


def messages_key(chat_id: str):
    return ("chat.getMessagesByChatId", chat_id)


def _local_message(role: str, content: str) -> schemas.Message:
    # stands in until the server hands back stored ids
    return schemas.Message(id=uuid.uuid4().hex, role=role, content=content)


def recipe_path(recipe_id: Optional[str], recipe_name: Optional[str] = None):
    if not (recipe_id and recipe_name):
        return None
    return f"recipes/{recipe_id}?name={quote(recipe_name)}"


class ChatSession:
    """Conversation state for one user.

    The current chat id lives in the session store so a restart of the
    client picks the same conversation back up.
    """

    def __init__(
        self,
        rpc: RpcClient,
        cache: QueryCache,
        notifier: Notifier,
        store: KeyValueStore,
        authenticated: bool = True,
    ):
        self.rpc = rpc
        self.cache = cache
        self.notifier = notifier
        self.store = store
        self.authenticated = authenticated
        self.messages: List[schemas.Message] = []
        self.save_status = "idle"

    @property
    def chat_id(self) -> Optional[str]:
        return self.store.get_str(CURRENT_CHAT_ID) or None

    def _set_chat_id(self, chat_id: Optional[str]) -> None:
        self.store.set_str(CURRENT_CHAT_ID, chat_id)

    async def load_messages(self) -> List[schemas.Message]:
        chat_id = self.chat_id
        if not (self.authenticated and chat_id):
            return self.messages
        try:
            chat = await self.cache.fetch(
                messages_key(chat_id),
                lambda: self.rpc.chat_get_messages_by_chat_id(chat_id),
            )
        except RemoteError as exc:
            self.notifier.error(exc.message)
            return self.messages
        if chat is not None:
            self.messages = list(chat.messages)
        return self.messages

    async def restore(self) -> Optional[str]:
        """Resume the stored chat, or the newest one when nothing is stored."""
        if not self.authenticated:
            return None
        if self.store.get_str(CURRENT_CHAT_ID) is None:
            try:
                chats = await self.rpc.chat_get_chats()
            except RemoteError as exc:
                self.notifier.error(exc.message)
                return None
            if chats:
                self._set_chat_id(chats[0].id)
        await self.load_messages()
        return self.chat_id

    async def change_chat(self, chat_id: str) -> List[schemas.Message]:
        self._set_chat_id(chat_id)
        return await self.load_messages()

    def start_new_chat(self) -> None:
        self.messages = []
        self._set_chat_id("")

    async def on_finish(self, user_input: str, answer: str) -> List[schemas.Message]:
        """Record one exchange once the assistant's answer is complete."""
        self.messages = [
            *self.messages,
            _local_message("user", user_input),
            _local_message("assistant", answer),
        ]
        if not self.authenticated:
            return self.messages

        exchange = [
            schemas.MessageIn(role="user", content=user_input),
            schemas.MessageIn(role="assistant", content=answer),
        ]
        chat_id = self.chat_id
        try:
            if chat_id:
                self.messages = await self.rpc.chat_add_messages(chat_id, exchange)
            else:
                chat = await self.rpc.chat_create(exchange)
                self._set_chat_id(chat.id)
                self.messages = list(chat.messages)
                await self.cache.invalidate(messages_key(chat.id))
        except RemoteError as exc:
            logger.warning("Could not store chat messages: %s", exc)
            self.notifier.error(exc.message)
        return self.messages

    async def save_recipe(
        self, content: str, message_id: Optional[str] = None
    ) -> Optional[schemas.Recipe]:
        if not content:
            return None
        extracted = extract_recipe(content)
        if not extracted.name:
            self.save_status = "error"
            self.notifier.error("Error: no recipe name found in the message.")
            return None

        self.save_status = "loading"
        try:
            # local-only messages have no server row to link
            linked = message_id if self.authenticated else None
            recipe = await self.rpc.recipe_create(extracted.to_create(linked))
        except RemoteError as exc:
            self.save_status = "error"
            self.notifier.error("Error: " + exc.message)
            return None

        await self.cache.invalidate_matching(
            lambda key: str(key[0]).startswith("recipe.")
        )
        if message_id:
            self.messages = [
                m.model_copy(update={"recipe_id": recipe.id}) if m.id == message_id else m
                for m in self.messages
            ]
        self.save_status = "success"
        self.notifier.success("Recipe saved successfully!")
        return recipe
