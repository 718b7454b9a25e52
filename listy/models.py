import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .db import Base


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(String(32), primary_key=True, default=new_id)
    username = Column(String(200), unique=True, index=True, nullable=False)
    password = Column(String(200), nullable=True)  # bcrypt hash

    list = relationship(
        "GroceryList", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    chats = relationship("Chat", back_populates="user", cascade="all, delete-orphan")


class GroceryList(Base):
    __tablename__ = "lists"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), unique=True, nullable=False)

    user = relationship("User", back_populates="list")
    ingredients = relationship(
        "Ingredient", back_populates="list", cascade="all, delete-orphan"
    )


class Recipe(Base):
    __tablename__ = "recipes"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(200), index=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    img_url = Column(String(500), nullable=True)
    address = Column(String(500), nullable=True)
    author = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    prep_time = Column(String(100), nullable=True)
    cook_time = Column(String(100), nullable=True)

    instructions = relationship(
        "Instruction",
        back_populates="recipe",
        order_by="Instruction.step",
        cascade="all, delete-orphan",
    )
    # list copies also point back at their recipe, keep them out of here
    ingredients = relationship(
        "Ingredient",
        primaryjoin="and_(Recipe.id == Ingredient.recipe_id, Ingredient.list_id.is_(None))",
        order_by="Ingredient.position",
        viewonly=True,
    )


class Instruction(Base):
    __tablename__ = "instructions"
    id = Column(Integer, primary_key=True, index=True)
    recipe_id = Column(String(32), ForeignKey("recipes.id"), nullable=False, index=True)
    step = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)

    recipe = relationship("Recipe", back_populates="instructions")


class Ingredient(Base):
    __tablename__ = "ingredients"
    id = Column(String(32), primary_key=True, default=new_id)
    # null while the row only describes a recipe ingredient
    list_id = Column(String(32), ForeignKey("lists.id"), nullable=True, index=True)
    recipe_id = Column(String(32), ForeignKey("recipes.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    checked = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)

    list = relationship("GroceryList", back_populates="ingredients")


class Chat(Base):
    __tablename__ = "chats"
    id = Column(String(32), primary_key=True, default=new_id)
    user_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="chats")
    messages = relationship(
        "Message",
        back_populates="chat",
        order_by="Message.position",
        cascade="all, delete-orphan",
    )


class Message(Base):
    __tablename__ = "messages"
    id = Column(String(32), primary_key=True, default=new_id)
    chat_id = Column(String(32), ForeignKey("chats.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    recipe_id = Column(String(32), ForeignKey("recipes.id"), nullable=True)

    chat = relationship("Chat", back_populates="messages")
