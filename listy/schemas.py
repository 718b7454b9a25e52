from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

MIN_INGREDIENT_CHARS = 3
MAX_INGREDIENT_CHARS = 50
MIN_PASSWORD_CHARS = 6
MAX_PASSWORD_CHARS = 20


class Ingredient(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    list_id: Optional[str] = None
    recipe_id: Optional[str] = None
    name: str = Field(..., json_schema_extra={"example": "flour"})
    checked: bool = False


class GroceryList(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ingredients: List[Ingredient] = Field(default_factory=list)


class ListAdd(BaseModel):
    new_ingredient_name: str = Field(
        ...,
        min_length=MIN_INGREDIENT_CHARS,
        max_length=MAX_INGREDIENT_CHARS,
        json_schema_extra={"example": "Eggs"},
    )


class IngredientRef(BaseModel):
    id: str


class ListCheck(BaseModel):
    id: str
    checked: bool


class ListUpsertItem(BaseModel):
    name: str = Field(..., min_length=1)
    recipe_id: Optional[str] = None


class Instruction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    step: int
    description: str


class RecipeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class Recipe(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str = ""
    img_url: Optional[str] = None
    address: Optional[str] = None
    author: Optional[str] = None
    notes: Optional[str] = None
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    instructions: List[Instruction] = Field(default_factory=list)
    ingredients: List[Ingredient] = Field(default_factory=list)


class RecipeCreate(BaseModel):
    name: str = Field(
        ..., min_length=1, json_schema_extra={"example": "Simple Pancakes"}
    )
    description: str = ""
    prep_time: Optional[str] = None
    cook_time: Optional[str] = None
    img_url: Optional[str] = None
    address: Optional[str] = None
    author: Optional[str] = None
    notes: Optional[str] = None
    ingredients: List[str] = Field(
        default_factory=list,
        json_schema_extra={"example": ["flour", "milk", "egg"]},
    )
    instructions: List[str] = Field(
        default_factory=list,
        json_schema_extra={
            "example": [
                "Mix dry ingredients",
                "Add wet ingredients",
                "Cook on skillet until golden",
            ]
        },
    )
    # chat message the recipe was extracted from
    message_id: Optional[str] = None


class ImgUrlUpdate(BaseModel):
    img_url: str = Field(..., min_length=1)


class NotesUpdate(BaseModel):
    notes: str = Field(..., min_length=1)


class MessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    recipe_id: Optional[str] = None


class Message(MessageIn):
    model_config = ConfigDict(from_attributes=True)

    id: str


class MessagesAdd(BaseModel):
    messages: List[MessageIn] = Field(..., min_length=1)


class Chat(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    messages: List[Message] = Field(default_factory=list)


class SignUp(BaseModel):
    email: EmailStr
    password: str = Field(
        ..., min_length=MIN_PASSWORD_CHARS, max_length=MAX_PASSWORD_CHARS
    )


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str


class UploadResult(BaseModel):
    url: str
    pathname: str
    size: int
