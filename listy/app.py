# flake8: noqa

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from . import crud, schemas
from .config import configure_logging, get_config
from .db import SessionLocal, init_db

logger = logging.getLogger(__name__)

CONFIG = get_config()
configure_logging(CONFIG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize DB once at startup
    init_db()
    yield


app = FastAPI(title="Listy", lifespan=lifespan)

upload_dir = Path(CONFIG.upload_dir)
upload_dir.mkdir(parents=True, exist_ok=True)
app.mount(CONFIG.upload_url_prefix, StaticFiles(directory=str(upload_dir)), name="uploads")

# Allow CORS for API clients (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(crud.NotFound)
async def not_found_handler(request: Request, exc: crud.NotFound):
    logger.info("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(crud.UserExists)
async def conflict_handler(request: Request, exc: crud.UserExists):
    logger.info("Signup conflict: %s", exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    x_user: Optional[str] = Header(None), db: Session = Depends(get_db)
):
    username = x_user or CONFIG.default_user
    return crud.get_or_create_user(db, username)


def _list_out(db: Session, user) -> schemas.GroceryList:
    return schemas.GroceryList.model_validate(crud.get_list(db, user))


# auth


@app.post("/api/auth/signup", response_model=schemas.User)
def sign_up(data: schemas.SignUp, db: Session = Depends(get_db)):
    return schemas.User.model_validate(crud.sign_up(db, data))


# list


@app.get("/api/list", response_model=schemas.GroceryList)
def list_by_user_id(user=Depends(get_current_user), db: Session = Depends(get_db)):
    return _list_out(db, user)


@app.post("/api/list/add", response_model=schemas.Ingredient)
def list_add(
    data: schemas.ListAdd,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return schemas.Ingredient.model_validate(
        crud.add_to_list(db, user, data.new_ingredient_name)
    )


@app.post("/api/list/clear")
def list_clear(
    items: List[schemas.IngredientRef],
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = crud.clear_list(db, user, [i.id for i in items])
    return {"deleted": deleted}


@app.post("/api/list/check", response_model=schemas.Ingredient)
def list_check(
    data: schemas.ListCheck,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return schemas.Ingredient.model_validate(
        crud.check_ingredient(db, user, data.id, data.checked)
    )


@app.post("/api/list/check-many", response_model=List[schemas.Ingredient])
def list_check_many(
    items: List[schemas.ListCheck],
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changed = crud.check_many(db, user, items)
    return [schemas.Ingredient.model_validate(i) for i in changed]


@app.post("/api/list/upsert", response_model=List[schemas.Ingredient])
def list_upsert(
    items: List[schemas.ListUpsertItem],
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    added = crud.upsert_list(db, user, items)
    return [schemas.Ingredient.model_validate(i) for i in added]


# recipes


@app.get("/api/recipes", response_model=List[schemas.RecipeSummary])
def list_recipes(
    ids: Optional[List[str]] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    if ids:
        recipes = crud.get_recipes_by_ids(db, ids)
    else:
        recipes = crud.get_recipes(db, skip=skip, limit=limit)
    return [schemas.RecipeSummary.model_validate(r) for r in recipes]


@app.post("/api/recipes", response_model=schemas.Recipe)
def create_recipe(
    recipe: schemas.RecipeCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return schemas.Recipe.model_validate(crud.create_recipe(db, user, recipe))


@app.get("/api/recipes/{recipe_id}", response_model=schemas.Recipe)
def recipe_by_id(recipe_id: str, db: Session = Depends(get_db)):
    r = crud.get_recipe(db, recipe_id)
    if not r:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return schemas.Recipe.model_validate(r)


@app.put("/api/recipes/{recipe_id}/img-url", response_model=schemas.Recipe)
def update_img_url(
    recipe_id: str, data: schemas.ImgUrlUpdate, db: Session = Depends(get_db)
):
    return schemas.Recipe.model_validate(
        crud.update_img_url(db, recipe_id, data.img_url)
    )


@app.put("/api/recipes/{recipe_id}/notes", response_model=schemas.Recipe)
def add_notes(recipe_id: str, data: schemas.NotesUpdate, db: Session = Depends(get_db)):
    return schemas.Recipe.model_validate(crud.add_notes(db, recipe_id, data.notes))


# chats


@app.get("/api/chats", response_model=List[schemas.Chat])
def get_chats(user=Depends(get_current_user), db: Session = Depends(get_db)):
    return [schemas.Chat.model_validate(c) for c in crud.get_chats(db, user)]


@app.post("/api/chats", response_model=schemas.Chat)
def create_chat(
    data: schemas.MessagesAdd,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return schemas.Chat.model_validate(crud.create_chat(db, user, data.messages))


@app.get("/api/chats/{chat_id}/messages", response_model=schemas.Chat)
def get_messages_by_chat_id(
    chat_id: str, user=Depends(get_current_user), db: Session = Depends(get_db)
):
    return schemas.Chat.model_validate(crud.get_chat(db, user, chat_id))


@app.post("/api/chats/{chat_id}/messages", response_model=List[schemas.Message])
def add_messages(
    chat_id: str,
    data: schemas.MessagesAdd,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    db_chat = crud.add_messages(db, user, chat_id, data.messages)
    return [schemas.Message.model_validate(m) for m in db_chat.messages]


# uploads


@app.post("/api/upload", response_model=schemas.UploadResult)
async def upload(request: Request, filename: str = Query(..., min_length=1)):
    name = Path(filename).name
    if not name or name in (".", ".."):
        raise HTTPException(status_code=400, detail="Invalid filename")
    body = await request.body()
    if not body:
        raise HTTPException(status_code=400, detail="Empty upload")
    if len(body) > CONFIG.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")

    # keep earlier uploads with the same name
    target = upload_dir / name
    stem, suffix, n = target.stem, target.suffix, 1
    while target.exists():
        target = upload_dir / f"{stem}-{n}{suffix}"
        n += 1
    target.write_bytes(body)
    logger.debug("Stored upload %s (%d bytes)", target.name, len(body))

    pathname = f"{CONFIG.upload_url_prefix.rstrip('/')}/{target.name}"
    return schemas.UploadResult(
        url=str(request.base_url).rstrip("/") + pathname,
        pathname=pathname,
        size=len(body),
    )
