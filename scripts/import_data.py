import json
import logging
import sys
from pathlib import Path

from sqlalchemy.orm import Session

from listy import crud, models, schemas
from listy.config import configure_logging, get_config
from listy.db import SessionLocal, init_db

logger = logging.getLogger(__name__)


def import_recipes(db: Session, data) -> int:
    """Create every recipe in ``data`` whose name is not stored yet."""
    added = 0
    for r in data:
        name = r.get('name')
        if not name:
            continue
        exists = (
            db.query(models.Recipe)
            .filter(models.Recipe.name == name)
            .first()
        )
        if exists:
            continue
        crud.create_recipe(
            db,
            None,
            schemas.RecipeCreate(
                name=name,
                description=r.get('description', ''),
                prep_time=r.get('prep_time'),
                cook_time=r.get('cook_time'),
                author=r.get('author'),
                ingredients=r.get('ingredients', []),
                instructions=r.get('instructions', r.get('steps', [])),
            ),
        )
        added += 1
    return added


def main():
    configure_logging(get_config())
    init_db()
    default = Path(__file__).resolve().parents[1] / 'data' / 'recipes.json'
    p = Path(sys.argv[1]) if len(sys.argv) > 1 else default
    if not p.exists():
        logger.error('%s not found', p)
        return
    data = json.loads(p.read_text(encoding='utf-8'))
    db = SessionLocal()
    try:
        added = import_recipes(db, data)
    finally:
        db.close()
    logger.info('Imported %d recipes', added)


if __name__ == '__main__':
    main()
