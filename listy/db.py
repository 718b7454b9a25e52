from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import get_config


DATABASE_URL = get_config().database_url

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    # models must be imported so their tables are registered on Base
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
