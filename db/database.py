# db/database.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from utils.config import config


def make_engine(url: str, echo: bool = False, **kwargs):
    if url.startswith("sqlite"):
        # Sessions are used from FastAPI worker threads and the ingestion background task
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=echo, **kwargs)


def make_session_factory(bind):
    # expire_on_commit=False so rows returned by the stores stay readable after close
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine(config.database.url, echo=config.database.echo)

SessionLocal = make_session_factory(engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables that do not exist yet."""
    import db.models  # noqa: F401  (registers the mappers on Base)

    Base.metadata.create_all(bind=bind or engine)
