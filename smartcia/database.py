from pathlib import Path
from typing import Dict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from smartcia.config import DATABASE_URL

Base = declarative_base()

_ENGINE_CACHE: Dict[str, Engine] = {}


def get_engine(url: str = DATABASE_URL) -> Engine:
    """
    Returns a cached engine for the given URL.
    For sqlite files the parent directory is created first.
    """
    eng = _ENGINE_CACHE.get(url)
    if eng is None:
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            db_file = url.split("sqlite:///", 1)[-1]
            if db_file and db_file != url and db_file != ":memory:":
                Path(db_file).parent.mkdir(parents=True, exist_ok=True)
        eng = create_engine(url, connect_args=connect_args)
        _ENGINE_CACHE[url] = eng
    return eng


def get_session_local(url: str = DATABASE_URL) -> sessionmaker:
    from smartcia import models  # noqa: F401  registers tables on Base

    eng = get_engine(url)
    Base.metadata.create_all(bind=eng)
    return sessionmaker(autocommit=False, autoflush=False, bind=eng)
