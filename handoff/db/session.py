import os
from typing import Any, Callable, ContextManager, Generator

from sqlmodel import Session, SQLModel, create_engine

import handoff.db.base  # noqa: F401
from handoff.core.config import settings
from handoff.core.logging_setup import logger
from handoff.realtime import change_feed
from handoff.realtime.capture import install_change_capture

connect_args: dict[str, Any] = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False
elif settings.database_url.startswith("postgresql"):
    client_encoding = os.getenv("POSTGRES_CLIENT_ENCODING", "UTF8")
    connect_args["options"] = f"-c client_encoding={client_encoding}"

engine = create_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
    connect_args=connect_args,
)

install_change_capture(change_feed)

SessionFactory = Callable[[], ContextManager[Session]]


def init_db() -> None:
    SQLModel.metadata.create_all(bind=engine)
    logger.info("Database schema ready (%s)", engine.url.get_backend_name())


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def open_session() -> Session:
    """Session factory used outside request scope (live session controllers)."""
    return Session(engine)
