"""
Database configuration and session management
"""

from sqlmodel import Session, create_engine

from update_manager.core.config import get_settings

settings = get_settings()


def build_engine(url: str, echo: bool = False):
    """Create a SQLAlchemy engine for the given URL"""
    connect_args = {}
    if url.startswith("sqlite"):
        # Requests are served from a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=echo, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session():
    """Dependency to get database session"""
    with Session(engine) as session:
        yield session
