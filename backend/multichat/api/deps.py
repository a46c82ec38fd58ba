from collections.abc import Generator

from fastapi import Header
from sqlalchemy.orm import Session

from multichat.core.container import get_container
from multichat.db.session import get_sessionmaker
from multichat.middleware.error_handler import ServiceError
from multichat.providers.registry import ProviderRegistry
from multichat.schemas.chat import User


def get_db() -> Generator[Session, None, None]:
    session_factory = get_sessionmaker()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_registry() -> ProviderRegistry:
    container = get_container()
    if container is None:
        raise RuntimeError("AppContainer is not initialized")
    return container.registry


def get_current_user(
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> User:
    """Identity forwarded by the authenticating proxy in front of the API."""
    if not x_user_email:
        raise ServiceError("Missing X-User-Email header")
    return User(name=x_user_name, email=x_user_email)
