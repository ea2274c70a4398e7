"""FastAPI dependency injection providers."""

from .config import RouteGridConfig, get_config
from .database import get_session_factory
from .engine.row_store import SqlRowStore

_config_instance: RouteGridConfig | None = None
_row_store: SqlRowStore | None = None


def get_app_config() -> RouteGridConfig:
    """Get the application config singleton."""
    global _config_instance
    if _config_instance is None:
        _config_instance = get_config()
    return _config_instance


def get_row_store() -> SqlRowStore:
    """Get the SQL row store singleton bound to the app's session factory."""
    global _row_store
    if _row_store is None:
        config = get_app_config()
        _row_store = SqlRowStore(
            db_session_factory=get_session_factory(config),
            depot_location=config.depot_location,
        )
    return _row_store
