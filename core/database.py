"""
Source database engine management with SQLAlchemy async
"""

from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.pool import NullPool
from core.config import settings
from schemas.export_config import ExportConfig
import logging

logger = logging.getLogger(__name__)


def build_connection_url(config: ExportConfig) -> URL:
    """Compose the connection URL, applying driver and credential overrides"""
    url = make_url(config.connection_url)

    if config.driver:
        url = url.set(drivername=config.driver)
    if config.username is not None:
        url = url.set(username=config.username)
    if config.password is not None:
        url = url.set(password=config.password)

    return url


def masked_url(config: ExportConfig) -> str:
    """Connection URL safe for logs and schema docs"""
    return build_connection_url(config).render_as_string(hide_password=True)


def create_export_engine(config: ExportConfig) -> AsyncEngine:
    """
    Create the engine shared by the prober and every partition unit.

    NullPool hands out a fresh connection on every connect, so each
    partition unit reads over its own connection.
    """
    logger.info(f"Creating engine for {masked_url(config)}")
    return create_async_engine(
        build_connection_url(config),
        echo=settings.DATABASE_ECHO,
        poolclass=NullPool,
    )
