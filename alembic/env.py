import logging
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import make_url

from couponhub.core.config import get_settings
from couponhub.db.base import Base
from couponhub.db.session import build_engine
from couponhub import models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)
logger = logging.getLogger("alembic.env")


def _resolve_sqlalchemy_url() -> tuple[str, str]:
    explicit_url = config.attributes.get("connection_url")
    if explicit_url:
        return str(explicit_url), "config.attributes.connection_url"

    postgres_dsn = os.getenv("POSTGRES_DSN", "").strip()
    if postgres_dsn:
        return postgres_dsn, "env.POSTGRES_DSN"

    configured = config.get_main_option("sqlalchemy.url")
    if configured:
        return configured, "alembic.ini sqlalchemy.url"

    return get_settings().postgres_dsn, "settings.postgres_dsn"


resolved_url, url_source = _resolve_sqlalchemy_url()
config.set_main_option("sqlalchemy.url", resolved_url)
logger.info(
    "sqlalchemy.url source=%s url=%s",
    url_source,
    make_url(resolved_url).render_as_string(hide_password=True),
)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Same engine setup as the app, so SQLite enforces the FK cascades the schema declares.
    connectable = build_engine(config.get_main_option("sqlalchemy.url"), app_env=get_settings().app_env)
    try:
        with connectable.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=connection.dialect.name == "sqlite",
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
