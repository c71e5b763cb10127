import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

from app.config import settings
from app.database import Base
from app.models import Branch, Tenant, User  # noqa: F401


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Tenants, branches and users
target_metadata = Base.metadata


def get_url() -> str:
    """`alembic -x database_url=...` wins over DATABASE_URL."""
    return context.get_x_argument(as_dictionary=True).get("database_url") or settings.database_url


def migration_options(url: str) -> dict:
    # SQLite cannot ALTER constraints in place
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def do_run_migrations(connection: Connection, url: str) -> None:
    context.configure(connection=connection, **migration_options(url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations against a live database through the async driver."""
    url = get_url()
    connectable = create_async_engine(url, poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations, url)

    await connectable.dispose()


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **migration_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
