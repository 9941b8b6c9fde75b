from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context

from app.core.base import Base
from app.core.config import settings

# Registers the tables on Base.metadata for autogenerate.
from app.models.checkout_event import CheckoutEvent  # noqa: F401
from app.models.payment_log import PaymentLog  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DDL runs as the migrator role when configured, else as the app role / DATABASE_URL.
if settings.DB_MIGRATOR_USER and settings.DB_MIGRATOR_PASSWORD:
    migrations_url = settings.migrations_database_url
else:
    migrations_url = settings.database_url

# "%" is an interpolation marker in the ini parser.
config.set_main_option("sqlalchemy.url", migrations_url.replace("%", "%%"))

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit checkout/payment-log DDL as SQL script output."""
    context.configure(
        url=migrations_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(migrations_url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
