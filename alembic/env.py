from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from chatter_bonus.db import DATABASE_URL, Base
from chatter_bonus.models.bonus_award import BonusAward  # noqa: F401
from chatter_bonus.models.bonus_progress import BonusProgress  # noqa: F401
from chatter_bonus.models.bonus_rule import BonusRule  # noqa: F401
from chatter_bonus.models.earnings_event import EarningsEvent  # noqa: F401
from chatter_bonus.models.shift import Shift  # noqa: F401
from chatter_bonus.models.worker import Worker  # noqa: F401


config = context.config
config.set_main_option("sqlalchemy.url", DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
