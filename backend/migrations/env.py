"""
Alembic environment for the campaign outreach schema.

The app talks to Postgres through asyncpg; migrations run synchronously
through psycopg2 against the same DATABASE_URL. Autogenerate compares
against the campaign_outreach ORM models (seven tables).
"""
import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context
from dotenv import load_dotenv

load_dotenv()

# backend/ on the path so `app` imports resolve when alembic runs from backend/
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.shared.db.base import Base, to_sync_url
from app.modules.campaign_outreach.models import (  # noqa: F401
    Lead,
    Campaign,
    Sequence,
    SequenceVariant,
    CampaignLead,
    ApprovalQueueItem,
    AutomationLog,
)

config = context.config

DATABASE_URL = os.environ.get("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set!")
config.set_main_option("sqlalchemy.url", to_sync_url(DATABASE_URL))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the SQL for review instead of executing it (`alembic upgrade head --sql`)."""
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
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # status / step_type columns are plain strings; catch length changes
            compare_type=True,
            # delay_days, weight, current_step defaults live in the database too
            compare_server_default=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
