import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, create_engine

from quickcourt.core.config import settings
from quickcourt.db.session import Base

# Import all models so Alembic sees them in metadata
from quickcourt.models.facility import Facility, FacilityOperatingHours  # noqa: F401
from quickcourt.models.court import Court, CourtDayAvailability, MaintenanceSchedule  # noqa: F401
from quickcourt.models.court_day_ledger import CourtDayLedger  # noqa: F401
from quickcourt.models.booking import Booking  # noqa: F401
from quickcourt.models.audit_log import AuditLog  # noqa: F401


# Alembic Config object
config = context.config

# Force sqlalchemy.url from real runtime DATABASE_URL
db_url = getattr(settings, "DATABASE_URL", None) or os.getenv("DATABASE_URL")
if not db_url:
    raise RuntimeError("DATABASE_URL is not set (check .env / quickcourt.core.config.settings)")

config.set_main_option("sqlalchemy.url", db_url)

# Logging config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Target metadata for autogenerate
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")

    # Do NOT use engine_from_config here: alembic.ini's sqlalchemy.url is a
    # placeholder and the runtime DATABASE_URL wins.
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
