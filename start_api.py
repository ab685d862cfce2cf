#!/usr/bin/env python3
"""
Run migrations (same process, same DATABASE_URL), then seed, then uvicorn.
Ensures tables exist before seed and app start.
"""
import os
import sys

# 1) Run migrations using the same settings as the app
from quickcourt.core.config import settings
from quickcourt.core.logging import setup_logging
from alembic.config import Config
from alembic import command

setup_logging()

alembic_cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
command.upgrade(alembic_cfg, "head")

# 2) Seed using an engine created *after* migrations (avoids app engine created during Alembic env load)
from quickcourt.db.session import make_engine, make_session_factory
seed_engine = make_engine(settings.DATABASE_URL)
SeedSession = make_session_factory(seed_engine)
from quickcourt.seed import run as run_seed
run_seed(SeedSession())
seed_engine.dispose()

# 3) Start uvicorn (replace current process)
os.execv(
    sys.executable,
    [sys.executable, "-m", "uvicorn", "quickcourt.main:app", "--host", "0.0.0.0", "--port", "8000"],
)
