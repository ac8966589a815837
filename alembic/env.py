import sys
from pathlib import Path
from logging.config import fileConfig
from urllib.parse import urlparse, urlunparse

from alembic import context
from sqlalchemy import engine_from_config, pool

# Ensure project root on sys.path
THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = THIS_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

# Load settings & models
from codejudge.core.config import get_settings
from codejudge.db.base import Base
# Ensure all models are imported so Base.metadata is populated
import codejudge.db.models  # noqa: F401

settings = get_settings()


def _sanitize(url: str) -> str:
    if not url:
        return url
    p = urlparse(url)
    # hide password
    if p.password:
        auth = p.username + ":***@" if p.username else "***@"
    elif p.username:
        auth = p.username + "@"
    else:
        auth = ""
    hostport = p.hostname or ""
    if p.port:
        hostport += f":{p.port}"
    return urlunparse(p._replace(netloc=auth + hostport))


MIGRATIONS_URL = settings.database_url
if not MIGRATIONS_URL:
    raise RuntimeError("No DATABASE_URL configured.")

config = context.config
# Inject URL dynamically (avoid secrets in ini)
config.set_main_option("sqlalchemy.url", MIGRATIONS_URL.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=MIGRATIONS_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    section = config.get_section(config.config_ini_section, {}).copy()
    section["sqlalchemy.url"] = MIGRATIONS_URL
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    print(f"[alembic.env] migrating {_sanitize(MIGRATIONS_URL)}")
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
