"""Database URL resolution utilities."""
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def resolve_db_url(db_url: str) -> str:
    """
    Resolve relative SQLite database URLs to absolute paths.
    sqlite:///./dev.db is resolved against the project root (where alembic.ini lives);
    non-sqlite and absolute URLs are returned unchanged.
    """
    if not db_url.startswith("sqlite") or ":///./" not in db_url:
        return db_url

    prefix, relative_path = db_url.split(":///./", 1)
    absolute_path = (PROJECT_ROOT / relative_path).resolve()
    return f"{prefix}:///{absolute_path.as_posix()}"
