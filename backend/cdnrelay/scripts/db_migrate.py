import subprocess
import sys

from sqlalchemy import create_engine, inspect

from cdnrelay.core.config import settings


def main():
    sync_url = settings.DATABASE_URL.replace("+aiosqlite", "")
    engine = create_engine(sync_url)
    insp = inspect(engine)

    has_alembic = insp.has_table("alembic_version")
    has_files = insp.has_table("files")
    engine.dispose()

    # Tables created by the app's create_all() predate alembic tracking.
    if has_files and not has_alembic:
        print("[db-migrate] Existing files table without alembic_version → stamping head")
        subprocess.run(["alembic", "stamp", "head"], check=True)
    else:
        print(f"[db-migrate] has_alembic={has_alembic}, has_files={has_files}")

    subprocess.run(["alembic", "upgrade", "head"], check=True)


if __name__ == "__main__":
    try:
        main()
    except subprocess.CalledProcessError as e:
        print(f"[db-migrate] Alembic command failed: {e}", file=sys.stderr)
        sys.exit(e.returncode)
    except Exception as e:
        print(f"[db-migrate] Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)
