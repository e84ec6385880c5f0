#!/usr/bin/env python
# scripts/manage_db.py

"""
Database management CLI for the Deploy Service.
"""
import argparse
import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

# --- Path Setup ---
service_dir = Path(__file__).parent.parent.absolute()
sys.path.insert(0, str(service_dir / "src"))

from dotenv import load_dotenv

# --- Logging and Helpers ---
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("manage_db")


def colored(text: str, color: str) -> str:
    """Applies ANSI color codes to text for better terminal output."""
    colors = {
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "reset": "\033[0m",
    }
    return f"{colors.get(color, '')}{text}{colors['reset']}"


def run_command(command: str, check: bool = True):
    logger.info(colored(f"--- Running: {command} ---", "yellow"))
    try:
        result = subprocess.run(
            command,
            shell=True,
            check=check,
            text=True,
            capture_output=True,
            cwd=service_dir,
        )
        if result.stdout:
            print(result.stdout)
        if result.stderr:
            # Alembic prints its progress on stderr.
            print(colored(result.stderr, "yellow"), file=sys.stderr)
        return result
    except subprocess.CalledProcessError as e:
        logger.error(colored(f"Command failed with exit code {e.returncode}", "red"))
        if e.stdout:
            print(e.stdout)
        if e.stderr:
            print(colored(e.stderr, "red"), file=sys.stderr)
        raise


def get_db_params_from_url(db_url: str) -> Optional[Dict]:
    """Connection parameters for PostgreSQL URLs, None for anything else."""
    parsed = urlparse(str(db_url))
    if not parsed.scheme.startswith("postgresql"):
        return None
    return {
        "user": parsed.username or "postgres",
        "password": parsed.password or "postgres",
        "host": parsed.hostname or "localhost",
        "port": parsed.port or 5432,
        "dbname": parsed.path.lstrip("/"),
    }


def create_db(db_params: Dict):
    """Creates the service database if it doesn't exist."""
    db_name = db_params["dbname"]
    logger.info(
        f"Ensuring database '{db_name}' exists on host '{db_params['host']}'..."
    )
    conn_str_admin = f"postgresql://{db_params['user']}:{db_params['password']}@{db_params['host']}:{db_params['port']}/postgres"
    # Fails harmlessly when the database already exists.
    run_command(f'psql "{conn_str_admin}" -c "CREATE DATABASE {db_name}"', check=False)
    logger.info(colored(f"Database '{db_name}' created or already exists.", "green"))


async def create_tables():
    """Creates all tables straight from the models, bypassing migrations."""
    from deploy_service.db import dispose_engine, init_models

    await init_models()
    await dispose_engine()
    logger.info(colored("All tables created.", "green"))


def init_service(db_params: Optional[Dict]):
    """Create the database when needed and apply every migration."""
    if db_params:
        create_db(db_params)
    run_command("alembic upgrade head")
    logger.info(colored("Deploy service database initialized.", "green"))


async def main():
    dotenv_path = service_dir / ".env.dev"
    if dotenv_path.exists():
        logger.info(f"Loading environment variables from {dotenv_path}")
        load_dotenv(dotenv_path=dotenv_path, override=True)
    else:
        logger.warning(
            f"{dotenv_path} not found. Relying on shell environment variables."
        )

    from deploy_service.config import settings

    parser = argparse.ArgumentParser(
        description=f"{settings.PROJECT_NAME} Database Management Tool"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser(
        "init", help="Creates the database if needed and applies all migrations."
    )
    create_mig_parser = subparsers.add_parser(
        "create-migration", help="Create a new Alembic migration file."
    )
    create_mig_parser.add_argument(
        "-m", "--message", required=True, help="Migration description."
    )
    subparsers.add_parser(
        "upgrade", help="Apply all pending migrations to the database."
    )
    downgrade_parser = subparsers.add_parser(
        "downgrade", help="Downgrade migrations by a number of steps."
    )
    downgrade_parser.add_argument(
        "-s",
        "--step",
        type=int,
        default=1,
        help="Number of steps to downgrade (default: 1).",
    )
    subparsers.add_parser(
        "verify", help="Verify that the DB schema matches the SQLAlchemy models."
    )
    subparsers.add_parser(
        "create-tables", help="Create tables from the models without Alembic."
    )

    args = parser.parse_args()

    db_params = get_db_params_from_url(settings.DATABASE_URL)
    if db_params:
        # Used by psql.
        os.environ["PGPASSWORD"] = db_params["password"]

    try:
        if args.command == "init":
            init_service(db_params)
        elif args.command == "create-migration":
            run_command(f'alembic revision --autogenerate -m "{args.message}"')
        elif args.command == "upgrade":
            run_command("alembic upgrade head")
        elif args.command == "downgrade":
            run_command(f"alembic downgrade -{args.step}")
        elif args.command == "verify":
            run_command("alembic check")
        elif args.command == "create-tables":
            await create_tables()

        print(colored("\nOperation completed successfully.", "green"))

    except Exception as e:
        logger.error(colored(f"\nOperation failed: {e}", "red"), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
