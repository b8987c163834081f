"""
=============================================================================
PORTFOLIO API CLI
=============================================================================

    python -m portfolioapi serve                     # run on 127.0.0.1:8080
    python -m portfolioapi serve --host 0.0.0.0 --port 3000 --workers 8
    python -m portfolioapi init-db                   # create missing tables
    python -m portfolioapi create-admin alice alice@example.com
    python -m portfolioapi hash-password             # print a PBKDF2 hash

Every subcommand starts from AppConfig.from_env(); command-line flags
override the environment.
=============================================================================
"""

import argparse
import getpass
import logging
import sys
from typing import List, Optional

from . import __version__
from .app import create_app
from .config import AppConfig
from .data import AdminRepository, Database
from .errors import ConfigurationError, DataAccessError
from .server import HTTPServer, configure_logging
from .services import PasswordHasher


logger = logging.getLogger("portfolioapi")

MIN_PASSWORD_LENGTH = 8


def _prompt_password() -> str:
    password = getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise SystemExit(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password != getpass.getpass("Repeat password: "):
        raise SystemExit("Passwords do not match")
    return password


# ─────────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────────

def cmd_serve(config: AppConfig, args: argparse.Namespace) -> int:
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.workers:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.log_level:
        config.log_level = args.log_level
    if args.debug:
        config.debug = True

    configure_logging(config)
    app = create_app(config)
    HTTPServer(app).run()
    return 0


def cmd_init_db(config: AppConfig, args: argparse.Namespace) -> int:
    configure_logging(config)
    database = Database.from_config(config)
    try:
        database.create_schema()
    finally:
        database.dispose()
    print(f"Schema ready at {database.engine.url.render_as_string(hide_password=True)}")
    return 0


def cmd_create_admin(config: AppConfig, args: argparse.Namespace) -> int:
    configure_logging(config)
    database = Database.from_config(config)
    try:
        database.create_schema()
        admins = AdminRepository(database)
        if admins.find_by_username(args.username):
            print(f"Admin {args.username!r} already exists", file=sys.stderr)
            return 1
        hasher = PasswordHasher(iterations=config.password_iterations)
        admin_id = admins.create_admin(args.username, args.email, hasher.hash(_prompt_password()))
    finally:
        database.dispose()
    print(f"Created admin {args.username!r} (id {admin_id})")
    return 0


def cmd_hash_password(config: AppConfig, args: argparse.Namespace) -> int:
    print(PasswordHasher(iterations=config.password_iterations).hash(_prompt_password()))
    return 0


# ─────────────────────────────────────────────────────────────────────────
# ARGUMENTS
# ─────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portfolioapi",
        description="Portfolio content API server and maintenance commands",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    subcommands = parser.add_subparsers(dest="command", required=True)

    serve = subcommands.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", "-H", help="Host to bind to (0.0.0.0 for containers)")
    serve.add_argument("--port", "-p", type=int, help="Port to listen on")
    serve.add_argument("--workers", "-w", type=int, help="Maximum worker threads")
    serve.add_argument("--log-level", "-l", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                       help="Logging level")
    serve.add_argument("--debug", action="store_true", help="Include exception text in 500 responses")
    serve.set_defaults(func=cmd_serve)

    init_db = subcommands.add_parser("init-db", help="Create missing database tables")
    init_db.set_defaults(func=cmd_init_db)

    create_admin = subcommands.add_parser("create-admin", help="Create an admin account")
    create_admin.add_argument("username")
    create_admin.add_argument("email")
    create_admin.set_defaults(func=cmd_create_admin)

    hash_password = subcommands.add_parser("hash-password", help="Print a password hash")
    hash_password.set_defaults(func=cmd_hash_password)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = AppConfig.from_env()
        return args.func(config, args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except DataAccessError as e:
        print(f"Database error: {e.detail or e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
