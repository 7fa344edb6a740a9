"""Operator commands: create tables, mint secrets, issue session tokens."""
import argparse
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger
from sqlalchemy import select

from auth import generate_secret, issue_session
from config import get_settings
from db.database import create_db_engine, get_session_factory, init_db
from db.models import User
from db.workspace import ensure_user_has_workspace


def init_db_command(args: argparse.Namespace) -> int:
    settings = get_settings()
    init_db(create_db_engine(settings.database_url))
    logger.info(f"Database initialized at {settings.database_url}")
    print("Database tables created")
    return 0


def generate_secret_command(args: argparse.Namespace) -> int:
    print(generate_secret())
    return 0


def issue_session_command(args: argparse.Namespace) -> int:
    settings = get_settings()
    db = get_session_factory()()
    try:
        user = db.execute(select(User).where(User.email == args.email)).scalar_one_or_none()
        if user is None:
            user = User(email=args.email, name=args.name)
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"Created user {user.email}")

        workspace = ensure_user_has_workspace(db, user)
        token = issue_session(db, user, settings)
    finally:
        db.close()

    print(f"workspace: {workspace.slug} ({workspace.role.value})")
    print(f"session_token: {token}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voice-contacts", description="Voice contact capture admin")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init-db", help="Create database tables")
    init.set_defaults(func=init_db_command)

    secret = subparsers.add_parser("generate-secret", help="Print a random SESSION_SECRET value")
    secret.set_defaults(func=generate_secret_command)

    session = subparsers.add_parser("issue-session", help="Create a session token for a user")
    session.add_argument("--email", required=True)
    session.add_argument("--name", default=None)
    session.set_defaults(func=issue_session_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
