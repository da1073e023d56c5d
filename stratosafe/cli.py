"""
Administrative commands. Nothing here is reachable over HTTP.

Usage:
    stratosafe-admin init-db
    stratosafe-admin current-code --email user@example.com
"""
import argparse
import asyncio
import sys

from stratosafe.core.config import get_settings
from stratosafe.core.db import create_schema, make_engine, make_sessionmaker
from stratosafe.models.mfa import MfaDisabled
from stratosafe.services.credentials import CredentialStore
from stratosafe.services.totp import TotpEngine


async def init_db() -> int:
    engine = make_engine(get_settings())
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()
    print("Schema created")
    return 0


async def current_code(email: str) -> int:
    settings = get_settings()
    engine = make_engine(settings)
    try:
        async with make_sessionmaker(engine)() as session:
            user = await CredentialStore(session).find_by_email(email)
    finally:
        await engine.dispose()

    if user is None:
        print(f"No account for {email}", file=sys.stderr)
        return 1
    state = user.mfa_state
    if isinstance(state, MfaDisabled):
        print(f"MFA has not been set up for {email}", file=sys.stderr)
        return 1
    print(TotpEngine.from_settings(settings).current_code(state.secret))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="stratosafe-admin", description="StratoSafe admin tools")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    code = sub.add_parser("current-code", help="Print the current TOTP code for an account")
    code.add_argument("--email", required=True)

    args = parser.parse_args(argv)
    if args.command == "init-db":
        return asyncio.run(init_db())
    return asyncio.run(current_code(args.email))


if __name__ == "__main__":
    sys.exit(main())
