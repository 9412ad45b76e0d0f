"""Operator helpers for the SCIM suite.

Switch the endpoint type stored in ``.env``, run the live suite against a
given routing style, and inspect configuration or the test database.
"""
from __future__ import annotations
import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import get_key, set_key

from scim_suite.config.settings import load_settings
from scim_suite.core.database import UserAccountStore
from scim_suite.core.endpoints import DEFAULT_PREFIXES, EndpointType
from scim_suite.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENDPOINT_ENV_KEY = "API_ENDPOINT_TYPE"
DEFAULT_PYTEST_ARGS = ["tests/integration", "-q"]


def _endpoint_types() -> list[str]:
    return [member.value for member in EndpointType]


def cmd_endpoint(args: argparse.Namespace) -> int:
    env_file = Path(args.env_file)
    if args.action == "status":
        current = get_key(str(env_file), ENDPOINT_ENV_KEY) if env_file.is_file() else None
        print("🔧 Current endpoint configuration:")
        print(f"📍 Type: {(current or 'not set').upper()}")
        if current in _endpoint_types():
            print(f"🌐 API Base: {{IdSBaseURI}}{DEFAULT_PREFIXES[EndpointType(current)]}")
        return 0

    kind = EndpointType(args.action)
    env_file.touch(exist_ok=True)
    set_key(str(env_file), ENDPOINT_ENV_KEY, kind.value, quote_mode="never")
    print("✅ Successfully updated endpoint configuration:")
    print(f"📍 Endpoint Type: {kind.value.upper()}")
    print(f"🌐 API Base: {{IdSBaseURI}}{DEFAULT_PREFIXES[kind]}")
    return 0


def cmd_test(args: argparse.Namespace) -> int:
    pytest_args = args.pytest_args or DEFAULT_PYTEST_ARGS
    env = dict(os.environ, ENDPOINT_TYPE=args.endpoint_type)
    command = [sys.executable, "-m", "pytest", *pytest_args]
    print(f"🚀 Running tests with {args.endpoint_type.upper()} endpoints...")
    print(f"📝 Command: {' '.join(command)}")
    code = subprocess.call(command, env=env)
    if code == 0:
        print(f"✅ Tests completed successfully with {args.endpoint_type.upper()} endpoints")
    else:
        print(f"❌ Tests failed with exit code {code}")
    return code


def cmd_config(args: argparse.Namespace) -> int:
    config = load_settings(dotenv_path=args.env_file)
    for key, value in config.describe().items():
        print(f"{key:15} {value}")
    missing = config.missing_required()
    if missing:
        print(f"⚠️  Missing required settings: {', '.join(missing)}")
        return 1
    return 0


def cmd_db(args: argparse.Namespace) -> int:
    config = load_settings(dotenv_path=args.env_file)
    with UserAccountStore(config) as store:
        info = store.database_info()
        print(f"🔌 {info['server']}\\{info['database']} as {info['user']}")
        if args.db_cmd == "columns":
            columns, identity = store.user_account_columns()
            for column in columns:
                marker = " (identity)" if column == identity else ""
                print(f"  {column}{marker}")
            return 0

        if args.username:
            row = store.get_user(args.username)
        else:
            row = store.get_user_by_id(args.id)
        if row is None:
            print("❌ User not found in hsi.useraccount")
            return 1
        for key, value in row.items():
            print(f"  {key}: {value}")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scim-suite", description="SCIM API test suite helper")
    parser.add_argument("--env-file", default=".env", help="Dotenv file to read/update (default: .env)")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="cmd", required=True)

    se = sub.add_parser("endpoint", help="Show or switch the endpoint type stored in the env file")
    se.add_argument("action", choices=["status", *_endpoint_types()])
    se.set_defaults(func=cmd_endpoint)

    st = sub.add_parser("test", help="Run pytest against one endpoint type")
    st.add_argument("endpoint_type", choices=_endpoint_types())
    st.add_argument("pytest_args", nargs=argparse.REMAINDER)
    st.set_defaults(func=cmd_test)

    sc = sub.add_parser("config", help="Print the resolved configuration")
    sc.set_defaults(func=cmd_config)

    sd = sub.add_parser("db", help="Inspect the environment database")
    db_sub = sd.add_subparsers(dest="db_cmd", required=True)
    db_sub.add_parser("columns")
    fu = db_sub.add_parser("find-user")
    who = fu.add_mutually_exclusive_group(required=True)
    who.add_argument("--username")
    who.add_argument("--id", type=int)
    sd.set_defaults(func=cmd_db)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ConfigurationError as exc:
        print(f"❌ Configuration error: {exc}", file=sys.stderr)
        return 2
    except ModuleNotFoundError as exc:
        if exc.name != "pyodbc":
            raise
        print("❌ pyodbc is not installed; install the db extra: pip install 'scim-suite[db]'", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
