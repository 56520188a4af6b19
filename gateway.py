from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import os
import sys
from typing import Any

import httpx

from auth.api import AuthApi
from auth.session_store import FileKeyValueStore, SessionStore
from lexgate.client import GatewayClient
from lexgate.constants import APP_VERSION, DEFAULT_SESSION_STORE_PATH, HTTP_METHODS
from lexgate.env import (
    get_refresh_timeout,
    get_timeout,
    load_env,
    resolve_api_base_url,
    setup_logging,
    validate_env,
)
from lexgate.errors import ApiError


async def create_client() -> GatewayClient:
    load_env()
    setup_logging()
    validate_env()

    store = FileKeyValueStore(os.getenv("LEX_SESSION_STORE_PATH", DEFAULT_SESSION_STORE_PATH))
    client = GatewayClient(
        resolve_api_base_url(),
        session_store=SessionStore(store),
        timeout=get_timeout(),
        refresh_timeout=get_refresh_timeout(),
    )
    await client.load_session()
    return client


def create_auth_api(client: GatewayClient) -> AuthApi:
    return AuthApi(client, client.session_store.backend)


def parse_params(raw_params: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for raw in raw_params:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise ValueError(f"Query parameter must look like key=value, got {raw!r}.")
        params[key] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lexgate",
        description="Send one authenticated request to the legal-assistant API.",
    )
    parser.add_argument(
        "command",
        choices=sorted(HTTP_METHODS | {"login", "logout"}),
        help="HTTP verb, or login/logout",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("target", nargs="?", help="API path, or the email for login")
    parser.add_argument("--data", help="JSON request body")
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        help="query parameter as key=value (repeatable)",
    )
    return parser


async def run_command(client: GatewayClient, args: argparse.Namespace) -> Any:
    if args.command == "login":
        password = os.getenv("LEX_PASSWORD") or getpass.getpass("Password: ")
        response = await create_auth_api(client).login(
            {"email": args.target, "password": password}
        )
        return response.user
    if args.command == "logout":
        return await create_auth_api(client).logout()

    if not args.target:
        raise ValueError(f"{args.command} needs an API path.")
    if args.param and args.command != "get":
        raise ValueError(f"{args.command} does not take --param.")
    if args.data and args.command in {"get", "delete"}:
        raise ValueError(f"{args.command} does not take --data.")
    data = json.loads(args.data) if args.data else None

    if args.command == "get":
        return await client.get(args.target, parse_params(args.param) or None)
    if args.command == "delete":
        return await client.delete(args.target)
    verb = getattr(client, args.command)
    return await verb(args.target, data)


async def _main(args: argparse.Namespace) -> Any:
    client = await create_client()
    async with client:
        return await run_command(client, args)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        result = asyncio.run(_main(args))
    except (ApiError, httpx.HTTPError, ValueError) as error:
        print(f"error: {error}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
