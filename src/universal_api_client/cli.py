"""Command line access to the client for ad-hoc requests."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Sequence

from .exceptions import ApiError
from .graphql import GraphQLClient
from .helpers import create_client
from .pagination import PaginationOptions, paginate


def _parse_pairs(values: Sequence[str] | None, separator: str, label: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for value in values or ():
        key, sep, item = value.partition(separator)
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"Invalid {label} {value!r}; expected KEY{separator}VALUE")
        pairs[key.strip()] = item.strip()
    return pairs


def _load_json(raw: str | None, label: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{label} must be valid JSON: {exc}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="universal-api")
    parser.add_argument("--base-url", default=None)
    parser.add_argument("--header", "-H", action="append", dest="headers", metavar="NAME:VALUE")
    parser.add_argument("--timeout", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--strategy", choices=["immediate", "fixed", "exponential"], default=None)
    parser.add_argument("--adapter", default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    request = commands.add_parser("request", help="send one request, or page through an endpoint")
    request.add_argument("method")
    request.add_argument("url")
    request.add_argument("--param", "-p", action="append", dest="params", metavar="KEY=VALUE")
    request.add_argument("--data", "-d", default=None, help="JSON request body")
    request.add_argument("--paginate", choices=["page", "offset", "cursor", "link"], default=None)
    request.add_argument("--page-size", type=int, default=20)
    request.add_argument("--max-pages", type=int, default=100)
    request.add_argument("--data-field", default="data")

    graphql = commands.add_parser("graphql", help="run a GraphQL operation")
    graphql.add_argument("endpoint")
    graphql.add_argument("--query", "-q", required=True)
    graphql.add_argument("--variables", default=None, help="JSON object of variables")
    graphql.add_argument("--operation-name", default=None)
    return parser


def _client_settings(args: argparse.Namespace) -> dict[str, Any]:
    settings: dict[str, Any] = {}
    if args.base_url:
        settings["base_url"] = args.base_url
    if args.headers:
        settings["headers"] = _parse_pairs(args.headers, ":", "header")
    for name in ("timeout", "retries", "adapter"):
        if getattr(args, name) is not None:
            settings[name] = getattr(args, name)
    if args.strategy is not None:
        settings["retry_strategy"] = args.strategy
    return settings


def _run_request(args: argparse.Namespace) -> Any:
    params = _parse_pairs(args.params, "=", "param") or None
    with create_client(**_client_settings(args)) as client:
        if args.paginate:
            options = PaginationOptions(
                strategy=args.paginate,
                page_size=args.page_size,
                max_pages=args.max_pages,
                data_param=args.data_field or None,
                initial_params=params,
            )
            items: list[Any] = []
            for page in paginate(client, args.url, options):
                items.extend(page.data)
            return items
        response = client.request(
            method=args.method,
            url=args.url,
            params=params,
            data=_load_json(args.data, "--data"),
        )
        return response.data


def _run_graphql(args: argparse.Namespace) -> Any:
    settings = _client_settings(args)
    with GraphQLClient(create_client(**settings), endpoint=args.endpoint) as client:
        return client.execute(
            {
                "query": args.query,
                "variables": _load_json(args.variables, "--variables"),
                "operationName": args.operation_name,
            }
        ).model_dump(exclude_none=True)


def _main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "graphql":
            result = _run_graphql(args)
        else:
            result = _run_request(args)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))
    except ApiError as exc:
        print(f"error: [{exc.type.value}] {exc}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


def main() -> None:
    raise SystemExit(_main())
