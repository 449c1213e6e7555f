#!/usr/bin/env python3
"""
bffgraph CLI - Main entry point.

Usage:
    bffgraph check                                    # Validate schemas against the catalog
    bffgraph plan <resource> --portal P --roles a,b   # Show what a caller would fetch
    bffgraph serve                                    # Run the gateway
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from ..config import Settings, configure_logging, load_settings
from ..core.errors import BffGraphError
from ..core.query_types import Operation
from ..runtime.context import AuthContext, ExecutionContext


def _load(args: argparse.Namespace) -> Optional[Settings]:
    try:
        settings = load_settings(args.config)
    except BffGraphError as e:
        print(f"Error: {e}")
        return None
    configure_logging(args.log_level or settings.log_level)
    return settings


def cmd_check(args: argparse.Namespace) -> int:
    """Validate resource schemas against the source catalog."""
    settings = _load(args)
    if settings is None:
        return 1

    problems = settings.registry.validate(settings.catalog)
    for problem in problems:
        print(f"  - {problem}")

    if problems:
        print(f"\n{len(problems)} problem(s) found")
        return 1

    print(
        f"OK: {len(settings.registry)} resource(s), "
        f"{len(settings.catalog.services)} service(s), "
        f"{len(settings.catalog.entities)} entities"
    )
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Print visible fields and entity mappings for a caller, without fetching."""
    settings = _load(args)
    if settings is None:
        return 1

    try:
        auth = AuthContext.create(args.portal, args.roles.split(",") if args.roles else [])
        schema = settings.registry.get(args.resource)
        visible = settings.build_resolver().visible_fields(schema, auth)

        print(f"Resource: {schema.name}")
        print(f"Caller:   portal={auth.portal} roles={','.join(sorted(auth.roles)) or '-'}")
        print(f"Visible:  {', '.join(visible) or '-'}")
        if not visible:
            print("\nNothing visible, no entity would be fetched")
            return 0

        engine = settings.build_engine()
        operation = Operation(kind="collection", resource_type=schema.name)
        plan = engine.plan(ExecutionContext(
            auth=auth,
            operation=operation,
            schema=schema,
            visible_fields=visible,
        ))
    except BffGraphError as e:
        print(f"Error: {e}")
        return 1

    print("\nEntities:")
    for mapping in plan.mappings:
        marker = "*" if mapping.is_primary else " "
        print(
            f" {marker} {mapping.key} {mapping.endpoint} tier={mapping.tier.value} "
            f"fields={','.join(sorted(mapping.required_fields))}"
        )
    if plan.relationships:
        print("\nJoins:")
        for rel in plan.relationships:
            print(f"   {rel}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the gateway with uvicorn."""
    import uvicorn

    from ..gateway import Gateway

    settings = _load(args)
    if settings is None:
        return 1

    try:
        gateway = Gateway(settings)
    except BffGraphError as e:
        print(f"Error: {e}")
        return 1

    uvicorn.run(gateway.app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bffgraph",
        description="bffgraph - composite resources for BFF gateways"
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--config", "-c", help="Path to bffgraph.yaml (default: $BFFGRAPH_CONFIG or ./bffgraph.yaml)")
    parser.add_argument("--log-level", help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # check
    subparsers.add_parser("check", help="Validate resource schemas against the catalog")

    # plan
    plan_parser = subparsers.add_parser("plan", help="Show visible fields and entity mappings for a caller")
    plan_parser.add_argument("resource", help="Resource type (e.g. GuestReservation)")
    plan_parser.add_argument("--portal", "-p", required=True, help="Caller portal")
    plan_parser.add_argument("--roles", "-r", default="", help="Comma-separated caller roles")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the gateway")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind host")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    commands = {
        "check": cmd_check,
        "plan": cmd_plan,
        "serve": cmd_serve,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
