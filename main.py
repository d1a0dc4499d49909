#!/usr/bin/env python3
"""byteStore Shopping Assistant CLI."""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from config.settings import Settings
from schemas.chat import ChatRequest


def _configure_logging(settings: Settings, verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def run_ask(args, settings: Settings) -> int:
    from orchestrator import build_orchestrator

    # Writes go inline so nothing is lost when the process exits
    settings.background_logging = False
    orchestrator = build_orchestrator(settings)

    request = ChatRequest(message=args.message, session_id=args.session_id)
    try:
        response = orchestrator.handle(args.identity, request)
    except Exception as e:
        print(f"Error processing message: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    print("\n" + "=" * 60)
    print("REPLY")
    print("=" * 60 + "\n")
    print(response.reply)
    if response.products:
        print("\nProducts:")
        for product in response.products:
            print(f"  - [{product.id}] {product.name} ({product.brand or '-'}) {product.price}")
    print(f"\nSession: {response.session_id}\n")
    return 0


def run_serve(args, settings: Settings) -> int:
    import uvicorn
    from api.server import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def run_seed(args, settings: Settings) -> int:
    with open(args.file, "r", encoding="utf-8") as f:
        products = json.load(f)

    if settings.uses_supabase():
        from utils.supabase_rest import SupabaseRestClient

        client = SupabaseRestClient(settings.supabase_url, settings.supabase_service_role_key)
        client.insert("products", products)
        count = len(products)
    else:
        from retrieval.sqlite_catalog import SQLiteCatalog

        count = SQLiteCatalog(settings.db_path).add_products(products)

    print(f"Seeded {count} products")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Command line parser; --verbose is accepted before or after the subcommand."""
    parser = argparse.ArgumentParser(
        description="byteStore Shopping Assistant - bilingual product search over the store catalog"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")

    # SUPPRESS keeps a subcommand from resetting a flag given before it
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--verbose", "-v", action="store_true", default=argparse.SUPPRESS,
                        help="Enable verbose output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    ask = subparsers.add_parser("ask", parents=[common], help="Send one message to the assistant")
    ask.add_argument("--message", "-m", type=str, required=True, help="Shopper message")
    ask.add_argument("--session-id", type=str, help="Continue an existing session")
    ask.add_argument("--identity", type=str, default="cli-user", help="Identity to rate limit and log under")

    serve = subparsers.add_parser("serve", parents=[common], help="Run the HTTP API")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    seed = subparsers.add_parser("seed", parents=[common], help="Load products from a JSON file into the catalog")
    seed.add_argument("--file", "-f", type=str, required=True, help="JSON array of product objects")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv()

    args = build_parser().parse_args(argv)

    settings = Settings()
    _configure_logging(settings, args.verbose)

    commands = {"ask": run_ask, "serve": run_serve, "seed": run_seed}
    sys.exit(commands[args.command](args, settings))


if __name__ == "__main__":
    main()
