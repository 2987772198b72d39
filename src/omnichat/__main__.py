"""CLI entry point for omnichat."""

from __future__ import annotations

import argparse
import asyncio
import sys

from omnichat.config import AppConfig, load_config
from omnichat.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="omnichat",
        description="Multi-provider AI chat backend",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    _add_config_args(serve_parser)
    serve_parser.add_argument("--host", default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    # config-check command
    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    # models command
    models_parser = subparsers.add_parser("models", help="List configured AI models")
    _add_config_args(models_parser)

    args = parser.parse_args()

    if args.command is None:
        # Default to serve
        args.command = "serve"
        args.config = "config.yaml"
        args.env = ".env"
        args.host = None
        args.port = None

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "models":
        _list_models(args.config, args.env)
    elif args.command == "serve":
        _serve(args.config, args.env, args.host, args.port)


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load(config_path, env_path)
    providers = config.providers
    print(f"Configuration valid: {config_path}")
    print(f"  Data directory: {config.data_dir}")
    print(f"  Server: {config.server.host}:{config.server.port}")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  Uploads: {config.storage.upload_dir} "
          f"(max {config.storage.max_files} files, {config.storage.max_file_size} bytes each)")
    print(f"  Auth header: {config.auth.user_header}"
          + (f" (dev user: {config.auth.dev_user})" if config.auth.dev_user else ""))
    print("  Providers:")
    print(f"    - openai    key={'set' if providers.openai.api_key else 'missing'}")
    print(f"    - anthropic key={'set' if providers.anthropic.api_key else 'missing'}")
    print(f"    - groq      key={'set' if providers.groq.api_key else 'missing'}")
    print(f"    - ollama    url={providers.ollama.url}")


def _list_models(config_path: str, env_path: str) -> None:
    """Show model configurations, seeding defaults into a fresh database."""
    config = _load(config_path, env_path)

    from omnichat.storage.database import Database
    from omnichat.storage.model_registry import ModelRegistry

    async def _fetch():
        db = Database(config.storage.db_path)
        await db.initialize()
        try:
            registry = ModelRegistry(db)
            await registry.seed_defaults()
            return await registry.list_all()
        finally:
            await db.close()

    models = asyncio.run(_fetch())
    print("AI Model Configuration")
    print("=" * 50)
    for m in models:
        state = "enabled" if m.enabled else "disabled"
        print(f"\n  {m.model_name} ({m.display_name}) [{state}]")
        print(f"    Provider : {m.provider}")
        print(f"    Temp     : {m.default_temperature}")
        print(f"    Tokens   : {m.max_tokens}")
        if m.api_endpoint:
            print(f"    Endpoint : {m.api_endpoint}")
    print()


def _serve(config_path: str, env_path: str, host: str | None, port: int | None) -> None:
    """Load config and run the HTTP server."""
    config = _load(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    import uvicorn

    from omnichat.api.server import create_app

    uvicorn.run(
        create_app(config),
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
