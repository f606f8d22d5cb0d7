"""
TodoHub CLI — Database bootstrap, server and report commands.

Commands:
- todohub init-db  — Create the todo_lists table
- todohub serve    — Start the HTTP + WebSocket server (uvicorn)
- todohub export   — Write a filtered .xlsx report to disk
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger("todohub.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="todohub",
        description="TodoHub — task list service with real-time updates",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # todohub init-db
    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.add_argument("--config", default=None, help="Path to todohub.yaml")

    # todohub serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--config", default=None, help="Path to todohub.yaml")
    serve_parser.add_argument("--host", default=None, help="Host to bind (default: from config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")

    # todohub export
    export_parser = subparsers.add_parser("export", help="Export tasks to an .xlsx report")
    export_parser.add_argument("--config", default=None, help="Path to todohub.yaml")
    export_parser.add_argument("--output", default=None, help="Output file (default: timestamped name)")
    export_parser.add_argument("--title", help="Title substring")
    export_parser.add_argument("--assignee", help="Comma-separated assignee substrings")
    export_parser.add_argument("--start", help="Due date range start (YYYY-MM-DD)")
    export_parser.add_argument("--end", help="Due date range end (YYYY-MM-DD)")
    export_parser.add_argument("--min", type=float, help="Minimum time tracked (minutes)")
    export_parser.add_argument("--max", type=float, help="Maximum time tracked (minutes)")
    export_parser.add_argument("--status", help="Comma-separated statuses")
    export_parser.add_argument("--priority", help="Comma-separated priorities")

    args = parser.parse_args(argv)

    if args.command == "init-db":
        return cmd_init_db(args)
    elif args.command == "serve":
        return cmd_serve(args)
    elif args.command == "export":
        return cmd_export(args)
    else:
        parser.print_help()
        return 0


def _load(args: argparse.Namespace):
    from todohub.engine.config import load_config
    from todohub.engine.logging import configure_logging

    config = load_config(args.config)
    configure_logging(config.logging.level)
    return config


def _init_db(config, create_tables: bool):
    from todohub.db.session import init_db

    return init_db(
        config.database.url,
        create_tables=create_tables,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
        pool_timeout=config.database.pool_timeout,
        pool_recycle=config.database.pool_recycle,
        pool_pre_ping=config.database.pool_pre_ping,
    )


def cmd_init_db(args: argparse.Namespace) -> int:
    from sqlalchemy.exc import SQLAlchemyError

    from todohub.engine.errors import ConfigError

    try:
        config = _load(args)
    except ConfigError as e:
        print(f"[ERROR] {e.message}: {e.error}")
        return 1

    try:
        _init_db(config, create_tables=True)
    except SQLAlchemyError as e:
        print(f"[ERROR] Failed to create tables: {e}")
        return 1

    print(f"[OK] Database ready: {config.database.url}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from todohub.api.app import create_app
    from todohub.engine.errors import ConfigError

    try:
        config = _load(args)
    except ConfigError as e:
        print(f"[ERROR] {e.message}: {e.error}")
        return 1

    app = create_app(config)
    host = args.host or config.server.host
    port = args.port or config.server.port
    print(f"TodoList API is running on: http://{host}:{port}{config.server.api_prefix}")
    print(f"API documentation: http://{host}:{port}/docs")
    uvicorn.run(app, host=host, port=port, log_level=config.logging.level.lower())
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    from todohub.engine.errors import ConfigError, TodoHubError
    from todohub.reports.exporter import ReportExporter, export_filename
    from todohub.tasks.filters import FilterCriteria
    from todohub.tasks.store import TaskStore

    try:
        config = _load(args)
    except ConfigError as e:
        print(f"[ERROR] {e.message}: {e.error}")
        return 1

    params = {
        key: value
        for key, value in {
            "title": args.title,
            "assignee": args.assignee,
            "start": args.start,
            "end": args.end,
            "min": args.min,
            "max": args.max,
            "status": args.status,
            "priority": args.priority,
        }.items()
        if value is not None
    }

    try:
        factory = _init_db(config, create_tables=False)
        exporter = ReportExporter(
            TaskStore(factory),
            sheet_title=config.reports.sheet_title,
            max_column_width=config.reports.max_column_width,
        )
        content = exporter.export_workbook(FilterCriteria.from_params(params))
    except TodoHubError as e:
        print(f"[ERROR] {e.message}" + (f": {e.error}" if e.error else ""))
        return 1

    output = Path(args.output or export_filename())
    output.write_bytes(content)
    print(f"[OK] Report written to {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
