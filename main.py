"""loglens CLI: import log files and query them, or serve the JSON API."""

import json
import logging
import sys
from argparse import ArgumentParser

from loglens.api import create_app
from loglens.config import Config
from loglens.errors import LogLensError
from loglens.models import ParserConfig, Query, TimelineRequest
from loglens.parsers import SUPPORTED_TYPES
from loglens.schemas import require_valid
from loglens.service import LogLens

logger = logging.getLogger("loglens")


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="loglens",
        description="Ingest, filter, group, and histogram structured log records.",
    )
    parser.add_argument("--config", help="Path to YAML config (default: $CONFIG_PATH or config.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host", help="Override server.host")
    serve.add_argument("--port", type=int, help="Override server.port")

    imp = sub.add_parser("import", help="Import files, then optionally query them")
    imp.add_argument("files", nargs="+", help="Log file path(s)")
    imp.add_argument("--parser", choices=SUPPORTED_TYPES,
                     help="Parser type (default: auto-detect per file)")
    imp.add_argument("--pattern", default="", help="Regex / grok pattern or delimiter")
    imp.add_argument("--time-format", default="", help="strptime layout, epoch or epoch_ms")
    imp.add_argument("--store-unparsed", action="store_true",
                     help="Keep non-matching lines with level 'unknown'")
    imp.add_argument("--query", help="Query as JSON, e.g. '{\"filters\": [...]}'")
    imp.add_argument("--timeline", type=int, metavar="BUCKET_MS",
                     help="Print a timeline with this bucket width")
    imp.add_argument("--stats", action="store_true", help="Print store statistics")
    return parser


def _parser_config(args) -> ParserConfig | None:
    if not args.parser:
        return None
    return ParserConfig(
        type=args.parser,
        pattern=args.pattern,
        time_format=args.time_format,
        store_unparsed=args.store_unparsed,
    )


def _load_query(args) -> Query | None:
    if not args.query:
        return None
    return Query.from_dict(require_valid("query", json.loads(args.query)))


def run_import(args, config: Config) -> None:
    engine = LogLens.from_config(config)
    parser_config = _parser_config(args)
    # Rejected before any file is read
    query = _load_query(args)

    for path in args.files:
        result = engine.import_file(path, parser_config)
        print(f"{path}: {result.processed}/{result.total_records} records "
              f"in {result.duration:.1f} ms", file=sys.stderr)
        for error in result.errors:
            print(f"  {error}", file=sys.stderr)

    if query is not None:
        print(json.dumps(engine.run_query(query).to_dict(), indent=2))

    if args.timeline:
        filters = query.filters if query is not None else []
        points = engine.run_timeline(TimelineRequest(bucket_ms=args.timeline, filters=filters))
        print(json.dumps([p.to_dict() for p in points], indent=2))

    if args.stats:
        print(json.dumps(engine.get_stats().to_dict(), indent=2))


def run_serve(args, config: Config) -> None:
    app = create_app(config=config)
    host = args.host or config.get("server.host")
    port = args.port or config.get("server.port")
    logger.info("Serving LogLens API on %s:%d", host, port)
    app.run(host=host, port=port, debug=config.get("server.debug"), use_reloader=False)


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = Config.load(args.config)

    logging.basicConfig(
        level=str(config.get("logging.level")).upper(),
        format="%(asctime)s [LOGLENS] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.command == "serve":
            run_serve(args, config)
        else:
            run_import(args, config)
    except (LogLensError, json.JSONDecodeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        details = getattr(e, "details", None)
        for detail in details or []:
            print(f"  {detail}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
