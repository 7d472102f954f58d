"""Main module for the album ingest CLI."""

import argparse
import json
import sys
import threading
from typing import List, Optional

from . import __version__
from .consumers import create_consumer
from .core import PipelineConfig, get_logger, set_debug_logging
from .core.factories import LoggerFactory, PipelineFactory, StoreFactory
from .workers.completion import CompletionAggregator

WORKERS = ["verifier", "processor"]
STRATEGIES = ["serial", "multithread", "asyncio"]


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with one subcommand per operation."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="album-ingest",
        description="Album Ingest - verification and thumbnailing of uploaded album content",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Consume raw-upload notifications
  album-ingest consume --worker verifier

  # Consume verified-upload notifications with a thread pool
  album-ingest consume --worker processor --strategy multithread

  # Run a worker once against a saved notification
  album-ingest invoke --worker processor --event-file event.json

  # Show the progress of an upload
  album-ingest status --batch-id 0b6c3f2e
        """,
    )

    # Options every database-backed command accepts
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--database-url", default=None, help="Metadata database URL (default: $DATABASE_URL)"
    )
    common.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    consume_parser = subparsers.add_parser(
        "consume", parents=[common], help="Long-poll a queue and run a worker on each message"
    )
    consume_parser.add_argument("--worker", required=True, choices=WORKERS)
    consume_parser.add_argument(
        "--strategy",
        type=str,
        default=None,
        choices=STRATEGIES,
        help="Concurrency strategy (default: $CONSUMER_STRATEGY or serial)",
    )
    consume_parser.add_argument(
        "--queue-url", default=None, help="Queue URL (default: from the environment)"
    )
    consume_parser.add_argument(
        "--concurrency", type=int, default=None, help="Messages handled at once"
    )
    consume_parser.add_argument(
        "--max-polls", type=int, default=None, help="Stop after this many polls"
    )

    invoke_parser = subparsers.add_parser(
        "invoke", parents=[common], help="Run a worker once against a JSON notification"
    )
    invoke_parser.add_argument("--worker", required=True, choices=WORKERS)
    invoke_parser.add_argument(
        "--event-file", required=True, help="Path to an S3 event or queue message body"
    )

    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Print the progress of an upload batch"
    )
    status_parser.add_argument("--batch-id", required=True, help="Upload batch id")

    subparsers.add_parser("init-db", parents=[common], help="Create the metadata schema")

    # Version subcommand
    subparsers.add_parser("version", help="Show version information")

    return parser


def load_config(args: argparse.Namespace) -> PipelineConfig:
    config = PipelineConfig.from_env(
        database_url=getattr(args, "database_url", None),
        strategy=getattr(args, "strategy", None),
        concurrency=getattr(args, "concurrency", None),
        debug=getattr(args, "debug", False) or None,
    )
    set_debug_logging(config.debug)
    return config


def run_consume(args: argparse.Namespace) -> None:
    logger = get_logger("album-ingest.cli")
    config = load_config(args)
    worker = PipelineFactory.create_worker(args.worker, config)
    consumer = create_consumer(worker, config, queue_url=args.queue_url)

    stop_event = threading.Event()
    try:
        stats = consumer.run(max_polls=args.max_polls, stop_event=stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        logger.warning("Consumer interrupted by user.")
        return

    logger.info(
        f"Consumer finished: {stats.polls} polls, {stats.received} messages, "
        f"{stats.acknowledged} acknowledged, {stats.retained} left for redelivery"
    )


def run_invoke(args: argparse.Namespace) -> None:
    config = load_config(args)
    with open(args.event_file, "r", encoding="utf-8") as event_file:
        event = json.load(event_file)

    worker = PipelineFactory.create_worker(args.worker, config)
    report = worker.handle_event(event)
    print(json.dumps(report.model_dump(), indent=2))


def run_status(args: argparse.Namespace) -> None:
    config = load_config(args)
    store = StoreFactory.create_store(config)
    aggregator = CompletionAggregator(store, LoggerFactory.create_logger("album-ingest.status"))

    progress = aggregator.summarize(args.batch_id)
    if progress is None:
        print(f"Upload batch not found: {args.batch_id}", file=sys.stderr)
        sys.exit(1)
    else:
        print(progress.model_dump_json(indent=2))


def run_init_db(args: argparse.Namespace) -> None:
    config = load_config(args)
    StoreFactory.create_store(config).create_schema()
    print("Metadata schema created")


COMMANDS = {
    "consume": run_consume,
    "invoke": run_invoke,
    "status": run_status,
    "init-db": run_init_db,
}


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the album-ingest command-line interface.

    Pipeline errors (bad configuration, unreachable stores, records that are
    not ready yet) are logged and turned into exit status 1.
    """
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.command in COMMANDS:
        try:
            COMMANDS[args.command](args)
        except KeyboardInterrupt:
            get_logger("album-ingest.cli").warning("Interrupted by user.")
        except Exception as e:
            get_logger("album-ingest.cli").error(f"{args.command} failed: {e}", exc_info=True)
            sys.exit(1)

    elif args.command == "version":
        print("Album Ingest CLI")
        print(f"Version {__version__}")
        print("Content verification and thumbnailing with multiple consumer strategies")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
