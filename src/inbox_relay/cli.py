"""Command-line entry point for Inbox Relay."""

from __future__ import annotations

import argparse
from pathlib import Path

from inbox_relay.core import AppSettings, configure_logging, load_app_settings
from inbox_relay.wiring import (
    CATEGORIZER,
    DIGEST,
    NOTIFICATION_QUEUE,
    POLLER,
    build_container,
)


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Inbox Relay email-to-chat assistant")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "serve", "poll", "digest", "seed-categories"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="Bind address for the serve command."
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port for the serve command."
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> None:
    """Execute the requested CLI command."""
    command = args.command
    if command == "info":
        _print_info(settings)
    elif command == "serve":
        _serve(settings, host=args.host, port=args.port)
    elif command == "poll":
        _run_poll(settings)
    elif command == "digest":
        _run_digest(settings)
    elif command == "seed-categories":
        _seed_categories(settings)


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    execute(args, settings)


def _print_info(settings: AppSettings) -> None:
    chat_mode = "twilio" if settings.chat.account_sid else "log only"
    print("Inbox Relay is ready. Link a Gmail account and message the bot to start.")
    print(f"Database path: {settings.storage.db_path}")
    print(f"LLM: {settings.llm.model} at {settings.llm.base_url}")
    print(f"Chat delivery: {chat_mode}")
    print(
        f"Poll every {settings.sync.poll_interval_seconds}s, "
        f"digest check every {settings.digest.interval_seconds}s"
    )


def _serve(settings: AppSettings, *, host: str, port: int) -> None:
    import uvicorn  # pylint: disable=import-outside-toplevel

    from inbox_relay.web.app import create_app  # pylint: disable=import-outside-toplevel

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


def _run_poll(settings: AppSettings) -> None:
    """Run one poll cycle and dispatch the resulting notifications."""
    container = build_container(settings)
    try:
        container.resolve(CATEGORIZER).initialize_categories()
        queue = container.resolve(NOTIFICATION_QUEUE)
        queue.start()
        report = container.resolve(POLLER).poll_cycle()
        queue.join()
        queue.stop()
    finally:
        container.close()
    print(
        f"Polled {report.users} user(s): {report.ingested} new, "
        f"{report.skipped} skipped, {report.enqueued} notification(s) queued."
    )
    if report.failed_users:
        print(f"Failed users: {', '.join(str(uid) for uid in report.failed_users)}")


def _run_digest(settings: AppSettings) -> None:
    container = build_container(settings)
    try:
        sent = container.resolve(DIGEST).batch_cycle()
    finally:
        container.close()
    print(f"Sent {sent} digest(s).")


def _seed_categories(settings: AppSettings) -> None:
    container = build_container(settings)
    try:
        categorizer = container.resolve(CATEGORIZER)
        categorizer.initialize_categories()
        names = [category.name for category in categorizer.list_categories()]
    finally:
        container.close()
    print(f"Seeded {len(names)} categories: {', '.join(names)}")


if __name__ == "__main__":
    main()
