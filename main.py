"""Command-line entry point for GroundChat."""

from __future__ import annotations

import argparse
import asyncio
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from groundchat import ChatHandler, IncomingMessage, RAGPipeline
from groundchat.config import config
from groundchat.errors import ConfigurationError, EmbeddingError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"
CONSOLE_SESSION_KEY = "console"
EXIT_COMMANDS = frozenset({"/quit", "/exit"})


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="GroundChat: grounded answers from your knowledge base.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Launch the Streamlit chat page.")
    serve.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    serve.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    serve.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    serve.set_defaults(headless=True)

    ingest = subparsers.add_parser(
        "ingest", help="Add .txt, .md or .pdf documents to the knowledge base."
    )
    ingest.add_argument("paths", nargs="+", type=Path, help="Documents to ingest.")

    subparsers.add_parser("chat", help="Chat with the knowledge base in the terminal.")

    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve", *(argv or [])])
    return args


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("GroundChat stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    return result.returncode


def serve(args: argparse.Namespace, logger: Logger) -> int:
    """Launch the Streamlit chat page."""  # noqa: DOC201
    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting GroundChat Streamlit app at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )

    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )

    return_code = run_streamlit(command, logger)
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


async def ingest(pipeline: RAGPipeline, paths: Sequence[Path], logger: Logger) -> int:
    """Ingest each document, continuing past files that fail."""  # noqa: DOC201
    failures = 0
    for path in paths:
        try:
            count = await pipeline.process_document(path)
        except (OSError, ValueError, EmbeddingError):
            logger.exception("Failed to ingest %s", path)
            failures += 1
        else:
            logger.info("Ingested %s (%d chunks)", path, count)
    return 1 if failures else 0


async def chat(handler: ChatHandler) -> int:
    """Run a console chat session until EOF or /quit."""  # noqa: DOC201
    print("GroundChat console. Type /help for commands, /quit to leave.")  # noqa: T201
    while True:
        try:
            text = await asyncio.to_thread(input, "> ")
        except EOFError:
            return 0
        if text.strip().lower() in EXIT_COMMANDS:
            return 0
        reply = await handler.handle(
            IncomingMessage(session_key=CONSOLE_SESSION_KEY, text=text)
        )
        if reply:
            print(reply)  # noqa: T201


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and run the requested command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ConfigurationError:
        logger.exception("Configuration invalid")
        return 1

    if args.command == "serve":
        return serve(args, logger)

    try:
        pipeline = RAGPipeline()
        pipeline.initialize()
    except ConfigurationError:
        logger.exception("Failed to initialize pipeline")
        return 1

    if args.command == "ingest":
        return asyncio.run(ingest(pipeline, args.paths, logger))

    try:
        return asyncio.run(chat(ChatHandler(pipeline)))
    except KeyboardInterrupt:
        logger.info("GroundChat stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
