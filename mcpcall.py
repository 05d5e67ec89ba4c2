#!/usr/bin/env python3
"""
MCP Call - Command-Line Entry Point

Connect to an MCP server over SSE, list its tools and call one of them.
"""

import argparse
import asyncio
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from mcpclient import (
    ClientError,
    Config,
    MCPClient,
    SSETransport,
    Tool,
    ToolCallResult,
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(config: Config, verbose: bool = False) -> None:
    """
    Set up logging configuration.

    Args:
        config: Configuration object
        verbose: Whether to enable verbose logging
    """
    log_level = logging.DEBUG if verbose else getattr(logging, config.get_log_level().upper(), logging.INFO)
    log_format = config.get_log_format()
    log_file = config.get_log_file()

    if log_format.lower() == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    # Logs go to stderr, results to stdout
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _parse_header(value: str) -> tuple:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got: {value!r}")
    return name.strip(), header_value.strip()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Call tools on an MCP server over Server-Sent Events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python mcpcall.py --url http://localhost:8777 --token abcd --list-tools
  python mcpcall.py --call query --args '{"query": "SELECT * FROM employees"}'
  python mcpcall.py --config client.json --verbose --list-tools
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="Override the server's event stream URL"
    )

    parser.add_argument(
        "--header",
        type=_parse_header,
        action="append",
        default=[],
        help="Extra request header 'Name: value' (repeatable)"
    )

    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Bearer token sent in the Authorization header"
    )

    parser.add_argument(
        "--list-tools",
        action="store_true",
        help="List the server's tools"
    )

    parser.add_argument(
        "--call",
        type=str,
        default=None,
        metavar="TOOL",
        help="Name of the tool to call"
    )

    parser.add_argument(
        "--args",
        type=str,
        default="{}",
        help="Tool arguments as a JSON object"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Override the per-call timeout in seconds"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error", "critical"],
        default=None,
        help="Override log level"
    )

    args = parser.parse_args(argv)

    try:
        args.arguments = json.loads(args.args)
    except json.JSONDecodeError as e:
        parser.error(f"--args is not valid JSON: {e}")
    if not isinstance(args.arguments, dict):
        parser.error("--args must be a JSON object")

    if not args.list_tools and not args.call:
        parser.error("nothing to do, pass --list-tools and/or --call")

    return args


def print_tools(tools: List[Tool]) -> None:
    """Print the tool catalogue."""
    if not tools:
        print("No tools offered by the server.")
        return

    print("Available Tools:")
    print("-" * 60)

    for tool in tools:
        print(f"Name:        {tool.name}")
        print(f"Description: {tool.description}")
        print(f"Input:       {json.dumps(tool.input_schema)}")
        print("-" * 60)


def print_results(results: List[ToolCallResult]) -> None:
    """Print the content items of a tool call."""
    for item in results:
        if item.text is not None:
            print(item.text)
        else:
            size = len(item.data) if item.data is not None else 0
            print(f"[{item.type} {item.mime_type or 'unknown'}, {size} bytes]")


def apply_overrides(config: Config, args: argparse.Namespace) -> None:
    """Apply command-line overrides to the loaded configuration."""
    if args.url:
        config.config["server"]["baseUrl"] = args.url
    if args.token:
        config.config["server"]["authToken"] = args.token
    for name, value in args.header:
        config.config["server"]["headers"][name] = value
    if args.timeout is not None:
        config.config["timeouts"]["request"] = args.timeout
    if args.log_level:
        config.config["logging"]["level"] = args.log_level


async def run(config: Config, args: argparse.Namespace) -> int:
    """
    Connect, run the requested operations and disconnect.

    Returns:
        Exit code (0 for success, 1 for a client error)
    """
    transport = SSETransport(
        config.get_base_url(),
        headers=config.build_headers(),
        config=config.build_transport_config(),
    )
    client = MCPClient(
        config.get_client_name(),
        config.get_client_version(),
        request_timeout=config.get_request_timeout(),
    )

    try:
        async with client:
            await client.connect(transport)

            if args.list_tools:
                print_tools(await client.list_tools())

            if args.call:
                print_results(await client.call_tool(args.call, args.arguments))
    except ClientError as e:
        logging.error(f"Client error: {e}")
        return 1

    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    load_dotenv()
    args = parse_arguments(argv)

    try:
        config = Config(args.config, validate=False)
        apply_overrides(config, args)
        config.validate()
    except ClientError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config, args.verbose)
    logging.debug(f"Connecting to {config.get_base_url()}")

    return await run(config, args)


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    cli()
