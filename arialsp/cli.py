#!/usr/bin/env python3
"""Command-line interface for the Aria language client."""

import argparse
import asyncio
import logging
import shutil
import sys
from typing import List, Optional

from lsprotocol import types as lsp

from arialsp.config import Configuration
from arialsp.servers.launch import SERVER_PATH_ENV, resolve_server_command
from arialsp.service import AriaExtension, serve


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, sys.argv is used.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Aria language client CLI"
    )

    parser.add_argument(
        "--workspace",
        "-w",
        required=True,
        help="Path to the workspace directory"
    )
    parser.add_argument(
        "--settings",
        help="Path to a JSON settings file"
    )
    parser.add_argument(
        "--server-path",
        help=f"Language server executable (overrides settings and ${SERVER_PATH_ENV})"
    )

    subparsers = parser.add_subparsers(dest="action", help="Action to perform")

    subparsers.add_parser("resolve", help="Print the server command that would be launched")

    hints_parser = subparsers.add_parser("hints", help="Print inlay hints for a file")
    hints_parser.add_argument("file", help="Path to the file")

    subparsers.add_parser("server", help="Run the client until interrupted")

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(args)


def format_hint(hint: lsp.InlayHint) -> str:
    label = hint.label if isinstance(hint.label, str) else "".join(part.value for part in hint.label)
    return f"{hint.position.line + 1}:{hint.position.character + 1}\t{label}"


async def print_hints(extension: AriaExtension, file_path: str) -> int:
    await extension.activate()
    try:
        if not extension.configuration.settings.inlay_hints.enabled:
            logging.info("Inlay hints are disabled in the settings")
            return 0
        document = extension.workspace.open_document(file_path)
        end = document.position_at(len(document.text))
        hints = await extension.inlay_hints.provide_inlay_hints(
            document, lsp.Range(start=lsp.Position(line=0, character=0), end=end)
        )
        for hint in hints:
            print(format_hint(hint))
        return 0
    finally:
        await extension.deactivate()


def main(args: Optional[List[str]] = None) -> int:
    """Run the CLI application.

    Args:
        args: Command-line arguments. If None, sys.argv is used.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parsed_args = parse_args(args)

    # Configure logging
    log_level = logging.DEBUG if parsed_args.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        if parsed_args.settings:
            configuration = Configuration.from_file(parsed_args.settings)
        else:
            configuration = Configuration()
        if parsed_args.server_path:
            settings = configuration.settings.model_copy(deep=True)
            settings.lsp.server_path = parsed_args.server_path
            configuration = Configuration(settings)

        extension = AriaExtension(parsed_args.workspace, configuration)

        if parsed_args.action == "resolve":
            command = resolve_server_command(extension.server_location())
            print(command.path)
            return 0 if shutil.which(command.path) else 2

        if parsed_args.action == "hints":
            return asyncio.run(print_hints(extension, parsed_args.file))

        if parsed_args.action == "server":
            try:
                print(f"Aria language client started for workspace: {parsed_args.workspace}")
                print("Press Ctrl+C to stop the client")
                asyncio.run(serve(extension))
            except KeyboardInterrupt:
                print("Stopping client...")
            finally:
                print("Client stopped")

            return 0

        print("Please specify an action. Use --help for available commands.")
        return 1

    except Exception as e:
        logging.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
