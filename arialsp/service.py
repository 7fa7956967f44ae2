#!/usr/bin/env python3
"""Main service module for the Aria language client.

This module owns the extension state: the language client manager, the
inlay hints overlay and the subscriptions tying them to editor events.
"""

import asyncio
import logging
import os
from typing import Any, Mapping, Optional

import click

from arialsp.config import Configuration, ConfigurationChangeEvent
from arialsp.inlay_hints import InlayHintsOverlay, activate_inlay_hints
from arialsp.servers.aria_server import AriaLanguageClientManager
from arialsp.servers.base import ClientFactory
from arialsp.servers.launch import ServerLocation, resolve_server_command
from arialsp.utils.events import CompositeDisposable
from arialsp.utils.workspace import WorkspaceManager


class AriaExtension:
    """Activates and deactivates the Aria language client for a workspace.

    A change to ``aria.lsp.serverPath`` while the extension is active restarts
    the session when the resolved command differs from the running one.
    The restart runs as a task, so settings must be updated on the event loop.
    """

    def __init__(
        self,
        workspace_path: str,
        configuration: Optional[Configuration] = None,
        install_root: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """Initialize the extension for a workspace.

        Args:
            workspace_path: Path to the workspace directory.
            configuration: Settings store. Defaults to default settings.
            install_root: Root the default server path is derived from.
            environ: Environment consulted for ``ARIA_LSP_PATH``.
            client_factory: Builds the protocol client; see ``BaseLanguageClientManager``.
        """
        self.workspace = WorkspaceManager(workspace_path)
        self.configuration = configuration or Configuration()
        self.install_root = install_root
        self.environ = os.environ if environ is None else environ
        self.logger = logging.getLogger("arialsp")

        self.client_manager = AriaLanguageClientManager(self.workspace, client_factory)
        self.inlay_hints: Optional[InlayHintsOverlay] = None
        self.subscriptions: Optional[CompositeDisposable] = None
        self._restart_lock = asyncio.Lock()

    def server_location(self) -> ServerLocation:
        return ServerLocation.from_settings(self.configuration.settings, self.install_root, self.environ)

    async def activate(self) -> None:
        """Start the language client and register the inlay hints overlay."""
        if self.subscriptions is not None:
            self.logger.info("Aria extension is already active")
            return

        subscriptions = CompositeDisposable()
        self.subscriptions = subscriptions
        subscriptions.add(self.configuration.on_did_change_configuration.event(self._on_configuration_changed))

        try:
            await self.client_manager.activate(self.server_location())
        except BaseException:
            subscriptions.dispose()
            self.subscriptions = None
            raise

        self.inlay_hints = activate_inlay_hints(
            self.client_manager, self.workspace, self.configuration, subscriptions
        )
        self.logger.info(f"Aria extension activated for workspace: {self.workspace.workspace_path}")

    async def deactivate(self) -> None:
        """Release all subscriptions and stop the language client."""
        if self.subscriptions is not None:
            self.subscriptions.dispose()
            self.subscriptions = None
        self.inlay_hints = None
        return await self.client_manager.deactivate()

    def _on_configuration_changed(self, event: ConfigurationChangeEvent) -> Any:
        if not event.affects_configuration("aria.lsp.serverPath"):
            return None
        return self.restart_if_server_changed()

    async def restart_if_server_changed(self) -> bool:
        """Restart the session if the server command no longer matches the settings.

        A session that failed to start after an earlier change is started
        again with the new settings.

        Returns:
            True if the session was restarted.
        """
        async with self._restart_lock:
            if self.subscriptions is None:
                return False

            location = self.server_location()
            command = resolve_server_command(location)
            if self.client_manager.is_running() and command == self.client_manager.command:
                return False

            self.logger.info(f"Server path changed to {command.path}, restarting language client")
            await self.client_manager.restart(location)
            return True


async def serve(extension: AriaExtension) -> None:
    try:
        await extension.activate()
        while True:
            await asyncio.sleep(1)
    finally:
        await extension.deactivate()


@click.command()
@click.option("--workspace", required=True, help="Path to the workspace directory")
@click.option("--settings", "settings_path", default=None, help="Path to a JSON settings file")
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
def main(workspace: str, settings_path: Optional[str], debug: bool) -> None:
    """Run the Aria language client service.

    Args:
        workspace: Path to the workspace directory.
        settings_path: Optional JSON settings file.
        debug: Whether to enable debug logging.
    """
    # Configure logging
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    configuration = Configuration.from_file(settings_path) if settings_path else Configuration()
    extension = AriaExtension(workspace, configuration)
    click.echo(f"Aria language client starting for workspace: {workspace}")
    click.echo("Press Ctrl+C to stop the service")
    try:
        asyncio.run(serve(extension))
    except KeyboardInterrupt:
        click.echo("Stopping service...")
    finally:
        click.echo("Service stopped")


if __name__ == "__main__":
    main()  # pylint: disable=no-value-for-parameter
