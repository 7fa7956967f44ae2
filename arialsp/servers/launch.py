"""Server executable resolution and launch descriptors."""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from arialsp.config import AriaSettings

# Environment variable overriding the server path
SERVER_PATH_ENV = "ARIA_LSP_PATH"

# Debug build of the server, relative to the install root
DEFAULT_SERVER_RELATIVE_PATH = os.path.join("..", "..", "target", "debug", "lsp")

# Logging verbosity passed to the spawned server
LOG_ENV_OVERRIDE = {"RUST_LOG": "debug"}

PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def default_server_path(install_root: Optional[str] = None) -> str:
    """Compute the development-checkout server path.

    Args:
        install_root: Root the relative path is joined to. Defaults to the
            directory containing the package.

    Returns:
        Absolute, normalized path to the debug build.
    """
    root = install_root or PACKAGE_ROOT
    return os.path.normpath(os.path.join(os.path.abspath(root), DEFAULT_SERVER_RELATIVE_PATH))


@dataclass(frozen=True)
class ServerLocation:
    """Candidate server paths, highest precedence first."""

    configured_path: Optional[str]
    env_path: Optional[str]
    default_path: str

    @classmethod
    def from_settings(
        cls,
        settings: AriaSettings,
        install_root: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ServerLocation":
        environ = os.environ if environ is None else environ
        return cls(
            configured_path=settings.lsp.server_path,
            env_path=environ.get(SERVER_PATH_ENV),
            default_path=default_server_path(install_root),
        )


@dataclass(frozen=True)
class ResolvedCommand:
    path: str


@dataclass(frozen=True)
class LaunchDescriptor:
    command: ResolvedCommand
    environment: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None


@dataclass(frozen=True)
class ServerOptions:
    """Descriptors for the run and debug roles."""

    run: LaunchDescriptor
    debug: LaunchDescriptor


def _non_blank(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def resolve_server_command(location: ServerLocation) -> ResolvedCommand:
    """Pick the server executable.

    A configured path wins over the environment, which wins over the
    default. Values that are blank after trimming count as unset.
    """
    path = _non_blank(location.configured_path) or _non_blank(location.env_path) or location.default_path
    return ResolvedCommand(path=path)


def build_launch_descriptor(
    command: ResolvedCommand,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
) -> LaunchDescriptor:
    """Build the launch descriptor for a resolved command.

    Args:
        command: The resolved server command.
        environ: Inherited environment. Defaults to the current process environment.
        cwd: Working directory for the server process.

    Returns:
        Descriptor whose environment is the inherited one plus the log override.
    """
    environ = os.environ if environ is None else environ
    environment = {**environ, **LOG_ENV_OVERRIDE}
    return LaunchDescriptor(command=command, environment=environment, cwd=cwd)


def build_server_options(
    command: ResolvedCommand,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
) -> ServerOptions:
    """Build server options; run and debug share one descriptor."""
    run = build_launch_descriptor(command, environ, cwd)
    return ServerOptions(run=run, debug=run)
