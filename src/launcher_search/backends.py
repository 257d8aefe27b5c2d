"""Search backend registry and configuration."""

import os
from dataclasses import dataclass, field
from typing import Literal

from launcher_search.backend.client import BackendClient, MimeResolver
from launcher_search.backend.codec import get_codec
from launcher_search.backend.session import StderrMode


@dataclass
class BackendConfig:
    """Configuration for a search backend executable."""

    name: str  # Short name: "pop-launcher"
    command: str  # Executable looked up on PATH
    protocol: Literal["json", "text"]
    args: tuple[str, ...] = field(default_factory=tuple)
    stderr: StderrMode = "null"
    query_prefix: str = ""  # Prepended to every query, selects a launcher plugin
    resolve_mime: bool = False  # Backend reports bare paths, look MIME types up locally


SUPPORTED_BACKENDS: dict[str, BackendConfig] = {
    "pop-launcher": BackendConfig(
        name="pop-launcher",
        command="pop-launcher",
        protocol="json",
    ),
    "pop-find": BackendConfig(
        name="pop-find",
        command="pop-launcher",
        protocol="json",
        query_prefix="find ",
    ),
    "goldfish": BackendConfig(
        name="goldfish",
        command="goldfish",
        protocol="text",
        resolve_mime=True,
    ),
    "gf": BackendConfig(
        name="gf",
        command="gf",
        protocol="text",
        resolve_mime=True,
    ),
}

DEFAULT_BACKEND = "pop-launcher"

ENV_VAR_NAME = "LAUNCHER_SEARCH_BACKEND"


def get_backend_config(backend_name: str | None = None) -> BackendConfig:
    """
    Get the configuration for the specified backend.

    Args:
        backend_name: The name of the backend. If None, uses the environment variable
                      LAUNCHER_SEARCH_BACKEND, falling back to DEFAULT_BACKEND.

    Returns:
        The backend configuration.

    Raises:
        ValueError: If the backend name is not supported.
    """
    if backend_name is None:
        backend_name = os.environ.get(ENV_VAR_NAME, DEFAULT_BACKEND)

    if backend_name not in SUPPORTED_BACKENDS:
        supported = ", ".join(SUPPORTED_BACKENDS.keys())
        raise ValueError(f"Unsupported backend: {backend_name}. Supported backends: {supported}")

    return SUPPORTED_BACKENDS[backend_name]


def create_client(config: BackendConfig, mime_resolver: MimeResolver | None = None) -> BackendClient:
    """
    Build an unconnected client for a backend.

    ``mime_resolver`` is only used by backends that report bare paths; it
    defaults to ``launcher_search.files.mime_type``.
    """
    if config.resolve_mime and mime_resolver is None:
        from launcher_search.files import mime_type

        mime_resolver = mime_type

    return BackendClient(
        config.command,
        get_codec(config.protocol),
        args=config.args,
        stderr=config.stderr,
        query_prefix=config.query_prefix,
        mime_resolver=mime_resolver if config.resolve_mime else None,
    )
