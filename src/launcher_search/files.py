"""Local file helpers used when presenting and opening results."""

import mimetypes
import os
import subprocess
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from launcher_search.logger import logging

logger = logging.getLogger(__name__)

MIME_COMMAND = ("file", "--mime-type", "-b")

OPEN_COMMANDS: dict[str, str] = {
    "darwin": "open",
    "win32": "explorer",
    "linux": "xdg-open",
}

EXTENSION_MIME_TYPES: dict[str, str] = {
    "rs": "text/x-rust",
    "js": "application/javascript",
    "ts": "application/javascript",
    "jsx": "application/javascript",
    "tsx": "application/javascript",
}
for _ext in ("png", "jpg", "jpeg", "gif"):
    EXTENSION_MIME_TYPES[_ext] = f"image/{_ext}"
for _ext in ("mp4", "avi", "mkv"):
    EXTENSION_MIME_TYPES[_ext] = f"video/{_ext}"
for _ext in ("mp3", "wav", "flac"):
    EXTENSION_MIME_TYPES[_ext] = f"audio/{_ext}"

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def expand_home(path: str) -> Path:
    if path.startswith("~/"):
        return Path.home() / path[2:]
    return Path(path)


def guess_mime_type(path: str) -> str:
    """Guess a MIME type without inspecting file contents."""
    target = expand_home(path)
    if target.is_dir():
        return "inode/directory"
    ext = target.suffix.lstrip(".").lower()
    if ext in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[ext]
    guessed, _ = mimetypes.guess_type(target.name)
    return guessed or "text/plain"


def mime_type(path: str) -> str:
    """
    Get the MIME type of a path using the ``file`` command.

    Falls back to an extension based guess when ``file`` is unavailable or fails.
    """
    if sys.platform in ("darwin", "linux"):
        try:
            result = subprocess.run(
                [*MIME_COMMAND, str(expand_home(path))],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.debug("Cannot run %s: %s", MIME_COMMAND[0], e)
        else:
            if result.returncode == 0 and result.stdout.strip():
                return result.stdout.strip()
    return guess_mime_type(path)


def _open_command() -> str:
    if sys.platform not in OPEN_COMMANDS:
        raise ValueError(f"Unsupported platform: {sys.platform}")
    return OPEN_COMMANDS[sys.platform]


def open_path(target: str) -> subprocess.Popen:
    """Open a file or directory with the default application."""
    command = _open_command()
    logger.info("Opening %s with %s", target, command)
    return subprocess.Popen(
        [command, str(expand_home(target))],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


def reveal_path(target: str) -> subprocess.Popen:
    """Show a path in the platform file manager."""
    path = expand_home(target)
    return open_path(str(path if path.is_dir() else path.parent))


def format_size(size: int) -> str:
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.1f} {SIZE_UNITS[unit]}"


def format_permissions(mode: int | None) -> str:
    """Render the owner/group/other permission bits, e.g. ``rwxr-x---``."""
    if mode is None:
        return "Unknown"

    def triad(bits: int) -> str:
        return (
            ("r" if bits & 4 else "-")
            + ("w" if bits & 2 else "-")
            + ("x" if bits & 1 else "-")
        )

    return triad((mode >> 6) & 7) + triad((mode >> 3) & 7) + triad(mode & 7)


@dataclass
class FileDetails:
    path: Path
    name: str
    mime: str
    size: str
    modified: datetime
    created: datetime
    permissions: str


def describe(path: str, mime: str | None = None) -> FileDetails:
    """Collect display details for a path. Raises OSError if it cannot be stat'ed."""
    target = expand_home(path)
    stat = os.lstat(target)
    created = getattr(stat, "st_birthtime", stat.st_ctime)
    return FileDetails(
        path=target,
        name=target.name or str(target),
        mime=mime or mime_type(str(target)),
        size=format_size(stat.st_size),
        modified=datetime.fromtimestamp(stat.st_mtime),
        created=datetime.fromtimestamp(created),
        permissions=format_permissions(stat.st_mode),
    )


def read_preview(path: str, mime: str | None) -> bytes | str | None:
    """Load a preview: raw bytes for images, text for text files."""
    if not mime:
        return None
    target = expand_home(path)
    if mime.startswith("image"):
        return target.read_bytes()
    if mime.startswith("text"):
        return target.read_text(encoding="utf-8", errors="replace")
    return None
