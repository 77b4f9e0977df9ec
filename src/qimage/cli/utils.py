#!/usr/bin/env python3
"""
Shared utilities for the qimage CLI.
"""

import os
import re
from pathlib import Path

import questionary
from questionary import Style
from rich.console import Console

from qimage.backends.qemu_img import QemuImg
from qimage.config import QemuImgSettings
from qimage.errors import ConfigurationError
from qimage.logging import configure_logging
from qimage.models import ImageDescriptor

custom_style = Style(
    [
        ("qmark", "fg:cyan bold"),
        ("question", "bold"),
        ("answer", "fg:green"),
    ]
)

console = Console()

_SIZE_RE = re.compile(r"^\s*(\d+)\s*([KMGTP]?)(i?B)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 0, "K": 1, "M": 2, "G": 3, "T": 4, "P": 5}


def parse_size(value: str) -> int:
    """Parse ``10G``/``512M``/``1024`` into bytes (binary units)."""
    match = _SIZE_RE.match(value)
    if not match:
        raise ValueError(f"Invalid size: {value}")
    number, unit = int(match.group(1)), match.group(2).upper()
    return number * 1024 ** _SIZE_UNITS[unit]


def format_bytes(size: int) -> str:
    """Human readable binary size."""
    value = float(size)
    for unit in ["B", "KiB", "MiB", "GiB", "TiB"]:
        if value < 1024 or unit == "TiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def load_settings(args) -> QemuImgSettings:
    """Load settings and configure logging for a CLI run."""
    settings = QemuImgSettings.load(getattr(args, "config", None))
    if getattr(args, "verbose", False):
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(
        level=settings.log_level,
        json_output=settings.json_logs,
        log_file=settings.log_file,
    )
    return settings


def get_tool(args) -> QemuImg:
    return QemuImg(settings=load_settings(args))


def resolve_secret(args, required: bool = False) -> str:
    """Read the image secret from ``--secret-env`` or prompt for it.

    Secrets are never accepted as plain command-line values.
    """
    env_name = getattr(args, "secret_env", None)
    if env_name:
        secret = os.environ.get(env_name, "")
        if not secret:
            raise ConfigurationError(f"environment variable {env_name} is empty or unset")
        return secret

    if not required:
        return ""

    secret = questionary.password("Enter image secret:", style=custom_style).ask()
    if not secret:
        raise ConfigurationError("no secret provided")
    return secret


def open_from_args(tool: QemuImg, args) -> ImageDescriptor:
    """Open the image named by ``args.path``, encrypted when asked to."""
    encrypted = getattr(args, "encrypted", False) or bool(getattr(args, "secret_env", None))
    if encrypted:
        return tool.open_encrypted_image(args.path, resolve_secret(args, required=True))
    return tool.open_image(args.path)


def add_secret_arguments(parser, help_text: str = "Image is encrypted") -> None:
    parser.add_argument("--encrypted", "-e", action="store_true", help=help_text)
    parser.add_argument(
        "--secret-env",
        metavar="VAR",
        help="Read the encryption secret from this environment variable",
    )


def add_common_arguments(parser) -> None:
    parser.add_argument("--config", "-c", type=Path, help="Settings file or directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
