#!/usr/bin/env python3
"""
Argument parsers for the qimage CLI.
"""

import argparse
from typing import List, Optional

from qimage import __version__
from qimage.cli.image_commands import cmd_create, cmd_info, cmd_rebase
from qimage.cli.snapshot_commands import (
    cmd_snapshot_create,
    cmd_snapshot_delete,
    cmd_snapshot_list,
    cmd_snapshot_restore,
)
from qimage.cli.utils import add_common_arguments, add_secret_arguments, console
from qimage.errors import QImageError
from qimage.models import CompatLevel, ImageFormat, Preallocation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qimage", description="Create, inspect and snapshot disk images with qemu-img"
    )
    parser.add_argument("--version", action="version", version=f"qimage {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Create command
    create_parser = subparsers.add_parser("create", help="Create a disk image")
    create_parser.add_argument("path", help="Image file to create")
    create_parser.add_argument("size", help="Virtual size, e.g. 10G, 512M or bytes")
    create_parser.add_argument(
        "--format",
        "-f",
        default=ImageFormat.QCOW2.value,
        choices=[f.value for f in ImageFormat],
        help="Image format (default: qcow2)",
    )
    create_parser.add_argument(
        "--encrypt", action="store_true", help="Encrypt the image with LUKS (qcow2 only)"
    )
    create_parser.add_argument(
        "--secret-env",
        metavar="VAR",
        help="Read the encryption secret from this environment variable",
    )
    create_parser.add_argument(
        "--profile", "-p", help="Apply a profile: speed, size or a YAML profile name"
    )
    create_parser.add_argument("--backing-file", "-b", help="Record only differences from this image")
    create_parser.add_argument(
        "--preallocation", choices=[p.value for p in Preallocation], help="Preallocation mode"
    )
    create_parser.add_argument("--cluster-size-kb", type=int, help="Cluster size in KB")
    create_parser.add_argument("--refcount-bits", type=int, help="Refcount width in bits")
    create_parser.add_argument(
        "--compat", choices=[c.value for c in CompatLevel], help="qcow2 compatibility level"
    )
    create_parser.add_argument("--lazy-refcounts", action="store_true", help="Enable lazy refcounts")
    add_common_arguments(create_parser)
    create_parser.set_defaults(func=cmd_create)

    # Info command
    info_parser = subparsers.add_parser("info", help="Show image information")
    info_parser.add_argument("path", help="Image file")
    info_parser.add_argument("--json", action="store_true", help="Print JSON")
    add_secret_arguments(info_parser)
    add_common_arguments(info_parser)
    info_parser.set_defaults(func=cmd_info)

    # Rebase command
    rebase_parser = subparsers.add_parser("rebase", help="Change the backing file of an image")
    rebase_parser.add_argument("path", help="Image file")
    rebase_parser.add_argument("backing_file", help="New backing file")
    add_secret_arguments(rebase_parser)
    add_common_arguments(rebase_parser)
    rebase_parser.set_defaults(func=cmd_rebase)

    # Snapshot commands
    snapshot_parser = subparsers.add_parser("snapshot", help="Manage internal snapshots")
    snapshot_sub = snapshot_parser.add_subparsers(dest="snapshot_command", help="Snapshot commands")

    for name, help_text, func in [
        ("create", "Create a snapshot", cmd_snapshot_create),
        ("restore", "Revert the image to a snapshot", cmd_snapshot_restore),
        ("delete", "Delete a snapshot", cmd_snapshot_delete),
    ]:
        sub = snapshot_sub.add_parser(name, help=help_text)
        sub.add_argument("path", help="Image file")
        sub.add_argument("name", help="Snapshot name")
        add_secret_arguments(sub)
        add_common_arguments(sub)
        sub.set_defaults(func=func)

    snap_list = snapshot_sub.add_parser("list", help="List snapshots")
    snap_list.add_argument("path", help="Image file")
    add_secret_arguments(snap_list)
    add_common_arguments(snap_list)
    snap_list.set_defaults(func=cmd_snapshot_list)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        return 1
    except (QImageError, ValueError) as e:
        console.print(f"[red]❌ Error: {e}[/]")
        return 1

    return 0
