#!/usr/bin/env python3
"""
Image commands for the qimage CLI.
"""

import json

from rich.table import Table

from qimage.cli.utils import (
    console,
    format_bytes,
    get_tool,
    open_from_args,
    parse_size,
    resolve_secret,
)
from qimage.models import ImageDescriptor, new_encrypted_image, new_image
from qimage.profiles import apply_profile, with_backing_file


def build_descriptor(args, settings):
    """Build the descriptor described by ``qimage create`` arguments."""
    size = parse_size(args.size)

    if args.encrypt:
        image = new_encrypted_image(args.path, args.format, resolve_secret(args, required=True), size)
    else:
        image = new_image(args.path, args.format, size)

    if args.profile:
        image = apply_profile(image, args.profile, search_paths=settings.profile_paths)

    if args.backing_file:
        image = with_backing_file(image, args.backing_file)

    update = {}
    if args.preallocation:
        update["preallocation"] = args.preallocation
    if args.cluster_size_kb:
        update["cluster_size_kb"] = args.cluster_size_kb
    if args.refcount_bits:
        update["refcount_bits"] = args.refcount_bits
    if args.compat:
        update["compat_level"] = args.compat
    if args.lazy_refcounts:
        update["lazy_refcounts"] = True
    if update:
        image = ImageDescriptor.model_validate({**image.model_dump(), **update})

    return image


def cmd_create(args):
    """Create a disk image."""
    tool = get_tool(args)
    image = build_descriptor(args, tool.settings)
    tool.create(image)
    console.print(
        f"[green]✅ Created {image.format.value} image {image.path} ({format_bytes(image.size)})[/]"
    )


def cmd_info(args):
    """Show image information."""
    tool = get_tool(args)
    image = open_from_args(tool, args)
    info = tool.inspect(image)

    if args.json:
        console.print_json(
            json.dumps(
                {
                    "path": image.path,
                    "format": info.format,
                    "size": info.size,
                    "encrypted": info.encrypted,
                    "backing_file": info.backing_file or None,
                    "snapshots": [
                        {"id": s.id, "name": s.name, "date": s.date.isoformat()}
                        for s in info.snapshots
                    ],
                }
            )
        )
        return

    table = Table(title=image.path, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Format", info.format)
    table.add_row("Virtual size", f"{format_bytes(info.size)} ({info.size} bytes)")
    table.add_row("Encrypted", "yes" if info.encrypted else "no")
    table.add_row("Backing file", info.backing_file or "-")
    table.add_row("Snapshots", str(len(info.snapshots)))
    console.print(table)


def cmd_rebase(args):
    """Change the backing file of an image."""
    tool = get_tool(args)
    image = open_from_args(tool, args)
    image = tool.rebase(image, args.backing_file)
    console.print(f"[green]✅ {image.path} now backed by {image.backing_file}[/]")
