#!/usr/bin/env python3
"""
Snapshot commands for the qimage CLI.
"""

from rich.table import Table

from qimage.cli.utils import console, get_tool, open_from_args


def cmd_snapshot_create(args):
    """Create an internal snapshot."""
    tool = get_tool(args)
    image = open_from_args(tool, args)
    snapshot = tool.create_snapshot(image, args.name)
    console.print(
        f"[green]✅ Created snapshot {snapshot.name} with ID {snapshot.id} "
        f"at {snapshot.date.isoformat()}[/]"
    )


def cmd_snapshot_list(args):
    """List image snapshots."""
    tool = get_tool(args)
    image = open_from_args(tool, args)
    snapshots = tool.snapshots(image)

    if not snapshots:
        console.print(f"[dim]No snapshots found in '{image.path}'[/]")
        return

    table = Table(title=f"Snapshots in {image.path}")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Created", style="blue")
    table.add_column("VM clock", style="magenta")

    for snapshot in snapshots:
        table.add_row(
            str(snapshot.id),
            snapshot.name,
            snapshot.date.strftime("%Y-%m-%d %H:%M:%S"),
            snapshot.vm_clock.strftime("%H:%M:%S"),
        )

    console.print(table)


def cmd_snapshot_restore(args):
    """Revert an image to a snapshot."""
    tool = get_tool(args)
    image = open_from_args(tool, args)
    tool.restore_snapshot(image, args.name)
    console.print(f"[green]✅ Snapshot {args.name} restored[/]")


def cmd_snapshot_delete(args):
    """Delete a snapshot."""
    tool = get_tool(args)
    image = open_from_args(tool, args)
    tool.delete_snapshot(image, args.name)
    console.print(f"[green]✅ Snapshot {args.name} deleted[/]")
