"""Builders for qemu-img output used across tests."""
import json

from qimage.interfaces.process import ProcessResult

GiB = 1 << 30


def info_json(
    format="qcow2",
    size=10 * GiB,
    encrypted=None,
    snapshots=None,
    **extra,
):
    """Build a qemu-img info JSON document."""
    data = {"format": format, "virtual-size": size, "filename": "disk.qcow2"}
    if encrypted is not None:
        data["encrypted"] = encrypted
    if snapshots is not None:
        data["snapshots"] = snapshots
    data.update(extra)
    return json.dumps(data)


def snapshot_entry(id, name, date_sec=1700000000, date_nsec=0, clock_sec=0, clock_nsec=0):
    return {
        "id": id,
        "name": name,
        "date-sec": date_sec,
        "date-nsec": date_nsec,
        "vm-clock-sec": clock_sec,
        "vm-clock-nsec": clock_nsec,
        "vm-state-size": 0,
    }


def ok(stdout=""):
    return ProcessResult(returncode=0, stdout=stdout)


def failed(output, returncode=1):
    return ProcessResult(returncode=returncode, stdout=output)
