"""Translate image descriptors to qemu-img invocations and parse its output.

Everything here is pure: render functions return argument lists (without the
executable name) and parse functions turn tool output into values.

Security: encrypted invocations carry the secret inline in the
``--object secret,id=sec0,data=<secret>`` token, so it is visible to anything
that can read the host's process table. Use :func:`redact` before logging an
argument list.
"""

import json
import re
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Union

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from qimage.errors import ConfigurationError, MalformedOutputError, SnapshotLookupError
from qimage.models import (
    CIPHER_FORMAT_LUKS,
    DEFAULT_CLUSTER_SIZE_KB,
    DEFAULT_REFCOUNT_BITS,
    ImageDescriptor,
    ImageFormat,
    ImageInfo,
    Preallocation,
    Snapshot,
)

SECRET_ID = "sec0"
_SECRET_DATA_MARKER = "data="
_SNAPSHOT_ID_RE = re.compile(r"[+-]?[0-9]+")


class SnapshotOp(Enum):
    """Snapshot sub-command and its qemu-img flag."""

    CREATE = "-c"
    RESTORE = "-a"
    DELETE = "-d"


def _secret_object(image: ImageDescriptor) -> str:
    return f"secret,id={SECRET_ID},{_SECRET_DATA_MARKER}{image.secret}"


def _geometry_options(image: ImageDescriptor) -> List[str]:
    options = []
    if image.backing_file:
        options.append(f"backing_file={image.backing_file}")
    if image.compat_level is not None:
        options.append(f"compat={image.compat_level.value}")
    if image.cluster_size_kb != DEFAULT_CLUSTER_SIZE_KB:
        options.append(f"cluster_size={image.cluster_size_kb}K")
    if image.extended_l2:
        options.append("extended_l2=on")
    if image.lazy_refcounts:
        options.append("lazy_refcounts=on")
    preallocation = image.preallocation or Preallocation.METADATA
    options.append(f"preallocation={preallocation.value}")
    if image.refcount_bits != DEFAULT_REFCOUNT_BITS:
        options.append(f"refcount_bits={image.refcount_bits}")
    return options


def _encryption_options(image: ImageDescriptor) -> List[str]:
    options = [f"encrypt.key-secret={SECRET_ID}"]
    if image.encrypt_iter_time:
        options.append(f"encrypt.iter-time={image.encrypt_iter_time}")
    if image.ivgen_alg:
        options.append(f"encrypt.ivgen-alg={image.ivgen_alg}")
    if image.ivgen_hash_alg:
        options.append(f"encrypt.ivgen-hash-alg={image.ivgen_hash_alg}")
    if image.cipher_mode:
        options.append(f"encrypt.cipher-mode={image.cipher_mode}")
    if image.cipher_algorithm:
        options.append(f"encrypt.cipher-alg={image.cipher_algorithm}")
    if image.cipher_hash_alg:
        options.append(f"encrypt.hash-alg={image.cipher_hash_alg}")
    options.append(f"encrypt.format={image.cipher_format or CIPHER_FORMAT_LUKS}")
    return options


def render_create(image: ImageDescriptor) -> List[str]:
    """Render ``qemu-img create`` arguments for ``image``.

    Geometry options are only emitted when they differ from the format
    baseline, except preallocation which always appears (``metadata`` when
    unset). Path and size are always the last two arguments.
    """
    args = ["create"]
    options = []

    if image.encrypted:
        if image.format != ImageFormat.QCOW2:
            raise ConfigurationError(
                "encrypted volumes must be qcow2 format", descriptor=image
            )
        args.extend(["--object", _secret_object(image)])
        options.extend(_encryption_options(image))

    args.extend(["-f", image.format.value])
    options.extend(_geometry_options(image))

    for option in options:
        args.extend(["-o", option])

    args.extend([image.path, str(image.size)])
    return args


def render_snapshot(image: ImageDescriptor, op: SnapshotOp, name: str) -> List[str]:
    """Render ``qemu-img snapshot`` arguments.

    qemu-img keeps no session, so encrypted images re-state the secret and
    the LUKS options on every call.
    """
    if not image.encrypted:
        return ["snapshot", op.value, name, image.path]

    return [
        "snapshot",
        "--object",
        _secret_object(image),
        "--image-opts",
        op.value,
        name,
        f"encrypt.format={CIPHER_FORMAT_LUKS},encrypt.key-secret={SECRET_ID},"
        f"file.filename={image.path}",
    ]


def render_rebase(image: ImageDescriptor, backing_file: str) -> List[str]:
    """Render ``qemu-img rebase`` arguments."""
    return ["rebase", "-b", backing_file, image.path]


def render_info(image: ImageDescriptor) -> List[str]:
    """Render ``qemu-img info`` arguments asking for JSON output."""
    return ["info", "--output=json", image.path]


class _SnapshotEntry(BaseModel):
    # Checked by _snapshot_id; entries with a bad id are dropped, not rejected.
    id: Any = None
    name: Optional[StrictStr] = ""
    date_sec: StrictInt = Field(default=0, alias="date-sec")
    date_nsec: StrictInt = Field(default=0, alias="date-nsec")
    vm_clock_sec: StrictInt = Field(default=0, alias="vm-clock-sec")
    vm_clock_nsec: StrictInt = Field(default=0, alias="vm-clock-nsec")


class _InfoPayload(BaseModel):
    format: StrictStr
    virtual_size: StrictInt = Field(alias="virtual-size", ge=0)
    encrypted: StrictBool = False
    backing_filename: StrictStr = Field(default="", alias="backing-filename")
    snapshots: List[_SnapshotEntry] = Field(default_factory=list)

    @field_validator("snapshots", mode="before")
    @classmethod
    def null_snapshots_are_empty(cls, v):
        return [] if v is None else v


def _snapshot_id(value: Any) -> Optional[int]:
    """Decimal integer id, or None for anything else (bools, floats, "1_000")."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _SNAPSHOT_ID_RE.fullmatch(value):
        return int(value)
    return None


def parse_info(raw: Union[str, bytes], secret: str = "") -> ImageInfo:
    """Parse ``qemu-img info --output=json`` output.

    A non-empty ``secret`` forces ``encrypted`` to True whatever the tool
    reports. Snapshots whose id is not an integer are dropped, keeping the
    order of the others. Field types are checked strictly: ``"123"`` is not
    a size and ``"yes"`` is not a boolean.

    Raises:
        MalformedOutputError: if the output is not a JSON object of the
            expected shape, or a snapshot timestamp is out of range.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise MalformedOutputError("'qemu-img info' invalid json output")

    if not isinstance(data, dict):
        raise MalformedOutputError("'qemu-img info' output is not a JSON object")

    try:
        payload = _InfoPayload.model_validate(data)
    except ValidationError as e:
        raise MalformedOutputError(
            "'qemu-img info' unexpected output", diagnostic=str(e).replace("\n", " ")
        )

    snapshots = []
    for entry in payload.snapshots:
        snapshot_id = _snapshot_id(entry.id)
        if snapshot_id is None:
            continue
        try:
            snapshot = Snapshot.from_components(
                snapshot_id,
                entry.name or "",
                entry.date_sec,
                entry.date_nsec,
                entry.vm_clock_sec,
                entry.vm_clock_nsec,
            )
        except (OverflowError, ValueError, OSError) as e:
            raise MalformedOutputError(
                "'qemu-img info' snapshot timestamp out of range",
                diagnostic=f"snapshot {snapshot_id} ({entry.name}): {e}",
            )
        snapshots.append(snapshot)

    return ImageInfo(
        format=payload.format,
        size=payload.virtual_size,
        encrypted=True if secret else payload.encrypted,
        reported_encrypted=payload.encrypted,
        backing_file=payload.backing_filename,
        snapshots=tuple(snapshots),
    )


def find_snapshot_by_name(snapshots: Iterable[Snapshot], name: str) -> Snapshot:
    """Return the first snapshot called ``name``.

    qemu-img does not enforce unique names, so this is first-match.
    """
    for snapshot in snapshots:
        if snapshot.name == name:
            return snapshot
    raise SnapshotLookupError(f"snapshot not found: {name}", name)


def one_line(output: Union[str, bytes]) -> str:
    """Collapse multi-line tool output to a single line."""
    if isinstance(output, bytes):
        output = output.decode(errors="replace")
    return " ".join(line.strip() for line in output.splitlines() if line.strip())


def redact(args: Sequence[str]) -> List[str]:
    """Return a copy of ``args`` with inline secret data masked."""
    redacted = []
    for arg in args:
        if arg.startswith("secret,") and _SECRET_DATA_MARKER in arg:
            prefix = arg.split(_SECRET_DATA_MARKER, 1)[0]
            arg = f"{prefix}{_SECRET_DATA_MARKER}***"
        redacted.append(arg)
    return redacted
