#!/usr/bin/env python3
"""
Pydantic models describing qemu-img disk images.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from qimage.errors import ConfigurationError


class ImageFormat(str, Enum):
    """Disk image formats understood by qemu-img."""

    RAW = "raw"
    CLOOP = "cloop"
    COW = "cow"
    QCOW = "qcow"
    QCOW2 = "qcow2"
    VMDK = "vmdk"
    VDI = "vdi"
    VHDX = "vhdx"
    VPC = "vpc"


class CompatLevel(str, Enum):
    """qcow2 compatibility level (format major version)."""

    QCOW2 = "0.10"
    QCOW3 = "1.1"


class Preallocation(str, Enum):
    """How much storage is reserved at creation time."""

    METADATA = "metadata"
    FALLOC = "falloc"
    FULL = "full"


CIPHER_ALGORITHM_AES256 = "aes-256"
CIPHER_HASH_ALGORITHM_SHA256 = "sha256"
CIPHER_FORMAT_LUKS = "luks"
CIPHER_FORMAT_AES = "aes"
CIPHER_MODE_XTS = "xts"
IVGEN_ALGORITHM_PLAIN64 = "plain64"
IVGEN_HASH_ALGORITHM_SHA256 = "sha256"

# Baseline geometry qemu-img applies when no option is given.
DEFAULT_CLUSTER_SIZE_KB = 64
DEFAULT_REFCOUNT_BITS = 16


class ImageDescriptor(BaseModel):
    """Configuration and last-known state of a disk image.

    Descriptors are immutable; builders in :mod:`qimage.profiles` return
    updated copies. A descriptor never holds a snapshot list, use
    :meth:`qimage.backends.qemu_img.QemuImg.snapshots` for a fresh one.

    The model checks field types only. Descriptors of existing images mirror
    whatever qemu-img reports, so cross-field rules are not enforced here:
    "encryption needs qcow2" is checked by :func:`new_encrypted_image` and
    again by :func:`qimage.translator.render_create`, which every create
    goes through.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(description="Image location, used verbatim")
    format: ImageFormat = Field(description="Image format")
    size: int = Field(default=0, ge=0, description="Image size in bytes")
    secret: str = Field(default="", repr=False, description="Encryption secret")
    encrypted: bool = Field(default=False, description="Image is encrypted")
    backing_file: str = Field(default="", description="Backing file path")

    # Optimization knobs
    cluster_size_kb: int = Field(default=DEFAULT_CLUSTER_SIZE_KB, ge=1)
    refcount_bits: int = Field(default=DEFAULT_REFCOUNT_BITS, ge=1)
    lazy_refcounts: bool = False
    extended_l2: bool = False
    preallocation: Optional[Preallocation] = None
    compat_level: Optional[CompatLevel] = None

    # Encryption sub-configuration, only used when encrypted
    cipher_algorithm: str = ""
    cipher_mode: str = ""
    cipher_format: str = ""
    cipher_hash_alg: str = ""
    encrypt_iter_time: int = Field(default=0, ge=0, description="PBKDF iteration time (ms)")
    ivgen_alg: str = ""
    ivgen_hash_alg: str = ""


def new_image(path: str, format: ImageFormat, size: int) -> ImageDescriptor:
    """Build a descriptor for a new plain image with baseline geometry."""
    return ImageDescriptor(path=path, format=format, size=size)


def new_encrypted_image(
    path: str, format: ImageFormat, secret: str, size: int
) -> ImageDescriptor:
    """Build a descriptor for a new encrypted image.

    Raises:
        ConfigurationError: if ``format`` is not qcow2. The populated
            descriptor is available as ``error.descriptor``.
    """
    image = ImageDescriptor(path=path, format=format, size=size, secret=secret, encrypted=True)

    if image.format != ImageFormat.QCOW2:
        raise ConfigurationError(
            "encrypted volumes must be of the type 'qcow2'", descriptor=image
        )

    return image


def _unix_time(seconds: int, nanoseconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(
        microseconds=nanoseconds // 1000
    )


@dataclass(frozen=True)
class Snapshot:
    """Internal snapshot of an image as reported by qemu-img."""

    id: int
    name: str
    date: datetime
    vm_clock: datetime

    @classmethod
    def from_components(
        cls,
        id: int,
        name: str,
        date_sec: int = 0,
        date_nsec: int = 0,
        vm_clock_sec: int = 0,
        vm_clock_nsec: int = 0,
    ) -> "Snapshot":
        """Create from the seconds/nanoseconds pairs qemu-img reports."""
        return cls(
            id=id,
            name=name,
            date=_unix_time(date_sec, date_nsec),
            vm_clock=_unix_time(vm_clock_sec, vm_clock_nsec),
        )


@dataclass(frozen=True)
class ImageInfo:
    """Parsed ``qemu-img info`` report."""

    format: str
    size: int
    encrypted: bool
    reported_encrypted: bool = False
    backing_file: str = ""
    snapshots: Tuple[Snapshot, ...] = field(default_factory=tuple)
