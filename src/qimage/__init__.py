"""
qimage - build qemu-img invocations from image descriptors and parse its output.

Describe a disk image (format, geometry, encryption), render it into the
argument list qemu-img expects, and read qemu-img's JSON reports back into
descriptors and snapshots.
"""

__version__ = "0.1.0"

from qimage.backends.qemu_img import QemuImg
from qimage.errors import (
    ConfigurationError,
    ErrorKind,
    ExternalToolError,
    MalformedOutputError,
    NotFoundError,
    QImageError,
    SnapshotLookupError,
)
from qimage.models import (
    CompatLevel,
    ImageDescriptor,
    ImageFormat,
    ImageInfo,
    Preallocation,
    Snapshot,
    new_encrypted_image,
    new_image,
)
from qimage.profiles import apply_profile, optimize_size, optimize_speed, with_backing_file

__all__ = [
    "QemuImg",
    "ConfigurationError",
    "ErrorKind",
    "ExternalToolError",
    "MalformedOutputError",
    "NotFoundError",
    "QImageError",
    "SnapshotLookupError",
    "CompatLevel",
    "ImageDescriptor",
    "ImageFormat",
    "ImageInfo",
    "Preallocation",
    "Snapshot",
    "new_encrypted_image",
    "new_image",
    "apply_profile",
    "optimize_size",
    "optimize_speed",
    "with_backing_file",
    "__version__",
]
