"""Descriptor builders: optimization profiles and backing files.

Profiles only shape the configuration used by ``qemu-img create``; applying
one to the descriptor of an already created image does not change the file.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from pydantic import ValidationError

from qimage.errors import ConfigurationError, NotFoundError
from qimage.logging import get_logger
from qimage.models import (
    CIPHER_ALGORITHM_AES256,
    CIPHER_FORMAT_LUKS,
    CIPHER_HASH_ALGORITHM_SHA256,
    CIPHER_MODE_XTS,
    DEFAULT_CLUSTER_SIZE_KB,
    DEFAULT_REFCOUNT_BITS,
    IVGEN_ALGORITHM_PLAIN64,
    IVGEN_HASH_ALGORITHM_SHA256,
    CompatLevel,
    ImageDescriptor,
    Preallocation,
)

log = get_logger(__name__)

SPEED_ITER_TIME_MS = 1000
SIZE_ITER_TIME_MS = 2000

# Fields a user profile is never allowed to override.
_IDENTITY_FIELDS = {"path", "format", "size", "secret", "encrypted"}


def _cipher_suite(iter_time_ms: int) -> Dict[str, Any]:
    return {
        "cipher_algorithm": CIPHER_ALGORITHM_AES256,
        "cipher_hash_alg": CIPHER_HASH_ALGORITHM_SHA256,
        "cipher_format": CIPHER_FORMAT_LUKS,
        "cipher_mode": CIPHER_MODE_XTS,
        "ivgen_alg": IVGEN_ALGORITHM_PLAIN64,
        "ivgen_hash_alg": IVGEN_HASH_ALGORITHM_SHA256,
        "encrypt_iter_time": iter_time_ms,
    }


def optimize_speed(image: ImageDescriptor) -> ImageDescriptor:
    """Tune a new image for write throughput.

    Larger clusters, lazy refcounts and full preallocation; encrypted images
    get a short key-derivation time for faster unlock.
    """
    update: Dict[str, Any] = {
        "lazy_refcounts": True,
        "compat_level": CompatLevel.QCOW3,
        "refcount_bits": 64,
        "cluster_size_kb": 1024,
        "extended_l2": True,
        "preallocation": Preallocation.FULL,
    }
    if image.encrypted:
        update.update(_cipher_suite(SPEED_ITER_TIME_MS))
    return image.model_copy(update=update)


def optimize_size(image: ImageDescriptor) -> ImageDescriptor:
    """Tune a new image for a small on-disk footprint.

    Baseline clusters and refcounts, metadata-only preallocation; encrypted
    images get a longer key-derivation time.
    """
    update: Dict[str, Any] = {
        "lazy_refcounts": False,
        # extended_l2 needs the v3 header
        "compat_level": CompatLevel.QCOW3,
        "refcount_bits": DEFAULT_REFCOUNT_BITS,
        "cluster_size_kb": DEFAULT_CLUSTER_SIZE_KB,
        "extended_l2": True,
        "preallocation": Preallocation.METADATA,
    }
    if image.encrypted:
        update.update(_cipher_suite(SIZE_ITER_TIME_MS))
    return image.model_copy(update=update)


def with_backing_file(image: ImageDescriptor, backing_file: str) -> ImageDescriptor:
    """Return a copy of ``image`` recording only differences from ``backing_file``.

    The existence check is a point-in-time ``stat``; the file may disappear
    before the image is created.
    """
    if not os.path.exists(backing_file):
        raise NotFoundError(f"backing file not found: {backing_file}", backing_file)
    return image.model_copy(update={"backing_file": backing_file})


BUILTIN_PROFILES: Dict[str, Callable[[ImageDescriptor], ImageDescriptor]] = {
    "speed": optimize_speed,
    "size": optimize_size,
}


def load_profile(profile_name: str, search_paths: Optional[List[Path]] = None) -> Optional[Dict[str, Any]]:
    """Load profile YAML from extra search paths, .qimage.d/ and ~/.qimage.d/"""
    profile_paths = [
        Path.cwd() / ".qimage.d" / f"{profile_name}.yaml",
        Path.home() / ".qimage.d" / f"{profile_name}.yaml",
    ]

    for base in reversed(search_paths or []):
        profile_paths.insert(0, Path(base) / f"{profile_name}.yaml")

    for profile_path in profile_paths:
        if profile_path.exists():
            try:
                data = yaml.safe_load(profile_path.read_text())
            except yaml.YAMLError as e:
                raise ConfigurationError(f"invalid profile YAML {profile_path}: {e}")
            log.debug("profile.loaded", profile=profile_name, path=str(profile_path))
            return data if data is not None else {}

    return None


def apply_profile(
    image: ImageDescriptor,
    profile_name: str,
    *,
    search_paths: Optional[List[Path]] = None,
) -> ImageDescriptor:
    """Apply a built-in or YAML profile OVER the descriptor (profile wins)."""
    builtin = BUILTIN_PROFILES.get(profile_name)
    if builtin is not None:
        return builtin(image)

    profile = load_profile(profile_name, search_paths)
    if profile is None:
        raise ConfigurationError(f"unknown profile: {profile_name}")
    if not isinstance(profile, dict):
        raise ConfigurationError(f"profile '{profile_name}' must be a YAML mapping")

    forbidden = sorted(_IDENTITY_FIELDS.intersection(profile))
    if forbidden:
        raise ConfigurationError(
            f"profile '{profile_name}' cannot override: {', '.join(forbidden)}"
        )

    unknown = sorted(set(profile) - set(ImageDescriptor.model_fields))
    if unknown:
        raise ConfigurationError(
            f"profile '{profile_name}' has unknown fields: {', '.join(unknown)}"
        )

    merged = image.model_dump()
    merged.update(profile)
    try:
        return ImageDescriptor.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"invalid profile '{profile_name}': {e}")
