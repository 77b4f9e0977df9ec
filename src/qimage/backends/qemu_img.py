"""qemu-img backed image operations."""

import os
from typing import List, Optional

from qimage.config import QemuImgSettings
from qimage.errors import ConfigurationError, ExternalToolError, NotFoundError
from qimage.interfaces.process import ProcessResult, ProcessRunner
from qimage.logging import get_logger, log_operation
from qimage.models import ImageDescriptor, ImageFormat, ImageInfo, Snapshot
from qimage.translator import (
    SnapshotOp,
    find_snapshot_by_name,
    one_line,
    parse_info,
    redact,
    render_create,
    render_info,
    render_rebase,
    render_snapshot,
)

from .subprocess_runner import SubprocessRunner

log = get_logger(__name__)


class QemuImg:
    """Run image operations through the qemu-img executable.

    Every call blocks until qemu-img exits. Nothing is cached between calls;
    callers must serialize concurrent access to the same image file.
    """

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        settings: Optional[QemuImgSettings] = None,
    ):
        self.runner = runner or SubprocessRunner()
        self.settings = settings or QemuImgSettings()

    def _run(self, args: List[str]) -> ProcessResult:
        operation = args[0]
        command = [self.settings.qemu_img, *args]
        log.debug("qemu_img.exec", argv=redact(command))

        try:
            result = self.runner.run(command)
        except OSError as e:
            raise ExternalToolError(operation, str(e))

        if not result.success:
            raise ExternalToolError(operation, one_line(result.output), result.returncode)
        return result

    def create(self, image: ImageDescriptor) -> None:
        """Create the image file described by ``image``."""
        args = render_create(image)
        with log_operation(log, "qemu_img.create", path=image.path, format=image.format.value):
            self._run(args)

    def inspect(self, image: ImageDescriptor) -> ImageInfo:
        """Query qemu-img for the current state of ``image``."""
        with log_operation(log, "qemu_img.info", path=image.path):
            result = self._run(render_info(image))
            return parse_info(result.output, secret=image.secret)

    def snapshots(self, image: ImageDescriptor) -> List[Snapshot]:
        """Return a freshly queried list of the image's snapshots."""
        return list(self.inspect(image).snapshots)

    def create_snapshot(self, image: ImageDescriptor, name: str) -> Snapshot:
        """Create a snapshot and return it as reported by qemu-img.

        Raises:
            SnapshotLookupError: qemu-img succeeded but no snapshot called
                ``name`` is listed afterwards.
        """
        with log_operation(log, "qemu_img.snapshot.create", path=image.path, snapshot=name):
            self._run(render_snapshot(image, SnapshotOp.CREATE, name))
            return find_snapshot_by_name(self.snapshots(image), name)

    def restore_snapshot(self, image: ImageDescriptor, name: str) -> None:
        """Revert the image to the snapshot called ``name``."""
        with log_operation(log, "qemu_img.snapshot.restore", path=image.path, snapshot=name):
            self._run(render_snapshot(image, SnapshotOp.RESTORE, name))

    def delete_snapshot(self, image: ImageDescriptor, name: str) -> None:
        """Delete the snapshot called ``name``."""
        with log_operation(log, "qemu_img.snapshot.delete", path=image.path, snapshot=name):
            self._run(render_snapshot(image, SnapshotOp.DELETE, name))

    def rebase(self, image: ImageDescriptor, backing_file: str) -> ImageDescriptor:
        """Point the image at a new backing file.

        Returns a copy of ``image`` recording the new backing file.
        """
        with log_operation(log, "qemu_img.rebase", path=image.path, backing_file=backing_file):
            self._run(render_rebase(image, backing_file))
        return image.model_copy(update={"backing_file": backing_file})

    def _open(self, path: str, secret: str) -> ImageInfo:
        if not os.path.exists(path):
            raise NotFoundError(f"image not found: {path}", path)

        target = ImageDescriptor(path=path, format=ImageFormat.RAW, secret=secret, encrypted=bool(secret))
        return self.inspect(target)

    @staticmethod
    def _descriptor_from_info(path: str, secret: str, info: ImageInfo) -> ImageDescriptor:
        try:
            image_format = ImageFormat(info.format)
        except ValueError:
            raise ConfigurationError(f"unsupported image format reported: {info.format}")

        return ImageDescriptor(
            path=path,
            format=image_format,
            size=info.size,
            secret=secret,
            encrypted=info.encrypted,
            backing_file=info.backing_file,
        )

    def open_image(self, path: str) -> ImageDescriptor:
        """Build a descriptor for an existing, unencrypted image."""
        info = self._open(path, "")
        if info.encrypted:
            raise ConfigurationError("image is encrypted but secret was not provided")
        return self._descriptor_from_info(path, "", info)

    def open_encrypted_image(self, path: str, secret: str) -> ImageDescriptor:
        """Build a descriptor for an existing encrypted image."""
        if not secret:
            raise ConfigurationError("cannot open encrypted image without secret")

        info = self._open(path, secret)
        if not info.reported_encrypted:
            raise ConfigurationError("image is not encrypted")
        return self._descriptor_from_info(path, secret, info)
