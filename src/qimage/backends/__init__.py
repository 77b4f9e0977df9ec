"""Concrete qimage backends."""

from .qemu_img import QemuImg
from .subprocess_runner import SubprocessRunner

__all__ = ["QemuImg", "SubprocessRunner"]
