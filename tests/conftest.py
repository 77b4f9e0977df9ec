"""
Pytest fixtures and configuration for qimage tests.
"""
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from qimage.backends.qemu_img import QemuImg
from qimage.interfaces.process import ProcessResult, ProcessRunner


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def image_file(temp_dir):
    """An existing (empty) image file path."""
    path = temp_dir / "disk.qcow2"
    path.write_bytes(b"")
    return str(path)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing without actual command execution."""
    with patch("subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(returncode=0, stdout="", stderr=None)
        yield mock_run


@pytest.fixture
def runner():
    """A ProcessRunner double that succeeds with empty output."""
    mock = MagicMock(spec=ProcessRunner)
    mock.run.return_value = ProcessResult(returncode=0, stdout="")
    return mock


@pytest.fixture
def tool(runner):
    return QemuImg(runner=runner)
