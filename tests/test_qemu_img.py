#!/usr/bin/env python3
"""Tests for the qemu-img facade."""

import pytest

from helpers import GiB, failed, info_json, ok, snapshot_entry
from qimage.backends.qemu_img import QemuImg
from qimage.config import QemuImgSettings
from qimage.errors import (
    ConfigurationError,
    ErrorKind,
    ExternalToolError,
    MalformedOutputError,
    NotFoundError,
    SnapshotLookupError,
)
from qimage.models import ImageFormat, new_encrypted_image, new_image


def commands(runner):
    return [c.args[0] for c in runner.run.call_args_list]


class TestCreate:
    """Test image creation."""

    def test_runs_rendered_command(self, tool, runner):
        tool.create(new_image("test.qcow2", ImageFormat.QCOW2, 10 * GiB))
        assert commands(runner) == [[
            "qemu-img", "create", "-f", "qcow2", "-o", "preallocation=metadata",
            "test.qcow2", "10737418240",
        ]]

    def test_configured_executable(self, runner):
        tool = QemuImg(runner=runner, settings=QemuImgSettings(qemu_img="/opt/qemu/bin/qemu-img"))
        tool.create(new_image("test.qcow2", ImageFormat.QCOW2, GiB))
        assert commands(runner)[0][0] == "/opt/qemu/bin/qemu-img"

    def test_failure_collapses_output(self, tool, runner):
        runner.run.return_value = failed(
            "qemu-img: test.qcow2: Invalid option\nTry 'qemu-img --help'\n", returncode=1
        )
        with pytest.raises(ExternalToolError) as exc_info:
            tool.create(new_image("test.qcow2", ImageFormat.QCOW2, GiB))

        err = exc_info.value
        assert err.kind is ErrorKind.EXTERNAL_TOOL
        assert err.operation == "create"
        assert err.returncode == 1
        assert err.diagnostic == "qemu-img: test.qcow2: Invalid option Try 'qemu-img --help'"
        assert str(err) == f"'qemu-img create' output: {err.diagnostic}"

    def test_no_retry(self, tool, runner):
        runner.run.return_value = failed("busy")
        with pytest.raises(ExternalToolError):
            tool.create(new_image("test.qcow2", ImageFormat.QCOW2, GiB))
        assert runner.run.call_count == 1

    def test_encrypted_non_qcow2_never_runs(self, tool, runner):
        image = new_image("enc.raw", ImageFormat.RAW, GiB).model_copy(
            update={"encrypted": True, "secret": "s"}
        )
        with pytest.raises(ConfigurationError):
            tool.create(image)
        runner.run.assert_not_called()

    def test_missing_executable(self, tool, runner):
        runner.run.side_effect = FileNotFoundError(2, "No such file or directory", "qemu-img")
        with pytest.raises(ExternalToolError) as exc_info:
            tool.create(new_image("test.qcow2", ImageFormat.QCOW2, GiB))
        assert exc_info.value.returncode is None


class TestSnapshots:
    """Test snapshot operations."""

    def test_create_snapshot_returns_reported_snapshot(self, tool, runner):
        runner.run.side_effect = [
            ok(),
            ok(info_json(snapshots=[snapshot_entry("1", "old"), snapshot_entry("2", "new")])),
        ]
        image = new_image("disk.qcow2", ImageFormat.QCOW2, GiB)

        snapshot = tool.create_snapshot(image, "new")

        assert snapshot.id == 2
        assert snapshot.name == "new"
        assert commands(runner) == [
            ["qemu-img", "snapshot", "-c", "new", "disk.qcow2"],
            ["qemu-img", "info", "--output=json", "disk.qcow2"],
        ]

    def test_create_snapshot_missing_after_success(self, tool, runner):
        runner.run.side_effect = [ok(), ok(info_json(snapshots=[]))]
        with pytest.raises(SnapshotLookupError):
            tool.create_snapshot(new_image("disk.qcow2", ImageFormat.QCOW2, GiB), "new")

    def test_create_snapshot_tool_failure(self, tool, runner):
        runner.run.return_value = failed("qemu-img: Could not create snapshot 'new'")
        with pytest.raises(ExternalToolError) as exc_info:
            tool.create_snapshot(new_image("disk.qcow2", ImageFormat.QCOW2, GiB), "new")
        assert exc_info.value.operation == "snapshot"
        assert runner.run.call_count == 1

    def test_encrypted_create_snapshot(self, tool, runner):
        runner.run.side_effect = [ok(), ok(info_json(snapshots=[snapshot_entry("1", "s1")]))]
        image = new_encrypted_image("enc.qcow2", ImageFormat.QCOW2, "secret1", GiB)

        tool.create_snapshot(image, "s1")

        assert commands(runner)[0] == [
            "qemu-img", "snapshot", "--object", "secret,id=sec0,data=secret1", "--image-opts",
            "-c", "s1", "encrypt.format=luks,encrypt.key-secret=sec0,file.filename=enc.qcow2",
        ]

    def test_restore_and_delete(self, tool, runner):
        image = new_image("disk.qcow2", ImageFormat.QCOW2, GiB)
        tool.restore_snapshot(image, "s1")
        tool.delete_snapshot(image, "s1")
        assert commands(runner) == [
            ["qemu-img", "snapshot", "-a", "s1", "disk.qcow2"],
            ["qemu-img", "snapshot", "-d", "s1", "disk.qcow2"],
        ]

    def test_snapshots_always_requery(self, tool, runner):
        runner.run.side_effect = [
            ok(info_json(snapshots=[snapshot_entry("1", "a")])),
            ok(info_json(snapshots=[snapshot_entry("1", "a"), snapshot_entry("2", "b")])),
        ]
        image = new_image("disk.qcow2", ImageFormat.QCOW2, GiB)
        assert [s.name for s in tool.snapshots(image)] == ["a"]
        assert [s.name for s in tool.snapshots(image)] == ["a", "b"]
        assert runner.run.call_count == 2

    def test_snapshots_malformed(self, tool, runner):
        runner.run.return_value = ok("not json")
        with pytest.raises(MalformedOutputError):
            tool.snapshots(new_image("disk.qcow2", ImageFormat.QCOW2, GiB))


class TestRebase:
    """Test rebasing."""

    def test_rebase_returns_updated_copy(self, tool, runner):
        image = new_image("disk.qcow2", ImageFormat.QCOW2, GiB)
        rebased = tool.rebase(image, "base.qcow2")
        assert rebased.backing_file == "base.qcow2"
        assert image.backing_file == ""
        assert commands(runner) == [["qemu-img", "rebase", "-b", "base.qcow2", "disk.qcow2"]]

    def test_rebase_failure(self, tool, runner):
        runner.run.return_value = failed("qemu-img: Could not open 'base.qcow2'")
        with pytest.raises(ExternalToolError, match="'qemu-img rebase' output"):
            tool.rebase(new_image("disk.qcow2", ImageFormat.QCOW2, GiB), "base.qcow2")


class TestOpenImage:
    """Test opening existing images."""

    def test_open_plain(self, tool, runner, image_file):
        runner.run.return_value = ok(info_json(format="qcow2", size=20 * GiB))
        image = tool.open_image(image_file)
        assert image.path == image_file
        assert image.format is ImageFormat.QCOW2
        assert image.size == 20 * GiB
        assert image.encrypted is False

    def test_open_missing(self, tool, runner, temp_dir):
        with pytest.raises(NotFoundError):
            tool.open_image(str(temp_dir / "missing.qcow2"))
        runner.run.assert_not_called()

    def test_open_encrypted_without_secret(self, tool, runner, image_file):
        runner.run.return_value = ok(info_json(encrypted=True))
        with pytest.raises(ConfigurationError, match="secret was not provided"):
            tool.open_image(image_file)

    def test_open_unsupported_format(self, tool, runner, image_file):
        runner.run.return_value = ok(info_json(format="parallels"))
        with pytest.raises(ConfigurationError, match="unsupported image format"):
            tool.open_image(image_file)

    def test_open_encrypted(self, tool, runner, image_file):
        runner.run.return_value = ok(info_json(encrypted=True))
        image = tool.open_encrypted_image(image_file, "secret1")
        assert image.encrypted is True
        assert image.secret == "secret1"
        assert image.format is ImageFormat.QCOW2

    def test_open_encrypted_empty_secret(self, tool, runner, image_file):
        with pytest.raises(ConfigurationError, match="without secret"):
            tool.open_encrypted_image(image_file, "")
        runner.run.assert_not_called()

    def test_open_encrypted_on_plain_image(self, tool, runner, image_file):
        runner.run.return_value = ok(info_json(encrypted=False))
        with pytest.raises(ConfigurationError, match="not encrypted"):
            tool.open_encrypted_image(image_file, "secret1")


def test_default_runner_is_subprocess():
    from qimage.backends.subprocess_runner import SubprocessRunner

    assert isinstance(QemuImg().runner, SubprocessRunner)
