# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from io import StringIO
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from rich.console import Console

from gridq_lib.copy.cli import copy
from gridq_lib.copy.copier import Copier
from gridq_lib.core.config import CFG
from gridq_lib.core.error import PathAlreadyExistsError
from gridq_lib.core.properties import Properties
from gridq_lib.credentials import DefaultCredential
from gridq_lib.files import Copy, CopyMode, CopyStatus
from gridq_lib.files.local import LocalFileSystem


def test_copy_local_file(tmp_path):
    (tmp_path / "src.bin").write_bytes(b"z" * 100_000)

    result = CliRunner().invoke(copy, ["-l", str(tmp_path), "src.bin", "dst.bin"])

    assert result.exit_code == 0
    assert (tmp_path / "dst.bin").read_bytes() == b"z" * 100_000


def test_copy_existing_target_fails(tmp_path):
    (tmp_path / "src.txt").write_text("new")
    (tmp_path / "dst.txt").write_text("old")

    with patch("gridq_lib.copy.copier.logger") as mock_logger:
        result = CliRunner().invoke(copy, ["-l", str(tmp_path), "src.txt", "dst.txt"])

    assert result.exit_code == CFG.exit_codes.default
    assert isinstance(mock_logger.error.call_args.args[0], PathAlreadyExistsError)
    assert (tmp_path / "dst.txt").read_text() == "old"


def test_copy_resume_mode(tmp_path):
    (tmp_path / "src.txt").write_text("0123456789")
    (tmp_path / "dst.txt").write_text("01234")

    result = CliRunner().invoke(
        copy, ["-l", str(tmp_path), "-m", "RESUME", "--verify", "src.txt", "dst.txt"]
    )

    assert result.exit_code == 0
    assert (tmp_path / "dst.txt").read_text() == "0123456789"


def test_copy_invalid_mode():
    result = CliRunner().invoke(copy, ["-m", "move", "a", "b"])

    assert result.exit_code == 2


def test_copy_start_failure(tmp_path):
    with (
        patch("gridq_lib.copy.cli.Engine") as mock_engine,
        patch("gridq_lib.copy.cli.logger") as mock_logger,
    ):
        file_system = mock_engine.return_value.__enter__.return_value.newFileSystem
        file_system.return_value.copy.side_effect = PathAlreadyExistsError("exists")
        result = CliRunner().invoke(copy, ["-l", "sftp://cluster", "a", "b"])

    assert result.exit_code == CFG.exit_codes.default
    file_system.assert_called_once_with(None, "sftp://cluster", None, {})
    mock_logger.error.assert_called_once()


def test_copier_reports_progress(tmp_path):
    (tmp_path / "src.txt").write_text("data")
    fs = LocalFileSystem("local-fs-0", "", DefaultCredential(), Properties([]), str(tmp_path))
    try:
        status = Copier(fs, "src.txt", "dst.txt", CopyMode.CREATE, False).run(
            Console(file=StringIO(), force_terminal=False)
        )
    finally:
        fs.close()

    assert status.isDone()
    assert status.bytes_copied == 4
    assert Copier.report(status) == 0


def test_copier_report_error():
    status = MagicMock(spec=CopyStatus)
    status.hasException.return_value = True
    status.getException.return_value = PathAlreadyExistsError("exists")

    with patch("gridq_lib.copy.copier.logger") as mock_logger:
        assert Copier.report(status) == CFG.exit_codes.default

    mock_logger.error.assert_called_once()


def test_copier_report_success_logs_paths():
    status = MagicMock(spec=CopyStatus)
    status.hasException.return_value = False
    status.getCopy.return_value = Copy("COPY-0", "/a", "/b")
    status.bytes_copied = 10

    with patch("gridq_lib.copy.copier.logger") as mock_logger:
        assert Copier.report(status) == 0

    mock_logger.info.assert_called_once_with("Copied '/a' to '/b' (10 bytes).")
