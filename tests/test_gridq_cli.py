# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

from click.testing import CliRunner

from gridq_lib import __version__, cli


def test_version():
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_help_lists_commands():
    result = CliRunner().invoke(cli, [])

    assert result.exit_code == 0
    for command in ("submit", "status", "cancel", "queues", "copy"):
        assert command in result.output


def test_subcommand_help():
    for command in ("submit", "status", "cancel", "queues", "copy"):
        result = CliRunner().invoke(cli, [command, "-h"])

        assert result.exit_code == 0, command
        assert "Usage" in result.output or "usage" in result.output.lower()
