"""Tests for cmdorc_daemon.cli module."""

import sys
from io import StringIO
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cmdorc_daemon.cli import (
    DEFAULT_CONFIG_TEMPLATE,
    build_controller,
    create_default_config,
    main,
    parse_args,
)
from cmdorc_daemon.config import load_daemon_config
from cmdorc_daemon.session import MissingCapabilityError


class TestCreateDefaultConfig:
    """Tests for create_default_config function."""

    def test_create_default_config_success(self):
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.toml"
            assert create_default_config(config_path) is True
            assert config_path.read_text() == DEFAULT_CONFIG_TEMPLATE

    def test_create_default_config_already_exists(self):
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.toml"
            config_path.write_text("# Existing config")

            assert create_default_config(config_path) is False
            assert config_path.read_text() == "# Existing config"

    def test_create_default_config_creates_parent_dirs(self):
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "subdir" / "nested" / "config.toml"
            assert create_default_config(config_path) is True
            assert config_path.exists()

    def test_create_default_config_template_valid(self):
        with TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.toml"
            create_default_config(config_path)

            config = load_daemon_config(config_path)
            assert config.daemon is False
            assert config.listen_interval == 0.5
            assert "main.pdf" in config.ignore


class TestParseArgs:
    """Tests for parse_args function."""

    def test_parse_args_default(self):
        args = parse_args([])
        assert args.config == "config.toml"
        assert args.daemon is None
        assert args.listen_interval is None
        assert args.ignore == []

    def test_parse_args_daemon_flags(self):
        args = parse_args(["-d", "--listen-interval", "1.5", "--job", "slides", "--ignore", "a.pdf", "--ignore", "b"])
        assert args.daemon is True
        assert args.listen_interval == 1.5
        assert args.job == "slides"
        assert args.ignore == ["a.pdf", "b"]

    def test_parse_args_reads_sys_argv(self):
        with patch.object(sys, "argv", ["cmdorc-daemon", "-c", "custom.toml"]):
            assert parse_args().config == "custom.toml"

    def test_parse_args_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])
        assert exc_info.value.code == 0


class TestBuildController:
    def test_overrides_applied(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)
        args = parse_args(["-d", "--listen-interval", "2", "--job", "slides", "--ignore", "slides.pdf"])

        with patch("cmdorc_daemon.cli.DaemonController") as mock_controller:
            build_controller(args, config_path)

        config = mock_controller.call_args.kwargs["config"]
        assert config.daemon is True
        assert config.listen_interval == 2.0
        assert config.job == "slides"
        assert config.tmpdir == tmp_path.resolve() / ".cmdorc-tmp" / "slides"
        assert config.ignore[-1] == "slides.pdf"

    def test_job_override_keeps_explicit_tmpdir(self, tmp_path):
        config_path = tmp_path / "config.toml"
        config_path.write_text('[daemon]\njob = "main"\ntmpdir = "build"\n')

        with patch("cmdorc_daemon.cli.DaemonController") as mock_controller:
            build_controller(parse_args(["--job", "aux"]), config_path)

        config = mock_controller.call_args.kwargs["config"]
        assert config.job == "aux"
        assert config.tmpdir == tmp_path.resolve() / "build"

    def test_rejects_non_positive_interval(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)
        with pytest.raises(ValueError):
            build_controller(parse_args(["--listen-interval", "0"]), config_path)


class TestMain:
    """Tests for main function."""

    def run_main(self, argv, controller=None):
        with patch("cmdorc_daemon.cli.DaemonController") as mock_controller:
            instance = controller or MagicMock(run=AsyncMock(return_value=0))
            mock_controller.return_value = instance
            with pytest.raises(SystemExit) as exc_info:
                main(argv)
        return exc_info.value.code, mock_controller

    def test_main_with_existing_config(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)

        code, mock_controller = self.run_main(["-c", str(config_path)])

        assert code == 0
        assert mock_controller.call_args.args[0] == config_path.resolve()

    def test_main_auto_creates_config(self, tmp_path):
        config_path = tmp_path / "config.toml"
        with patch("builtins.print") as mock_print:
            self.run_main(["-c", str(config_path)])

        assert config_path.exists()
        assert "Created default config at:" in mock_print.call_args[0][0]

    def test_main_build_failure_exit_code(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)
        code, _ = self.run_main(["-c", str(config_path)], MagicMock(run=AsyncMock(return_value=1)))
        assert code == 1

    def test_main_keyboard_interrupt(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)
        code, _ = self.run_main(["-c", str(config_path)], MagicMock(run=AsyncMock(side_effect=KeyboardInterrupt())))
        assert code == 130

    def test_main_missing_capability(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)
        controller = MagicMock(run=AsyncMock(side_effect=MissingCapabilityError("needs watchdog")))
        with patch("sys.stderr", new_callable=StringIO) as stderr:
            code, _ = self.run_main(["-c", str(config_path), "-d"], controller)
        assert code == 1
        assert "Daemon mode unavailable: needs watchdog" in stderr.getvalue()

    def test_main_permission_error(self, tmp_path):
        config_path = tmp_path / "config.toml"
        with (
            patch("cmdorc_daemon.cli.create_default_config", side_effect=PermissionError("Access denied")),
            patch("sys.stderr", new_callable=StringIO) as stderr,
        ):
            code, _ = self.run_main(["-c", str(config_path)])
        assert code == 1
        assert "Failed to access files: Access denied" in stderr.getvalue()

    def test_main_quit_from_daemon(self, tmp_path):
        config_path = tmp_path / "config.toml"
        create_default_config(config_path)
        code, _ = self.run_main(["-c", str(config_path), "-d"], MagicMock(run=AsyncMock(side_effect=SystemExit(0))))
        assert code == 0
