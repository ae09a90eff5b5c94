"""Tests for daemon configuration loading."""

import pytest

from cmdorc_daemon.config import DaemonConfig, load_daemon_config


def write(tmp_path, text, name="config.toml"):
    path = tmp_path / name
    path.write_text(text)
    return path


def test_defaults(tmp_path):
    path = write(tmp_path, '[[command]]\nname = "Build"\ncommand = "make"\n')
    config = load_daemon_config(path)

    assert config.daemon is False
    assert config.listen_interval == 0.5
    assert config.sibling_interval == 0.1
    assert config.job == "config"
    assert config.root == tmp_path.resolve()
    assert config.tmpdir == tmp_path.resolve() / ".cmdorc-tmp" / "config"
    assert config.ignore == []
    assert config.build_command is None


def test_daemon_table(tmp_path):
    path = write(
        tmp_path,
        """
[daemon]
enabled = true
listen-interval = 2
job = "thesis"
tool-prefix = "ltx"
tmpdir = "build/tmp"
ignore = ["thesis.pdf", "*.aux"]
build-command = "Compile"
""",
    )
    config = load_daemon_config(path)

    assert config.daemon is True
    assert config.listen_interval == 2.0
    assert config.job == "thesis"
    assert config.tool_prefix == "ltx"
    assert config.tmpdir == tmp_path.resolve() / "build" / "tmp"
    assert config.ignore == ["thesis.pdf", "*.aux"]
    assert config.build_command == "Compile"


def test_job_argument_overrides_file(tmp_path):
    path = write(tmp_path, '[daemon]\njob = "thesis"\n')
    config = load_daemon_config(path, job="slides")

    assert config.job == "slides"
    assert config.tmpdir == tmp_path.resolve() / ".cmdorc-tmp" / "slides"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        load_daemon_config(tmp_path / "absent.toml")


def test_invalid_toml(tmp_path):
    path = write(tmp_path, "[daemon\n")
    with pytest.raises(ValueError, match="Failed to parse"):
        load_daemon_config(path)


@pytest.mark.parametrize(
    "line",
    [
        "listen-interval = -1",
        "listen-interval = true",
        'listen-interval = "fast"',
        "enabled = 1",
        'ignore = "out.pdf"',
        "ignore = [1, 2]",
        'job = "a/b"',
    ],
)
def test_invalid_values(tmp_path, line):
    path = write(tmp_path, f"[daemon]\n{line}\n")
    with pytest.raises(ValueError, match="Invalid"):
        load_daemon_config(path)


def test_dataclass_validation(tmp_path):
    with pytest.raises(ValueError):
        DaemonConfig(root=tmp_path, job="main", listen_interval=0)
    with pytest.raises(ValueError):
        DaemonConfig(root=tmp_path, job="")
