# tests/balanced_split/test_cli.py
from __future__ import annotations

from pathlib import Path

import pytest

import balanced_split.cli as cli
import balanced_split.orchestrate as orch
from balanced_split.polling import Poller

pytestmark = pytest.mark.usefixtures("clean_root_handlers")


@pytest.fixture()
def env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("BALANCED_SPLIT_ROOT_DIR", str(tmp_path))
    monkeypatch.setenv("BALANCED_SPLIT_CONTROL_URL", "http://ctl:8080")
    monkeypatch.setenv("BALANCED_SPLIT_KEY_WIDTH", "2")
    monkeypatch.setenv("BALANCED_SPLIT_KEY_MAX", "c8")
    monkeypatch.setenv("BALANCED_SPLIT_POLL_INTERVAL", "0")
    monkeypatch.delenv("BALANCED_SPLIT_LOG_DIR", raising=False)
    monkeypatch.setattr(orch, "setproctitle", lambda title: None)
    return tmp_path


def _wire(monkeypatch, cluster):
    monkeypatch.setattr(orch, "RestClusterClient", lambda *a, **k: cluster)
    monkeypatch.setattr(
        orch, "Poller",
        lambda interval_s, max_attempts: Poller(interval_s, max_attempts, sleep=cluster.tick),
    )


def test_end_to_end_exit_zero_and_log_removed(env, make_cluster, monkeypatch):
    cluster = make_cluster([(0, 100), (100, 0)])
    _wire(monkeypatch, cluster)

    assert cli.main(["usertable"]) == 0
    assert cluster.split_requests == [b"32", b"96"]
    assert not (env / "usertable" / "_balancedSplit").exists()


def test_corrupt_log_exits_nonzero_and_keeps_log(env, make_cluster, monkeypatch, capsys):
    cluster = make_cluster([(0, 100), (100, 0)])
    _wire(monkeypatch, cluster)
    log_path = env / "usertable" / "_balancedSplit"
    log_path.parent.mkdir(parents=True)
    log_path.write_text("- 02 09\n")

    assert cli.main(["usertable"]) == 1
    err = capsys.readouterr().err
    assert "not pending" in err
    assert str(log_path) in err
    assert log_path.exists()


def test_missing_table_argument_is_usage_error(env):
    with pytest.raises(SystemExit) as info:
        cli.main([])
    assert info.value.code == 2


def test_extra_arguments_rejected(env):
    with pytest.raises(SystemExit) as info:
        cli.main(["a", "b"])
    assert info.value.code == 2


def test_missing_configuration(env, monkeypatch, capsys):
    monkeypatch.delenv("BALANCED_SPLIT_CONTROL_URL")
    assert cli.main(["usertable"]) == 2
    assert "BALANCED_SPLIT_CONTROL_URL" in capsys.readouterr().err


def test_log_file_written_when_log_dir_set(env, make_cluster, monkeypatch, tmp_path):
    cluster = make_cluster([(0, 100), (100, 0)])
    _wire(monkeypatch, cluster)
    logs = tmp_path / "logs"
    monkeypatch.setenv("BALANCED_SPLIT_LOG_DIR", str(logs))

    assert cli.main(["usertable"]) == 0
    (log_file,) = logs.glob("balanced_split_*.log")
    assert "All shards have been split" in log_file.read_text(encoding="utf-8")


def test_filesystem_error_exits_one_and_names_log(env, monkeypatch, capsys):
    def _denied(table, *, config):
        raise PermissionError(13, "Permission denied", str(env / table))

    monkeypatch.setattr(cli, "run_balanced_split", _denied)

    assert cli.main(["usertable"]) == 1
    err = capsys.readouterr().err
    assert "Permission denied" in err
    assert str(env / "usertable" / "_balancedSplit") in err
