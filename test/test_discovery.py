import logging
import os
import stat

import pytest

from s6_dash.dash.discovery import DiscoveryError, list_services


def _service(root, name, executable=True):
    d = root / name
    d.mkdir()
    run = d / "run"
    run.write_text("#!/bin/sh\nexec sleep 1000\n")
    mode = run.stat().st_mode
    run.chmod(mode | stat.S_IXUSR if executable else mode & ~stat.S_IXUSR & ~stat.S_IXGRP & ~stat.S_IXOTH)
    return d


def test_only_dirs_with_executable_run_qualify_sorted_by_path(tmp_path):
    _service(tmp_path, "zeta")
    _service(tmp_path, "alpha")
    _service(tmp_path, "mid", executable=False)

    services = list_services(tmp_path)

    assert [s.path for s in services] == [tmp_path / "alpha", tmp_path / "zeta"]
    assert [s.name for s in services] == ["alpha", "zeta"]


def test_plain_files_and_dirs_without_run_are_ignored(tmp_path):
    (tmp_path / "README").write_text("not a service")
    (tmp_path / ".s6-svscan").mkdir()
    _service(tmp_path, "web")
    assert [s.name for s in list_services(tmp_path)] == ["web"]


def test_symlinked_service_dirs_are_followed(tmp_path):
    real = tmp_path / "real"
    real.mkdir()
    target = _service(real, "db")
    scan = tmp_path / "scan"
    scan.mkdir()
    os.symlink(target, scan / "db")
    assert [s.path for s in list_services(scan)] == [scan / "db"]


def test_broken_entry_is_logged_and_skipped(tmp_path, caplog):
    _service(tmp_path, "ok")
    os.symlink(tmp_path / "missing", tmp_path / "dangling")
    with caplog.at_level(logging.WARNING, logger="s6_dash.dash.discovery"):
        services = list_services(tmp_path)
    assert [s.name for s in services] == ["ok"]
    assert "dangling" in caplog.text


def test_unreadable_root_is_fatal(tmp_path):
    with pytest.raises(DiscoveryError, match="Failed to read"):
        list_services(tmp_path / "does-not-exist")
