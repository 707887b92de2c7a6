"""Tests for the shell commands run through the supervisor."""

from __future__ import annotations

import shlex

from bucketsync.sync.commands import (
    diagnostics_command,
    is_rsync_to,
    lazy_unmount_command,
    preflight_command,
    probe_command,
    read_marker_command,
    rsync_command,
    shell,
    write_marker_command,
)
from bucketsync.sync.types import ReplicationStage


class TestCommands:
    """Tests for command builders."""

    def test_shell_quotes_script(self) -> None:
        assert shell("echo 'hi'") == "sh -lc 'echo '\"'\"'hi'\"'\"''"

    def test_probe_falls_back_to_error_sentinel(self) -> None:
        command = probe_command("/mnt/r2")
        assert "stat -f -c %T /mnt/r2" in command
        assert "echo __ERR__" in command

    def test_probe_quotes_path(self) -> None:
        """Should quote paths containing spaces inside the shell script."""
        script = shlex.split(probe_command("/mnt/my bucket"))[2]
        assert "stat -f -c %T '/mnt/my bucket'" in script

    def test_lazy_unmount_order(self) -> None:
        """Should try umount -l before the fusermount variants."""
        command = lazy_unmount_command("/mnt/r2")
        assert command.index("umount -l") < command.index("fusermount -uz")
        assert command.index("fusermount -uz") < command.index("fusermount -u /")
        assert command.endswith("|| true'")

    def test_preflight_prints_each_sentinel(self) -> None:
        command = preflight_command("/cfg/openclaw.json", "/ws", "/mnt/r2/workspace")
        assert "test -f /cfg/openclaw.json" in command
        for sentinel in ("__MISSING__", "__EMPTY_LOCAL__", "__OK__"):
            assert f"echo {sentinel}" in command

    def test_rsync_stage(self) -> None:
        stage = ReplicationStage("workspace", "/ws", "/mnt/r2/workspace", ("/skills/",))
        command = rsync_command(stage)
        assert command.startswith("if test -d /ws; then mkdir -p /mnt/r2/workspace && ")
        assert (
            "rsync -r --no-times --delete --exclude=/skills/ /ws/ /mnt/r2/workspace/; "
            "else echo __MISSING__; fi"
        ) in command

    def test_rsync_never_creates_the_source(self) -> None:
        """Only the destination is created, so a missing source is never mirrored."""
        command = rsync_command(ReplicationStage("skills", "/ws/skills", "/mnt/r2/skills"))
        assert "mkdir -p /mnt/r2/skills &&" in command
        assert "mkdir -p /ws/skills" not in command

    def test_rsync_quotes_glob_excludes(self) -> None:
        stage = ReplicationStage("config", "/cfg/", "/mnt/r2/openclaw", ("*.lock",))
        command = rsync_command(stage)
        assert "'--exclude=*.lock'" in command
        assert " /cfg/ /mnt/r2/openclaw/" in command

    def test_marker_commands(self) -> None:
        write = write_marker_command("/mnt/r2/.last-sync", "2026-01-27T12:00:00+00:00")
        script = shlex.split(write)[2]
        assert script == "printf '%s\\n' 2026-01-27T12:00:00+00:00 > /mnt/r2/.last-sync"
        read = read_marker_command("/mnt/r2/.last-sync", attempts=3, interval=0.5)
        assert "seq 1 3" in read
        assert "sleep 0.5" in read
        assert "echo __MISSING__" in read

    def test_diagnostics_lists_sources_and_destinations(self) -> None:
        stages = [
            ReplicationStage("config", "/cfg", "/mnt/r2/openclaw"),
            ReplicationStage("skills", "/ws/skills", "/mnt/r2/skills"),
        ]
        command = diagnostics_command("/mnt/r2", stages)
        assert "[diag] mount_path:" in command
        assert "[diag] config_src:" in command
        assert "ls -la /ws/skills" in command
        assert "[diag] config_dest:" in command
        assert "ls -la /mnt/r2/openclaw" in command
        assert "ls -la /mnt/r2/skills" in command

    def test_is_rsync_to(self) -> None:
        assert is_rsync_to("rsync -r /a/ /mnt/r2/workspace/", "/mnt/r2")
        assert is_rsync_to("rsync -r /a/ /mnt/r2", "/mnt/r2/")
        assert not is_rsync_to("rsync -r /a/ /backup/", "/mnt/r2")
        assert not is_rsync_to("cp -r /a /mnt/r2", "/mnt/r2")

    def test_is_rsync_to_ignores_sibling_paths(self) -> None:
        """A mount path that is only a prefix of another directory does not match."""
        assert not is_rsync_to("rsync -r /a/ /mnt/r2-old/workspace/", "/mnt/r2")
        assert not is_rsync_to("rsync -r /a/ /mnt/r2backup/", "/mnt/r2")
