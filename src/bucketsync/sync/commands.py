"""Shell commands run through the process supervisor.

Every command that reports back through captured output prints one value
from the Sentinel vocabulary, which is the contract between these scripts
and the code reading their logs. Tiny commands are wrapped in a single
`sh -lc` so a whole check costs one process round-trip.
"""

from __future__ import annotations

import re
import shlex

from bucketsync.sync.types import ReplicationStage, Sentinel

RSYNC_BASE_ARGS = ("rsync", "-r", "--no-times", "--delete")


def shell(script: str) -> str:
    """Wrap a script in a login shell invocation."""
    return f"sh -lc {shlex.quote(script)}"


def probe_command(mount_path: str) -> str:
    """Print the filesystem type backing the mount path, or __ERR__."""
    q = shlex.quote(mount_path)
    return shell(f"stat -f -c %T {q} 2>/dev/null || echo {Sentinel.ERR.value}")


def lazy_unmount_command(mount_path: str) -> str:
    """Detach a possibly hung mount without blocking on it.

    Not all images ship fusermount, so umount -l goes first.
    """
    q = shlex.quote(mount_path)
    return shell(
        f"umount -l {q} 2>/dev/null || "
        f"fusermount -uz {q} 2>/dev/null || "
        f"fusermount -u {q} 2>/dev/null || true"
    )


def preflight_command(critical_path: str, local_workspace: str, remote_workspace: str) -> str:
    """Check both preflight conditions and print exactly one sentinel.

    __MISSING__: the critical source file does not exist.
    __EMPTY_LOCAL__: the backup workspace has files but the local one is empty.
    __OK__: safe to run a delete-mirroring copy.
    """
    crit = shlex.quote(critical_path)
    local = shlex.quote(local_workspace)
    remote = shlex.quote(remote_workspace)
    return shell(
        f"if ! test -f {crit}; then echo {Sentinel.MISSING.value}; "
        f'elif [ -n "$(ls -A {remote} 2>/dev/null)" ] && [ -z "$(ls -A {local} 2>/dev/null)" ]; '
        f"then echo {Sentinel.EMPTY_LOCAL.value}; "
        f"else echo {Sentinel.OK.value}; fi"
    )


def rsync_command(stage: ReplicationStage) -> str:
    """Mirror a stage's source into its destination.

    --no-times because s3fs cannot set timestamps. Only the destination is
    created: a missing source prints __MISSING__ and copies nothing, so
    --delete never mirrors an absent tree over the backup.
    """
    src = stage.source.rstrip("/") + "/"
    dest = stage.destination.rstrip("/") + "/"
    args = list(RSYNC_BASE_ARGS)
    args.extend(f"--exclude={pattern}" for pattern in stage.excludes)
    args.extend([src, dest])
    rsync = " ".join(shlex.quote(a) for a in args)
    return (
        f"if test -d {shlex.quote(stage.source)}; then "
        f"mkdir -p {shlex.quote(stage.destination)} && {rsync}; "
        f"else echo {Sentinel.MISSING.value}; fi"
    )


def write_marker_command(marker_path: str, timestamp: str) -> str:
    """Write the given timestamp as the marker's only line."""
    return shell(f"printf '%s\\n' {shlex.quote(timestamp)} > {shlex.quote(marker_path)}")


def read_marker_command(marker_path: str, attempts: int = 40, interval: float = 0.25) -> str:
    """Poll for the marker inside one process and print it, or __MISSING__."""
    q = shlex.quote(marker_path)
    return shell(
        f"for i in $(seq 1 {attempts}); do "
        f"if test -f {q}; then cat {q}; exit 0; fi; sleep {interval}; done; "
        f"echo {Sentinel.MISSING.value}"
    )


def diagnostics_command(mount_path: str, stages: list[ReplicationStage]) -> str:
    """Snapshot the mount table and the source/destination listings."""
    parts = [
        "echo '[diag] mount:'; mount | grep s3fs || true",
        f"echo '[diag] mount_path:'; ls -la {shlex.quote(mount_path)} || true",
    ]
    for stage in stages:
        parts.append(f"echo '[diag] {stage.name}_src:'; ls -la {shlex.quote(stage.source)} || true")
        parts.append(
            f"echo '[diag] {stage.name}_dest:'; ls -la {shlex.quote(stage.destination)} || true"
        )
    return shell("; ".join(parts))


def is_rsync_to(command: str, mount_path: str) -> bool:
    """Check whether a command line is an rsync writing into the mount.

    The mount path must end at a path boundary, so /mnt/r2 does not match
    /mnt/r2-old.
    """
    if "rsync" not in command:
        return False
    root = re.escape(mount_path.rstrip("/") or "/")
    return re.search(rf"{root}(?=[/\s'\"]|$)", command) is not None
