"""Sandbox module - Process supervisor and bucket mount primitives.

The sync layer only depends on the protocols; the local implementations
run shell commands with asyncio and mount buckets with s3fs.
"""

from bucketsync.sandbox.local import (
    LocalProcess,
    LocalProcessSupervisor,
    S3fsMounter,
    SystemProcess,
)
from bucketsync.sandbox.protocol import (
    BucketMounter,
    Credentials,
    MountError,
    MountPathInUseError,
    ProcessHandle,
    ProcessLogs,
    ProcessSupervisor,
)

__all__ = [
    # Protocols
    "BucketMounter",
    "ProcessHandle",
    "ProcessSupervisor",
    # Data
    "Credentials",
    "ProcessLogs",
    # Errors
    "MountError",
    "MountPathInUseError",
    # Local implementations
    "LocalProcess",
    "LocalProcessSupervisor",
    "S3fsMounter",
    "SystemProcess",
]
