"""Controllers."""

from quadmpc.control.mpc import (
    SQPMPC,
    MPCConfig,
    MPCReference,
    SQPDiagnostics,
    condense,
    default_config,
)

__all__ = [
    "SQPMPC",
    "MPCConfig",
    "MPCReference",
    "SQPDiagnostics",
    "condense",
    "default_config",
]
