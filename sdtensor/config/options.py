"""BLAS Options - explicit per-call configuration of the drivers

Every Level 1/2/3 driver takes an optional BlasOptions instance. This
replaces process-wide switches: the up-cast tolerance of copies and the
serial/threaded selection are decided by the caller, per call.

Import Policy:
    from sdtensor.config.options import BlasOptions, default_options

DO NOT use: from sdtensor.config.options import *
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field

from sdtensor.config.defaults import (
    DEFAULT_ALLOW_MISSING_AS_ZERO,
    DEFAULT_BALANCE,
    DEFAULT_EXECUTION_MODE,
    DEFAULT_N_WORKERS,
    DEFAULT_SERIAL_THRESHOLD,
    MAX_AUTO_WORKERS,
)
from sdtensor.config.enums import ExecutionMode
from sdtensor.config.yaml_loader import get_default


def _yaml_default(key_path: str, fallback):
    return field(default_factory=lambda: get_default(key_path, fallback))


@dataclass
class BlasOptions:
    """Per-call configuration of the block-sparse BLAS drivers.

    Unset fields are taken from defaults.yaml when the instance is created.

    Attributes:
        allow_missing_as_zero: Copy tolerates destination tags that cannot
            be reserved (up-cast into a narrower sparsity pattern)
        serial_threshold: In AUTO mode, task lists with at most this many
            tasks run serially
        n_workers: Worker threads for threaded execution (-1: one per CPU)
        balance: Group tasks onto workers by estimated cost
        mode: Execution strategy selection

    """

    allow_missing_as_zero: bool = _yaml_default(
        "blas.allow_missing_as_zero", DEFAULT_ALLOW_MISSING_AS_ZERO
    )
    serial_threshold: int = _yaml_default(
        "execution.serial_threshold", DEFAULT_SERIAL_THRESHOLD
    )
    n_workers: int = _yaml_default("execution.n_workers", DEFAULT_N_WORKERS)
    balance: bool = _yaml_default("execution.balance", DEFAULT_BALANCE)
    mode: ExecutionMode = _yaml_default("execution.mode", DEFAULT_EXECUTION_MODE)

    def __post_init__(self):
        """Normalize and validate configuration."""
        self.mode = ExecutionMode(self.mode)
        if self.serial_threshold < 0:
            raise ValueError(
                f"serial_threshold must be non-negative, got {self.serial_threshold}"
            )
        if self.n_workers == 0 or self.n_workers < -1:
            raise ValueError(
                f"n_workers must be positive or -1, got {self.n_workers}"
            )

    @property
    def resolved_workers(self) -> int:
        """Number of worker threads after resolving n_workers = -1."""
        if self.n_workers == -1:
            return max(1, min(MAX_AUTO_WORKERS, os.cpu_count() or 1))
        return self.n_workers

    def replace(self, **changes) -> "BlasOptions":
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    def validate(self) -> list[str]:
        """Validate option combinations.

        Returns:
            List of error messages (empty if valid)

        """
        errors = []

        if not isinstance(self.allow_missing_as_zero, bool):
            errors.append(
                f"allow_missing_as_zero must be a bool, got {self.allow_missing_as_zero!r}"
            )
        if not isinstance(self.balance, bool):
            errors.append(f"balance must be a bool, got {self.balance!r}")
        if self.mode is ExecutionMode.THREADED and self.n_workers == 1:
            errors.append("THREADED mode requires more than one worker")

        return errors


def default_options() -> BlasOptions:
    """Create a BlasOptions instance populated from defaults.yaml."""
    return BlasOptions()


def resolve_options(options: BlasOptions | None) -> BlasOptions:
    """Return options, or the defaults when options is None."""
    return default_options() if options is None else options
