"""
Configuration Enums for sdtensor

This module defines the enumeration types accepted by the BLAS drivers
and by the execution configuration.

Import Policy:
    from sdtensor.config.enums import Transpose, ExecutionMode

DO NOT use: from sdtensor.config.enums import *
"""

from enum import Enum


class Transpose(Enum):
    """Transpose flag of a contraction operand.

    Options:
        NO_TRANS: Operand is laid out as (free, contracted) for the left
            operand and (contracted, free) for the right operand
        TRANS: Operand is laid out the other way round

    Note:
        Drivers also accept the BLAS-style characters "N" and "T".
    """
    NO_TRANS = "N"
    TRANS = "T"

    @classmethod
    def coerce(cls, value) -> "Transpose":
        """Convert a flag given as enum member, "N"/"T" or bool."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.TRANS if value else cls.NO_TRANS
        if isinstance(value, str):
            key = value.strip().upper()
            if key in ("N", "NOTRANS", "NO_TRANS"):
                return cls.NO_TRANS
            if key in ("T", "TRANS", "C"):
                return cls.TRANS
        raise ValueError(f"Unknown transpose flag: {value!r}")

    @property
    def is_trans(self) -> bool:
        return self is Transpose.TRANS


class ExecutionMode(Enum):
    """How a task list is executed.

    Options:
        AUTO: Serial when the task count is at most serial_threshold,
            threaded otherwise (default)
        SERIAL: Always iterate the tasks in the calling thread
        THREADED: Always use the worker pool

    Note:
        Both strategies produce identical results; every task owns a
        distinct destination block.
    """
    AUTO = "auto"
    SERIAL = "serial"
    THREADED = "threaded"
