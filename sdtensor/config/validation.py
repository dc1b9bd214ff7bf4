"""
Configuration Validation Utilities

This module provides validation functions for BLAS driver options.

Import Policy:
    from sdtensor.config.validation import validate_options, warn_if_unsafe

DO NOT use: from sdtensor.config.validation import *
"""

import os
import warnings
from typing import List, Tuple

from sdtensor.config.enums import ExecutionMode
from sdtensor.config.options import BlasOptions
from sdtensor.core.errors import BlockSparseError


class ConfigurationError(BlockSparseError):
    """Raised when configuration validation fails."""

    pass


class ConfigurationWarning(Warning):
    """Warning for potentially wasteful configuration choices."""

    pass


def validate_options(options: BlasOptions, raise_on_error: bool = True) -> Tuple[bool, List[str]]:
    """Validate driver options.

    Args:
        options: BlasOptions to validate
        raise_on_error: If True, raise ConfigurationError on validation failure

    Returns:
        Tuple of (is_valid, error_messages)

    Raises:
        ConfigurationError: If validation fails and raise_on_error=True
    """
    errors = options.validate()

    if errors:
        if raise_on_error:
            raise ConfigurationError(
                f"Configuration validation failed with {len(errors)} error(s):\n"
                + "\n".join(f"  - {err}" for err in errors)
            )
        return False, errors

    return True, []


def warn_if_unsafe(options: BlasOptions) -> List[str]:
    """Check for configuration choices that waste resources.

    Warnings are issued via Python's warnings module.

    Args:
        options: BlasOptions to check

    Returns:
        List of warning messages (empty if no warnings)
    """
    warnings_list = []

    cpu_count = os.cpu_count() or 1
    if options.n_workers > cpu_count:
        warnings_list.append(
            f"n_workers ({options.n_workers}) exceeds the number of CPUs ({cpu_count}). "
            f"Oversubscribed threads compete with the BLAS library's own threads."
        )

    if options.mode is ExecutionMode.AUTO and options.serial_threshold == 0 \
            and options.resolved_workers > 1:
        warnings_list.append(
            "serial_threshold is 0: every call with at least one task starts a worker pool."
        )

    for warning_msg in warnings_list:
        warnings.warn(warning_msg, ConfigurationWarning, stacklevel=2)

    return warnings_list


def create_validated_options(**kwargs) -> BlasOptions:
    """Create BlasOptions and validate them.

    Args:
        **kwargs: Fields forwarded to BlasOptions

    Returns:
        Validated BlasOptions

    Raises:
        ConfigurationError: If the options are invalid
    """
    try:
        options = BlasOptions(**kwargs)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(str(e)) from e
    validate_options(options, raise_on_error=True)
    return options
