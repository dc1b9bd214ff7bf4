"""Configuration Module - driver options and defaults

Default Configuration (loaded from defaults.yaml):
    from sdtensor.config import get_default, get_defaults

    threshold = get_default('execution.serial_threshold')

Recommended Usage:
    from sdtensor.config import BlasOptions, create_validated_options

    # Options populated from defaults.yaml
    options = BlasOptions()

    # Up-cast copy, always serial
    options = create_validated_options(allow_missing_as_zero=True, mode="serial")

Import Policy:
    DO NOT use: from sdtensor.config import *

Submodules:
    enums: Transpose, ExecutionMode
    yaml_loader: YAML configuration loader (get_default, get_defaults)
    options: BlasOptions dataclass
    validation: Validation utilities (validate_options, warn_if_unsafe)
"""

from sdtensor.config.enums import ExecutionMode, Transpose
# Import YAML loader functions first (no circular dependencies)
from sdtensor.config.yaml_loader import get_default, get_defaults, reload_defaults
from sdtensor.config.options import BlasOptions, default_options, resolve_options
from sdtensor.config.validation import (
    ConfigurationError,
    ConfigurationWarning,
    create_validated_options,
    validate_options,
    warn_if_unsafe,
)


__all__ = [
    # Enums
    "Transpose",
    "ExecutionMode",
    # Options
    "BlasOptions",
    "default_options",
    "resolve_options",
    "create_validated_options",
    # Validation
    "ConfigurationError",
    "ConfigurationWarning",
    "validate_options",
    "warn_if_unsafe",
    # YAML defaults access
    "get_default",
    "get_defaults",
    "reload_defaults",
]
