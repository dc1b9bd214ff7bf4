"""
Default Configuration Constants for sdtensor

This module contains the fallback values used when defaults.yaml does not
define a key. defaults.yaml is consulted first (see yaml_loader); the
constants here keep the drivers usable if a relocated YAML file omits an
entry.

IMPORTANT Import Policies:
    1. DO NOT use: from sdtensor.config.defaults import *

    2. DO use explicit imports:
       from sdtensor.config.defaults import DEFAULT_SERIAL_THRESHOLD
"""

# =============================================================================
# Execution Defaults
# =============================================================================

# Execution strategy selection ("auto", "serial" or "threaded")
DEFAULT_EXECUTION_MODE = "auto"

# Task lists no longer than this run serially in auto mode.
# Launching a worker pool for a single block operation costs more than it saves.
DEFAULT_SERIAL_THRESHOLD = 1

# Number of worker threads (-1: one per CPU)
DEFAULT_N_WORKERS = -1

# Distribute tasks by estimated flop cost rather than round-robin
DEFAULT_BALANCE = True

# Upper bound on workers when n_workers = -1
MAX_AUTO_WORKERS = 32

# =============================================================================
# BLAS Defaults
# =============================================================================

# Copy into a destination with a narrower sparsity pattern (up-cast)
DEFAULT_ALLOW_MISSING_AS_ZERO = False

# Element type of newly allocated blocks
DEFAULT_DTYPE = "float64"
