"""
Recall Store Core Module

This module provides core utilities including path management,
configuration, logging and the error types shared by the store.
"""

from .errors import (
    DuplicateKeyError,
    InvalidInputError,
    IOFailureError,
    NotFoundError,
    StoreError,
    StoreNotReadyError,
)
from .paths import (
    AUDIO_DIR,
    CONFIG_PATH,
    DATA_ROOT,
    DB_DIR,
    DB_PATH,
    LOG_DIR,
    SCREENS_DIR,
    ensure_data_directories,
)

__all__ = [
    # Directory paths
    "DATA_ROOT",
    "DB_DIR",
    "DB_PATH",
    "SCREENS_DIR",
    "AUDIO_DIR",
    "LOG_DIR",
    "CONFIG_PATH",
    # Functions
    "ensure_data_directories",
    # Errors
    "StoreError",
    "InvalidInputError",
    "DuplicateKeyError",
    "NotFoundError",
    "IOFailureError",
    "StoreNotReadyError",
]
