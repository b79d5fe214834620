"""
Factory for creating the record store.
"""

import logging
from pathlib import Path
from typing import Optional

from config_manager import StoreConfig
from .store import InMemoryRecordStore, JsonFileRecordStore, RecordStore

logger = logging.getLogger(__name__)


def create_record_store(store_config: StoreConfig, base_dir: Optional[Path] = None) -> RecordStore:
    """
    Create the record store selected by configuration.

    Args:
        store_config: StoreConfig with backend, data directory and timeout
        base_dir: Directory a relative ``data_dir`` is resolved against

    Returns:
        A ready-to-use RecordStore

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = store_config.backend
    if backend == "memory":
        logger.info("Using in-memory record store")
        return InMemoryRecordStore(timeout_seconds=store_config.timeout_seconds)

    if backend == "json":
        data_dir = Path(store_config.data_dir)
        if base_dir is not None and not data_dir.is_absolute():
            data_dir = base_dir / data_dir
        logger.info(f"Using JSON record store at {data_dir.resolve()}")
        return JsonFileRecordStore(data_dir, timeout_seconds=store_config.timeout_seconds)

    raise ValueError(f"Unknown store backend: {backend!r}")
