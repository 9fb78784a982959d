"""
romfetch - emulator ROM manager.

Fetches a ROM and everything it requires from a JSON catalog:
- Dependency resolution with deduplication
- Streamed HTTP downloads with progress
- Zip integrity checks
- Selective extraction of archive members
"""

__version__ = "0.1.0"

# Public API exports
from romfetch.config_loader import Settings, EmulatorInfo, load_config, validate_emulator_config
from romfetch.catalog import (
    Catalog,
    ItemRecord,
    ExtractRule,
    RomTarget,
    load_catalog,
    resolve_target
)
from romfetch.resolver import FetchPlan, resolve
from romfetch.orchestration import (
    FetchProcessor,
    ItemResult,
    fetch_rom,
    main as run_fetcher
)
from romfetch.downloader import download_file, derive_filename, check_remote
from romfetch.validator import check_archive, is_archive
from romfetch.extractor import ArchiveHandle, extract_archive, extract_members
from romfetch.logger import setup_logging, get_logger

__all__ = [
    "__version__",

    # Configuration
    "Settings",
    "EmulatorInfo",
    "load_config",
    "validate_emulator_config",

    # Catalog
    "Catalog",
    "ItemRecord",
    "ExtractRule",
    "RomTarget",
    "load_catalog",
    "resolve_target",

    # Resolution
    "FetchPlan",
    "resolve",

    # High-level orchestration (recommended)
    "FetchProcessor",
    "ItemResult",
    "fetch_rom",
    "run_fetcher",

    # Transport
    "download_file",
    "derive_filename",
    "check_remote",

    # Archives
    "check_archive",
    "is_archive",
    "ArchiveHandle",
    "extract_archive",
    "extract_members",

    # Logging
    "setup_logging",
    "get_logger",
]
