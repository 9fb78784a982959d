"""
Main orchestration module for romfetch.

Coordinates the whole workflow:
- Load configuration and the emulator's ROM catalog
- Resolve the requested ROM and everything it requires
- Download each item, skipping what is already on disk
- Validate and extract archives
- Command-line interface
"""

import sys
import argparse
import logging
import os
from dataclasses import dataclass
from typing import List, Optional
from romfetch import __version__
from romfetch.logger import setup_logging, get_logger
from romfetch.config_loader import load_config, Settings
from romfetch.catalog import Catalog, ItemRecord, load_catalog, resolve_target
from romfetch.resolver import FetchPlan, resolve
from romfetch.downloader import download_file, derive_filename, USER_AGENT
from romfetch.extractor import extract_archive
from romfetch.progress_tracker import Spinner
from romfetch.validator import check_archive

SKIPPED = 'skipped'
DOWNLOADED = 'downloaded'
EXTRACTED = 'extracted'
FAILED = 'failed'


@dataclass
class ItemResult:
    """
    Result of processing one plan entry.
    """
    identifier: str
    status: str
    detail: Optional[str] = None


class FetchProcessor:
    """
    Drains a fetch plan, one item at a time.

    Args:
        catalog: Catalog the plan was resolved against
        output_root: ROM folder (destination root joined with the emulator's roms folder)
        timeout: HTTP timeout in seconds
        max_retries: Attempts per download for transient failures
        user_agent: User-Agent header sent with every request
    """

    def __init__(self, catalog: Catalog, output_root: str, timeout: float = 30,
                 max_retries: int = 3, user_agent: str = USER_AGENT):
        self.catalog = catalog
        self.output_root = output_root
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent
        self.spinner = Spinner()
        self.results: List[ItemResult] = []
        self.logger = get_logger()

    def process(self, plan: FetchPlan) -> int:
        """
        Process every item in the plan.

        A failing item is logged and the next one is attempted.

        Returns:
            int: Exit status (0 once the plan is drained)
        """
        for identifier in plan.drain():
            try:
                result = self.process_item(identifier)
            except Exception as e:
                self.logger.error(f"✗ {identifier} failed: {e}")
                result = ItemResult(identifier, FAILED, str(e))
            self.results.append(result)

        self._log_summary()
        return 0

    def process_item(self, identifier: str) -> ItemResult:
        record = self.catalog[identifier]
        self.logger.info(f"Processing [{identifier}]")

        filename = derive_filename(record.download) if record.download else ''
        target = record.copy_to or filename
        output_file = os.path.join(self.output_root, target) if target else None

        pending = []
        if record.extracts:
            pending = self._pending_rules(record)
            if not pending:
                self.logger.info("  Files already exist.")
                return ItemResult(identifier, SKIPPED)
        elif output_file:
            check_archive(output_file)
            if os.path.exists(output_file):
                self.logger.info(f"  File {output_file} already exists.")
                return ItemResult(identifier, SKIPPED)

        # Only needed once something is actually missing
        if not record.download:
            self.logger.error(f"  Rom [{identifier}] has no download URL")
            return ItemResult(identifier, FAILED, 'no download URL')

        self.spinner.reset()
        downloaded = download_file(
            record.download,
            output_file,
            display_name=filename,
            timeout=self.timeout,
            max_retries=self.max_retries,
            user_agent=self.user_agent,
            spinner=self.spinner
        )
        if not downloaded:
            return ItemResult(identifier, FAILED, 'download failed')

        if not record.extracts:
            if not check_archive(output_file):
                return ItemResult(identifier, FAILED, 'corrupt archive')
            return ItemResult(identifier, DOWNLOADED)

        results = extract_archive(output_file, pending, self.output_root)
        if results is None:
            return ItemResult(identifier, FAILED, 'archive could not be opened')

        extracted = sum(1 for r in results if r.success)
        return ItemResult(identifier, EXTRACTED, f"{extracted}/{len(results)} files extracted")

    def _pending_rules(self, record: ItemRecord):
        """Rules whose destination isn't on disk yet."""
        return [
            rule for rule in record.extract_to
            if not os.path.exists(os.path.join(self.output_root, rule.dst))
        ]

    def _log_summary(self) -> None:
        counts = {}
        for result in self.results:
            counts[result.status] = counts.get(result.status, 0) + 1

        self.logger.info(f"{'='*60}")
        self.logger.info("DOWNLOAD SUMMARY")
        self.logger.info(f"{'='*60}")
        self.logger.info(f"Total items: {len(self.results)}")
        for status in (DOWNLOADED, EXTRACTED, SKIPPED, FAILED):
            self.logger.info(f"{status.capitalize()}: {counts.get(status, 0)}")

        failed = [r for r in self.results if r.status == FAILED]
        if failed:
            self.logger.error("Failed items:")
            for result in failed:
                self.logger.error(f"  {result.identifier}: {result.detail}")


def fetch_rom(settings: Settings, emulator: str, rom_arg: str) -> int:
    """
    Fetch a ROM and everything it requires.

    Args:
        settings: Loaded Settings
        emulator: Emulator identifier (e.g. 'fbneo')
        rom_arg: ROM identifier, `platform_rom` for multi-platform emulators

    Returns:
        int: 0 on success, 1 on configuration error or if nothing was found
    """
    logger = get_logger()

    try:
        target = resolve_target(settings, emulator, rom_arg)
        catalog = load_catalog(os.path.join(settings.catalog_dir, target.catalog_file))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Error: {e}")
        return 1

    logger.info("Searching for required roms...")
    plan = resolve(catalog, target.rom_id)

    if not plan:
        logger.error(f"Error: No items found for [{target.rom_id}] in [{target.catalog_file}]")
        return 1

    logger.info(f"Found {len(plan)} items to fetch: {', '.join(plan)}")
    if plan.missing:
        logger.warning(
            f"{len(plan.missing)} required roms not found in [{target.catalog_file}]: "
            f"{', '.join(plan.missing)}"
        )

    output_root = os.path.join(settings.destination_root, target.roms_folder)
    processor = FetchProcessor(
        catalog,
        output_root,
        timeout=settings.timeout,
        max_retries=settings.max_retries
    )
    return processor.process(plan)


class ArgumentParser(argparse.ArgumentParser):
    """argparse with exit status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}. Syntax: romfetch <emulator> <rom_id>\n")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog='romfetch',
        description='romfetch - emulator ROM manager',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fetch a ROM and its BIOS files
  romfetch fbneo sfiii3nr1

  # Multi-platform emulators take platform_rom
  romfetch fbneo md_sonic

  # Put ROMs somewhere else and read catalogs from a folder
  romfetch flycast mvsc2 --destination ~/emu --catalog-dir ~/emu/json
        """
    )

    parser.add_argument('emulator', help='Emulator identifier (e.g. fbneo, flycast)')
    parser.add_argument('rom_id', help='ROM identifier (platform_rom for multi-platform emulators)')

    parser.add_argument(
        '--config',
        help='YAML configuration file (default: bundled config)'
    )
    parser.add_argument(
        '--destination',
        help='Folder the emulator ROM folders live under (default: from config)'
    )
    parser.add_argument(
        '--catalog-dir',
        help='Folder holding the *_roms.json catalogs (default: from config)'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        help='HTTP timeout in seconds (default: from config)'
    )
    parser.add_argument(
        '--retries',
        type=int,
        help='Maximum attempts per download (default: from config)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config)'
    )
    parser.add_argument(
        '--log-file',
        help='Log file path (default: from config)'
    )
    parser.add_argument(
        '--pause',
        action='store_true',
        help='Wait for Enter before exiting'
    )
    return parser


def apply_overrides(settings: Settings, args) -> Settings:
    """Copy command line options over the loaded settings."""
    if args.destination is not None:
        settings.destination_root = args.destination
    if args.catalog_dir is not None:
        settings.catalog_dir = args.catalog_dir
    if args.timeout is not None:
        settings.timeout = args.timeout
    if args.retries is not None:
        settings.max_retries = args.retries
    if args.log_level is not None:
        settings.log_level = args.log_level
    if args.log_file is not None:
        settings.log_file = args.log_file
    return settings


def main(argv=None):
    """
    Command-line interface for romfetch.

    Usage:
        romfetch <emulator> <rom_id>
        python -m romfetch fbneo sfiii3nr1 --destination ~/fightcade/emulator
    """
    args = build_parser().parse_args(argv)

    try:
        settings = apply_overrides(load_config(args.config), args)
        config_error = None
    except (FileNotFoundError, ValueError) as e:
        settings = Settings(log_file=None)
        config_error = e

    setup_logging(log_file=settings.log_file, log_level=getattr(logging, settings.log_level))

    logger = get_logger()
    logger.info(f"romfetch - ROM manager v{__version__}")

    if config_error is not None:
        logger.error(f"Error: {config_error}")
        exit_code = 1
    else:
        logger.debug(f"Destination: {settings.destination_root}")
        logger.debug(f"Catalogs: {settings.catalog_dir}")
        logger.debug(f"Timeout: {settings.timeout}s, retries: {settings.max_retries}")
        try:
            exit_code = fetch_rom(settings, args.emulator, args.rom_id)
        except KeyboardInterrupt:
            logger.warning("Download interrupted by user")
            exit_code = 1

    if args.pause:
        try:
            input("Press Enter to continue...")
        except EOFError:
            pass

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
