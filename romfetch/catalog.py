"""
ROM catalog: the read-only table of downloadable items.

A catalog is a JSON object keyed by item identifier. Each value may declare
required sub-items (under `require`, `required`, or both), a `download` URL,
a `copy_to` filename and a list of `extract_to` rules.
"""

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from romfetch.config_loader import Settings, EmulatorInfo

# Older catalogs use `required`; newer ones use `require`. Some use both.
REQUIRED_FIELDS = ('require', 'required')


@dataclass(frozen=True)
class ExtractRule:
    """One archive member to pull out and where to put it (relative to the ROM folder)."""
    src: str
    dst: str


@dataclass(frozen=True)
class ItemRecord:
    """
    A single catalog entry.

    Attributes:
        identifier: Catalog key
        required: Merged, order-preserving list of required identifiers
        download: Source URL
        copy_to: Filename overriding the one derived from the URL
        extract_to: Extraction rules, in catalog order
    """
    identifier: str
    required: Tuple[str, ...] = ()
    download: Optional[str] = None
    copy_to: Optional[str] = None
    extract_to: Tuple[ExtractRule, ...] = ()

    @property
    def extracts(self) -> bool:
        return bool(self.extract_to)

    @classmethod
    def from_dict(cls, identifier: str, record: Any) -> 'ItemRecord':
        """
        Build a record from its JSON form.

        Raises:
            ValueError: If a field has the wrong shape
        """
        if not isinstance(record, dict):
            raise ValueError(f"Item '{identifier}' must be an object")

        required: List[str] = []
        for field_name in REQUIRED_FIELDS:
            values = record.get(field_name)
            if values is None:
                continue
            if not isinstance(values, list):
                raise ValueError(f"Item '{identifier}' {field_name} must be a list")
            for value in values:
                if not isinstance(value, str):
                    raise ValueError(f"Item '{identifier}' {field_name} entries must be strings")
                if value not in required:
                    required.append(value)

        download = record.get('download')
        if download is not None and not isinstance(download, str):
            raise ValueError(f"Item '{identifier}' download must be a string")

        copy_to = record.get('copy_to')
        if copy_to is not None and not isinstance(copy_to, str):
            raise ValueError(f"Item '{identifier}' copy_to must be a string")

        rules = []
        extract_to = record.get('extract_to')
        if extract_to is not None:
            if not isinstance(extract_to, list):
                raise ValueError(f"Item '{identifier}' extract_to must be a list")
            for i, rule in enumerate(extract_to):
                if not isinstance(rule, dict) \
                        or not isinstance(rule.get('src'), str) \
                        or not isinstance(rule.get('dst'), str):
                    raise ValueError(
                        f"Item '{identifier}' extract_to[{i}] needs string 'src' and 'dst'"
                    )
                rules.append(ExtractRule(src=rule['src'], dst=rule['dst']))

        return cls(
            identifier=identifier,
            required=tuple(required),
            download=download,
            copy_to=copy_to,
            extract_to=tuple(rules),
        )


class Catalog:
    """Read-only mapping of identifier -> ItemRecord."""

    def __init__(self, records: Dict[str, ItemRecord], source: str = '<memory>'):
        self._records = dict(records)
        self.source = source

    @classmethod
    def from_dict(cls, document: Any, source: str = '<memory>') -> 'Catalog':
        if not isinstance(document, dict):
            raise ValueError(f"Catalog [{source}] must be a JSON object")
        records = {
            identifier: ItemRecord.from_dict(identifier, record)
            for identifier, record in document.items()
        }
        return cls(records, source)

    def __contains__(self, identifier) -> bool:
        return identifier in self._records

    def __getitem__(self, identifier: str) -> ItemRecord:
        return self._records[identifier]

    def get(self, identifier: str) -> Optional[ItemRecord]:
        return self._records.get(identifier)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self):
        return f"Catalog(source={self.source!r}, items={len(self)})"


def load_catalog(catalog_path: str) -> Catalog:
    """
    Load a catalog from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file can't be read or isn't a valid catalog
    """
    name = os.path.basename(catalog_path)

    if not os.path.exists(catalog_path):
        raise FileNotFoundError(f"Missing file [{name}] (Missing catalog pack?)")

    try:
        with open(catalog_path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to open file [{name}]: {e}")

    try:
        return Catalog.from_dict(document, source=name)
    except ValueError as e:
        raise ValueError(f"Failed to open file [{name}]: {e}")


def catalog_filename(emulator: str, platform: Optional[str] = None) -> str:
    """`{emulator}[_{platform}]_roms.json`"""
    if platform:
        return f"{emulator}_{platform}_roms.json"
    return f"{emulator}_roms.json"


@dataclass
class RomTarget:
    """Where a requested ROM comes from and where it goes."""
    emulator: str
    rom_id: str
    roms_folder: str
    catalog_file: str
    platform: Optional[str] = None


def resolve_target(settings: Settings, emulator: str, rom_arg: str) -> RomTarget:
    """
    Turn command line arguments into a RomTarget.

    For emulators with platforms, `md_sonic` means platform `md`, ROM `sonic`.

    Raises:
        ValueError: Unknown emulator or platform
    """
    info: Optional[EmulatorInfo] = settings.emulators.get(emulator)
    if info is None:
        raise ValueError(f"unknown emulator [{emulator}]")

    rom_id = rom_arg
    platform = None
    roms_folder = info.roms_folder

    if info.platforms and '_' in rom_id:
        platform, rom_id = rom_id.split('_', 1)
        if platform not in info.platforms:
            raise ValueError(f"unknown platform [{platform}] for emulator [{emulator}]")
        roms_folder = info.platforms[platform]

    if info.dont_add_prefix_to_json_file and info.prefix and rom_id.startswith(info.prefix):
        rom_id = rom_id[len(info.prefix):]

    return RomTarget(
        emulator=emulator,
        rom_id=rom_id,
        roms_folder=roms_folder,
        catalog_file=catalog_filename(emulator, platform),
        platform=platform,
    )
