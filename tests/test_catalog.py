import json
import pytest
from romfetch.catalog import (
    Catalog,
    ItemRecord,
    ExtractRule,
    load_catalog,
    catalog_filename,
    resolve_target
)
from romfetch.config_loader import load_config


@pytest.fixture
def settings():
    return load_config()


# ==================== Item Records ====================

def test_item_record_from_full_dict():
    record = ItemRecord.from_dict('sfiii3nr1', {
        'download': 'https://example.com/roms/sfiii3nr1.zip',
        'require': ['bios'],
        'copy_to': 'sfiii3.zip',
        'extract_to': [
            {'src': 'a.bin', 'dst': 'out/a.bin'},
            {'src': 'b.bin', 'dst': 'out/b.bin'},
        ],
    })

    assert record.identifier == 'sfiii3nr1'
    assert record.required == ('bios',)
    assert record.copy_to == 'sfiii3.zip'
    assert record.extract_to == (
        ExtractRule('a.bin', 'out/a.bin'),
        ExtractRule('b.bin', 'out/b.bin'),
    )
    assert record.extracts is True


def test_item_record_empty_dict():
    record = ItemRecord.from_dict('bare', {})

    assert record.required == ()
    assert record.download is None
    assert record.copy_to is None
    assert record.extract_to == ()
    assert record.extracts is False


def test_required_fields_are_merged_in_order():
    """Both legacy field names are honored: `require` first, then `required`."""
    record = ItemRecord.from_dict('game', {
        'require': ['a', 'b'],
        'required': ['c', 'a'],
    })

    assert record.required == ('a', 'b', 'c')


def test_legacy_required_field_alone():
    record = ItemRecord.from_dict('game', {'required': ['bios']})

    assert record.required == ('bios',)


def test_item_record_rejects_non_list_require():
    with pytest.raises(ValueError, match="Item 'game' require must be a list"):
        ItemRecord.from_dict('game', {'require': 'bios'})


def test_item_record_rejects_malformed_rule():
    with pytest.raises(ValueError, match=r"extract_to\[0\] needs string 'src' and 'dst'"):
        ItemRecord.from_dict('game', {'extract_to': [{'src': 'a.bin'}]})


def test_item_record_rejects_non_string_download():
    with pytest.raises(ValueError, match="download must be a string"):
        ItemRecord.from_dict('game', {'download': 42})


# ==================== Catalog ====================

def test_catalog_mapping_behaviour():
    catalog = Catalog.from_dict({'a': {'require': ['b']}, 'b': {}}, source='test_roms.json')

    assert 'a' in catalog
    assert 'missing' not in catalog
    assert catalog['a'].required == ('b',)
    assert catalog.get('missing') is None
    assert sorted(catalog) == ['a', 'b']
    assert len(catalog) == 2
    assert catalog.source == 'test_roms.json'


def test_catalog_is_read_only():
    catalog = Catalog.from_dict({'a': {}})

    with pytest.raises(TypeError):
        catalog['b'] = ItemRecord('b')


def test_catalog_must_be_object():
    with pytest.raises(ValueError, match="must be a JSON object"):
        Catalog.from_dict(['a', 'b'])


def test_load_catalog(tmp_path):
    path = tmp_path / "fbneo_roms.json"
    path.write_text(json.dumps({
        'sf2': {'download': 'https://example.com/sf2.zip', 'required': ['qsound']},
        'qsound': {'download': 'https://example.com/qsound.zip'},
    }))

    catalog = load_catalog(str(path))

    assert len(catalog) == 2
    assert catalog.source == 'fbneo_roms.json'
    assert catalog['sf2'].required == ('qsound',)


def test_load_catalog_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match=r"Missing file \[flycast_roms.json\]"):
        load_catalog(str(tmp_path / "flycast_roms.json"))


def test_load_catalog_invalid_json(tmp_path):
    path = tmp_path / "flycast_roms.json"
    path.write_text("{not json")

    with pytest.raises(ValueError, match=r"Failed to open file \[flycast_roms.json\]"):
        load_catalog(str(path))


def test_load_catalog_malformed_record(tmp_path):
    path = tmp_path / "flycast_roms.json"
    path.write_text(json.dumps({'mvsc2': {'extract_to': 'nope'}}))

    with pytest.raises(ValueError, match="Failed to open file"):
        load_catalog(str(path))


# ==================== Targets ====================

def test_catalog_filename():
    assert catalog_filename('flycast') == 'flycast_roms.json'
    assert catalog_filename('fbneo', 'md') == 'fbneo_md_roms.json'


def test_resolve_target_simple(settings):
    target = resolve_target(settings, 'flycast', 'mvsc2')

    assert target.rom_id == 'mvsc2'
    assert target.platform is None
    assert target.roms_folder == 'flycast/ROMs'
    assert target.catalog_file == 'flycast_roms.json'


def test_resolve_target_platform_split(settings):
    target = resolve_target(settings, 'fbneo', 'md_sonic_and_knuckles')

    assert target.platform == 'md'
    assert target.rom_id == 'sonic_and_knuckles'
    assert target.roms_folder == 'fbneo/ROMs/megadrive'
    assert target.catalog_file == 'fbneo_md_roms.json'


def test_resolve_target_platform_emulator_without_underscore(settings):
    target = resolve_target(settings, 'fbneo', 'sfiii3nr1')

    assert target.platform is None
    assert target.roms_folder == 'fbneo/ROMs'
    assert target.catalog_file == 'fbneo_roms.json'


def test_resolve_target_no_platform_split_for_plain_emulator(settings):
    """Underscores only mean a platform for emulators that declare platforms."""
    target = resolve_target(settings, 'snes9x', 'super_metroid')

    assert target.rom_id == 'super_metroid'
    assert target.catalog_file == 'snes9x_roms.json'


def test_resolve_target_strips_prefix(settings):
    target = resolve_target(settings, 'fc1', 'fc1_sf2ce')

    assert target.rom_id == 'sf2ce'
    assert target.roms_folder == 'ggpofba/ROMs'
    assert target.catalog_file == 'fc1_roms.json'


def test_resolve_target_unknown_emulator(settings):
    with pytest.raises(ValueError, match=r"unknown emulator \[mame\]"):
        resolve_target(settings, 'mame', 'sf2')


def test_resolve_target_unknown_platform(settings):
    with pytest.raises(ValueError, match=r"unknown platform \[n64\] for emulator \[fbneo\]"):
        resolve_target(settings, 'fbneo', 'n64_mario')
