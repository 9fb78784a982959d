import logging
import pytest
from romfetch.catalog import Catalog
from romfetch.resolver import FetchPlan, resolve


def make_catalog(document):
    return Catalog.from_dict(document, source='test_roms.json')


# ==================== Fetch Plan ====================

def test_fetch_plan_deduplicates():
    plan = FetchPlan()

    assert plan.add('a') is True
    assert plan.add('b') is True
    assert plan.add('a') is False

    assert list(plan) == ['a', 'b']
    assert len(plan) == 2
    assert 'a' in plan


def test_fetch_plan_drains_in_insertion_order():
    plan = FetchPlan()
    for identifier in ['c', 'a', 'b']:
        plan.add(identifier)

    assert list(plan.drain()) == ['c', 'a', 'b']
    assert len(plan) == 0
    assert not plan


def test_drained_plan_cannot_be_refilled():
    plan = FetchPlan()
    plan.add('a')
    list(plan.drain())

    with pytest.raises(RuntimeError, match="drained"):
        plan.add('b')


# ==================== Resolution ====================

def test_resolve_simple_dependency():
    catalog = make_catalog({'a': {'require': ['b']}, 'b': {}})

    assert list(resolve(catalog, 'a')) == ['a', 'b']


def test_resolve_missing_root(caplog):
    caplog.set_level(logging.WARNING, logger='romfetch')
    catalog = make_catalog({'a': {}})

    plan = resolve(catalog, 'missing')

    assert list(plan) == []
    assert plan.missing == ['missing']
    assert "Rom [missing] not found for [test_roms.json]" in caplog.text


def test_resolve_is_depth_first_pre_order():
    catalog = make_catalog({
        'root': {'require': ['x', 'y']},
        'x': {'require': ['x1', 'x2']},
        'x1': {},
        'x2': {},
        'y': {'require': ['y1']},
        'y1': {},
    })

    assert list(resolve(catalog, 'root')) == ['root', 'x', 'x1', 'x2', 'y', 'y1']


def test_resolve_cycle_terminates():
    catalog = make_catalog({'a': {'require': ['b']}, 'b': {'require': ['a']}})

    assert list(resolve(catalog, 'a')) == ['a', 'b']
    assert list(resolve(catalog, 'b')) == ['b', 'a']


def test_resolve_self_reference():
    catalog = make_catalog({'a': {'require': ['a']}})

    assert list(resolve(catalog, 'a')) == ['a']


def test_resolve_shared_dependency_fetched_once():
    catalog = make_catalog({
        'game': {'require': ['left', 'right']},
        'left': {'require': ['bios']},
        'right': {'require': ['bios']},
        'bios': {},
    })

    assert list(resolve(catalog, 'game')) == ['game', 'left', 'bios', 'right']


def test_resolve_merges_both_legacy_fields():
    both = make_catalog({
        'a': {'require': ['b'], 'required': ['c', 'b']},
        'b': {},
        'c': {},
    })
    concatenated = make_catalog({
        'a': {'require': ['b', 'c']},
        'b': {},
        'c': {},
    })

    assert list(resolve(both, 'a')) == list(resolve(concatenated, 'a')) == ['a', 'b', 'c']


def test_resolve_skips_missing_dependency(caplog):
    caplog.set_level(logging.WARNING, logger='romfetch')
    catalog = make_catalog({'a': {'require': ['ghost', 'b']}, 'b': {}})

    plan = resolve(catalog, 'a')

    assert list(plan) == ['a', 'b']
    assert plan.missing == ['ghost']
    assert "Rom [ghost] not found" in caplog.text


def test_resolve_only_returns_catalog_keys_without_duplicates():
    catalog = make_catalog({
        'a': {'require': ['b', 'c', 'zz'], 'required': ['d']},
        'b': {'require': ['c', 'a']},
        'c': {'required': ['d', 'b', 'yy']},
        'd': {'require': ['a', 'c']},
    })

    plan = list(resolve(catalog, 'a'))

    assert len(plan) == len(set(plan))
    assert all(identifier in catalog for identifier in plan)
    assert set(plan) == {'a', 'b', 'c', 'd'}


def test_resolve_deep_chain_does_not_recurse():
    """A long dependency chain must not hit the interpreter recursion limit."""
    depth = 5000
    document = {f"n{i}": {'require': [f"n{i + 1}"]} for i in range(depth)}
    document[f"n{depth}"] = {}

    plan = resolve(make_catalog(document), 'n0')

    assert len(plan) == depth + 1
