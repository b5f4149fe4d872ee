"""Tests for handler resolution."""

import sys
import textwrap

import pytest

from ontlock.errors import HandlerLoadError
from ontlock.api import load_definition
from ontlock.kernel.snapshot import schema_to_tree
from ontlock.registry import HandlerRegistry, load_object

import sample_api


def test_load_object_by_module_path():
    obj = load_object("ontlock.kernel.hash_utils:hash_canonical")
    assert callable(obj)
    assert obj.__name__ == "hash_canonical"


def test_load_object_by_file_path():
    handler = load_object(f"{sample_api.HERE}:get_user")
    assert handler({"user_id": "u1"})["id"] == "u1"


def test_load_object_relative_to_base_dir(tmp_path):
    (tmp_path / "handlers.py").write_text("def ping(inputs):\n    return 'pong'\n", encoding="utf-8")
    handler = load_object("handlers.py:ping", base_dir=tmp_path)
    assert handler({}) == "pong"


@pytest.mark.parametrize(
    "ref, message",
    [
        ("no_colon_here", "Invalid handler reference"),
        ("ontlock.kernel.hash_utils:", "Invalid handler reference"),
        ("ontlock.does_not_exist:thing", "Cannot import module"),
        ("ontlock.kernel.hash_utils:missing", "has no attribute 'missing'"),
        ("missing/handlers.py:run", "Handler file not found"),
    ],
)
def test_load_object_errors(ref, message):
    with pytest.raises(HandlerLoadError, match=message) as excinfo:
        load_object(ref)
    assert excinfo.value.ref == ref


def test_registry_caches_per_reference():
    calls = []

    def loader(ref):
        calls.append(ref)
        return lambda inputs: ref

    registry = HandlerRegistry(loader=loader)
    first = registry.resolve("a:b")
    second = registry.resolve("a:b")

    assert first is second
    assert calls == ["a:b"]
    assert "a:b" in registry
    assert len(registry) == 1

    registry.clear()
    assert len(registry) == 0
    registry.resolve("a:b")
    assert calls == ["a:b", "a:b"]


def test_registries_do_not_share_state():
    one = HandlerRegistry(loader=lambda ref: print)
    two = HandlerRegistry(loader=lambda ref: print)
    one.resolve("x:y")
    assert "x:y" in one
    assert "x:y" not in two


def test_callable_reference_passes_through():
    registry = HandlerRegistry(loader=lambda ref: pytest.fail("loader must not be called"))
    assert registry.resolve(len) is len
    assert len(registry) == 0


def test_non_callable_target_rejected():
    registry = HandlerRegistry()
    with pytest.raises(HandlerLoadError, match="not callable"):
        registry.resolve("ontlock.lockfile:LOCKFILE_NAME")


def _write(path, source):
    path.write_text(textwrap.dedent(source), encoding="utf-8")


def test_definition_file_with_sibling_import_and_postponed_annotations(tmp_path):
    _write(
        tmp_path / "regions.py",
        """
        from enum import Enum


        class Region(str, Enum):
            EU = "eu"
            US = "us"
        """,
    )
    _write(
        tmp_path / "api_def.py",
        """
        from __future__ import annotations

        from dataclasses import dataclass

        from pydantic import BaseModel

        from ontlock import define_api
        from regions import Region


        @dataclass
        class Location:
            region: Region
            floor: int


        class LookupInputs(BaseModel):
            location: Location


        api = define_api(
            name="locations",
            access_groups={"admin": {"description": "Administrators"}},
            functions={
                "lookup": {
                    "description": "Look up a location",
                    "access": ["admin"],
                    "inputs": LookupInputs,
                    "outputs": Location,
                },
            },
        )
        """,
    )

    definition = load_definition("api_def.py:api", base_dir=tmp_path)
    outputs = definition.functions["lookup"].outputs

    assert outputs.__module__ in sys.modules
    assert schema_to_tree(outputs) == {
        "type": "object",
        "properties": {
            "floor": {"type": "integer"},
            "region": {"type": "string", "enum": ["eu", "us"]},
        },
        "required": ["floor", "region"],
    }


def test_definition_file_is_executed_once(tmp_path):
    _write(tmp_path / "counter.py", "import itertools\nTICKS = itertools.count()\nFIRST = next(TICKS)\n")

    first = load_object("counter.py:TICKS", base_dir=tmp_path)
    second = load_object("counter.py:TICKS", base_dir=tmp_path)

    assert first is second
    assert next(second) == 1


def test_failed_file_load_is_not_cached(tmp_path):
    target = tmp_path / "flaky.py"
    _write(target, "raise RuntimeError('not ready')\n")
    with pytest.raises(RuntimeError, match="not ready"):
        load_object("flaky.py:VALUE", base_dir=tmp_path)

    _write(target, "VALUE = 42\n")
    assert load_object("flaky.py:VALUE", base_dir=tmp_path) == 42
