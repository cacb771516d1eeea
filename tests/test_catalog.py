# tests/test_catalog.py

import json

import pytest

from streamvault.repositories.catalog import (
    CatalogEntry,
    CatalogLoadError,
    MemoryCatalogRepository,
    get_catalog_repository,
)


def test_packaged_catalog_loads():
    repo = get_catalog_repository()
    assert len(repo) == 6
    entry = repo.get("1")
    assert entry is not None and entry.upstream_ref
    assert "upstream_ref" not in entry.public_view()


def test_from_json_accepts_object_keyed_by_id(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"abc": {"title": "T", "upstream_ref": "r1", "year": 2023}}), encoding="utf-8")

    repo = MemoryCatalogRepository.from_json(path)
    entry = repo.get("abc")
    assert entry.title == "T"
    assert entry.year == "2023"
    assert "abc" in repo


def test_entry_without_upstream_ref_is_rejected(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([{"id": "1", "title": "T"}]), encoding="utf-8")
    with pytest.raises(CatalogLoadError):
        MemoryCatalogRepository.from_json(path)


@pytest.mark.parametrize("payload", ["not json", "42"])
def test_malformed_catalog_is_rejected(tmp_path, payload):
    path = tmp_path / "catalog.json"
    path.write_text(payload, encoding="utf-8")
    with pytest.raises(CatalogLoadError):
        MemoryCatalogRepository.from_json(path)


def test_duplicate_ids_rejected():
    with pytest.raises(CatalogLoadError):
        MemoryCatalogRepository([CatalogEntry("1", "A", "r"), CatalogEntry("1", "B", "r")])


def test_catalog_is_read_only():
    repo = MemoryCatalogRepository([CatalogEntry("1", "A", "r")])
    with pytest.raises(TypeError):
        repo._entries["2"] = CatalogEntry("2", "B", "r")  # type: ignore[index]
