from __future__ import annotations

"""Catalog repository.

Maps client-facing content ids to immutable `CatalogEntry` records. The
default implementation is in-memory, loaded once from a JSON file (the
packaged `data/catalog.json` unless `CATALOG_DATA_PATH` points elsewhere).
Nothing outside the resolver/proxy path should read `upstream_ref`.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

log = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "catalog.json"

PUBLIC_FIELDS = ("id", "title", "description", "thumbnail", "duration", "year")


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    title: str
    upstream_ref: str
    description: str = ""
    thumbnail: str = ""
    duration: str = ""
    year: str = ""

    def public_view(self) -> Dict[str, str]:
        """Sanitized dict for clients (never includes `upstream_ref`)."""
        return {name: getattr(self, name) for name in PUBLIC_FIELDS}


class CatalogRepositoryProtocol:
    def get(self, content_id: str) -> Optional[CatalogEntry]:
        raise NotImplementedError

    def list_entries(self) -> List[CatalogEntry]:
        raise NotImplementedError


class CatalogLoadError(RuntimeError):
    """Raised when the catalog file is missing or malformed."""


def _coerce_entry(raw: Mapping[str, Any], *, fallback_id: Optional[str] = None) -> CatalogEntry:
    content_id = str(raw.get("id") or fallback_id or "").strip()
    upstream_ref = str(raw.get("upstream_ref") or "").strip()
    if not content_id or not upstream_ref:
        raise CatalogLoadError(f"catalog entry {raw.get('title')!r} needs both 'id' and 'upstream_ref'")
    return CatalogEntry(
        id=content_id,
        title=str(raw.get("title") or ""),
        upstream_ref=upstream_ref,
        description=str(raw.get("description") or ""),
        thumbnail=str(raw.get("thumbnail") or ""),
        duration=str(raw.get("duration") or ""),
        year=str(raw.get("year") or ""),
    )


class MemoryCatalogRepository(CatalogRepositoryProtocol):
    """
    Read-only in-memory catalog.

    Accepts either a list of entry objects or an object keyed by content id
    (the key is used when an entry has no `id` of its own).
    """

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        by_id: Dict[str, CatalogEntry] = {}
        for entry in entries:
            if entry.id in by_id:
                raise CatalogLoadError(f"duplicate catalog id {entry.id!r}")
            by_id[entry.id] = entry
        self._entries: Mapping[str, CatalogEntry] = MappingProxyType(by_id)

    @classmethod
    def from_json(cls, path: Union[str, Path, None] = None) -> "MemoryCatalogRepository":
        data_path = Path(path) if path else DEFAULT_CATALOG_PATH
        try:
            with open(data_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            raise CatalogLoadError(f"cannot load catalog from {data_path}: {exc}") from exc

        if isinstance(raw, dict):
            entries = [_coerce_entry(v, fallback_id=k) for k, v in raw.items()]
        elif isinstance(raw, list):
            entries = [_coerce_entry(v) for v in raw]
        else:
            raise CatalogLoadError(f"catalog at {data_path} must be a list or an object")

        log.info("Loaded %d catalog entries from %s", len(entries), data_path)
        return cls(entries)

    # Interface
    def get(self, content_id: str) -> Optional[CatalogEntry]:
        return self._entries.get(content_id)

    def list_entries(self) -> List[CatalogEntry]:
        return list(self._entries.values())

    def __contains__(self, content_id: object) -> bool:
        return content_id in self._entries

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


def get_catalog_repository(path: Union[str, Path, None] = None) -> MemoryCatalogRepository:
    """Factory used at startup; `path` overrides the packaged catalog."""
    return MemoryCatalogRepository.from_json(path)
