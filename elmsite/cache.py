from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from .models import PageConfig, PostConfig, TagPageConfig

FileConfig = Union[PageConfig, PostConfig]


@dataclass(frozen=True)
class CacheEntry:
    config: FileConfig
    source_mtime: float


def should_recompute(path: Path, current_mtime: float, entry: Optional[CacheEntry]) -> bool:
    """Decide whether ``path`` has to be parsed and resolved again.

    Index posts are always recomputed: their ``posts`` list depends on the other
    files in the pass, not on the index file's own modification time.
    """
    if entry is None:
        return True
    if current_mtime > entry.source_mtime:
        return True
    return entry.config.is_index


@dataclass(frozen=True)
class BuildCache:
    entries: dict[Path, CacheEntry] = field(default_factory=dict)
    tag_pages: dict[str, TagPageConfig] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "BuildCache":
        return cls()

    @classmethod
    def from_configs(
        cls, configs: Iterable[FileConfig], tag_pages: Iterable[TagPageConfig] = ()
    ) -> "BuildCache":
        entries = {
            config.source_path: CacheEntry(config, config.record.source_mtime)
            for config in configs
        }
        return cls(entries, {page.tag.lower(): page for page in tag_pages})

    def get(self, path: Path) -> Optional[CacheEntry]:
        return self.entries.get(path)

    def should_recompute(self, path: Path, current_mtime: float) -> bool:
        return should_recompute(path, current_mtime, self.get(path))

    def tag_page(self, tag: str) -> Optional[TagPageConfig]:
        return self.tag_pages.get(tag.lower())

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, path: object) -> bool:
        return path in self.entries
