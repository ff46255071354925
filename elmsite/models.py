"""Records flowing through a build pass.

Every record is frozen: a new file version or a finished render produces a new
record (``dataclasses.replace``), never a mutation in place.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional, Union

PAGE_LAYOUT = "Page"
POST_LAYOUT = "Post"
POSTS_LAYOUT = "Posts"
TAG_LAYOUT = "Tag"
LAYOUTS = (PAGE_LAYOUT, POST_LAYOUT, POSTS_LAYOUT, TAG_LAYOUT)


@dataclass(frozen=True)
class Attributes:
    title: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    content_source: str = ""
    extra: Mapping[str, str] = field(default_factory=dict)

    def to_flags(self) -> dict:
        flags = dict(self.extra)
        if self.title:
            flags["title"] = self.title
        if self.description:
            flags["description"] = self.description
        if self.tags:
            flags["tags"] = list(self.tags)
        if self.content_source:
            flags["contentSource"] = self.content_source
        return flags


@dataclass(frozen=True)
class ContentRecord:
    attributes: Attributes
    body: str
    excerpt: str
    source_path: Path
    source_mtime: float
    format: str = "md"
    content_html: str = ""
    toc: str = ""

    def to_flags(self) -> dict:
        flags = self.attributes.to_flags()
        flags["excerpt"] = self.excerpt
        flags["format"] = self.format
        if self.format == "md":
            flags["markdown"] = self.body
            flags["contentHtml"] = self.content_html
            flags["toc"] = self.toc
        else:
            flags["content"] = self.body
        return flags


@dataclass(frozen=True)
class PageConfig:
    record: ContentRecord
    input_path: Path
    output_path: Path
    site_title: str
    layout: str = PAGE_LAYOUT
    html: Optional[str] = None

    @property
    def source_path(self) -> Path:
        return self.input_path

    @property
    def is_index(self) -> bool:
        return False

    def with_html(self, html: str) -> "PageConfig":
        return replace(self, html=html)

    def to_flags(self) -> dict:
        flags = self.record.to_flags()
        flags.update(
            {
                "layout": self.layout,
                "inputPath": self.input_path.as_posix(),
                "outputPath": self.output_path.as_posix(),
                "siteTitle": self.site_title,
            }
        )
        return flags


@dataclass(frozen=True)
class PostConfig:
    record: ContentRecord
    input_path: Path
    output_path: Path
    site_title: str
    section: str
    is_index: bool
    date: str = ""
    slug: str = ""
    link: str = ""
    tags: tuple[str, ...] = ()
    layout: str = POST_LAYOUT
    posts: tuple["PostConfig", ...] = ()
    html: Optional[str] = None

    @property
    def source_path(self) -> Path:
        return self.input_path

    @property
    def title(self) -> str:
        return self.record.attributes.title

    @property
    def published_on(self) -> dt.date:
        return dt.date.fromisoformat(self.date)

    def with_html(self, html: str) -> "PostConfig":
        return replace(self, html=html)

    def to_flags(self, *, nested: bool = True) -> dict:
        flags = self.record.to_flags()
        flags.update(
            {
                "layout": self.layout,
                "inputPath": self.input_path.as_posix(),
                "outputPath": self.output_path.as_posix(),
                "siteTitle": self.site_title,
                "section": self.section,
                "isIndex": self.is_index,
                "tags": list(self.tags),
            }
        )
        if self.is_index:
            if nested:
                flags["posts"] = [post.to_flags(nested=False) for post in self.posts]
        else:
            flags.update({"date": self.date, "slug": self.slug, "link": self.link})
        return flags


@dataclass(frozen=True)
class TagPageConfig:
    tag: str
    posts: tuple[PostConfig, ...]
    output_path: Path
    site_title: str
    layout: str = TAG_LAYOUT
    html: Optional[str] = None

    @property
    def title(self) -> str:
        return f"Tag: {self.tag}"

    @property
    def source_path(self) -> Path:
        return Path("tags") / self.tag

    def with_html(self, html: str) -> "TagPageConfig":
        return replace(self, html=html)

    def to_flags(self) -> dict:
        return {
            "layout": self.layout,
            "markdown": "",
            "outputPath": self.output_path.as_posix(),
            "posts": [post.to_flags(nested=False) for post in self.posts],
            "section": "",
            "siteTitle": self.site_title,
            "tag": self.tag,
            "title": self.title,
        }


AnyConfig = Union[PageConfig, PostConfig, TagPageConfig]


def append_title(title: str, site_title: str) -> str:
    if not site_title:
        return title
    return f"{title} | {site_title}"
