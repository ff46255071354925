from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from .cache import BuildCache
from .config import SiteConfig
from .content import PAGES_DIR, parse, source_mtime
from .errors import ParseError, TagValidationError
from .models import (
    PAGE_LAYOUT,
    POST_LAYOUT,
    POSTS_LAYOUT,
    PageConfig,
    PostConfig,
    TagPageConfig,
    append_title,
)

DATE_TOKEN_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
POSTS_OUTPUT_DIR = "posts"
TAGS_OUTPUT_DIR = "tags"
INDEX_NAME = "index"


@dataclass(frozen=True)
class PostFileName:
    section: str
    is_index: bool
    output_path: Path
    date: str = ""
    slug: str = ""
    link: str = ""


def strip_leading_underscore(rel_path: PurePosixPath) -> PurePosixPath:
    text = rel_path.as_posix()
    return PurePosixPath(text[1:]) if text.startswith("_") else rel_path


def drop_extension(rel_path: PurePosixPath) -> PurePosixPath:
    return rel_path.with_suffix("") if rel_path.suffix else rel_path


def page_output_path(output_dir: Path, rel_path: Path) -> Path:
    under_pages = PurePosixPath(rel_path.as_posix()).relative_to(PAGES_DIR)
    return output_dir / drop_extension(under_pages)


def parse_post_file_name(output_dir: Path, rel_path: Path) -> PostFileName:
    output_rel = strip_leading_underscore(PurePosixPath(rel_path.as_posix()))
    dir_name = output_rel.parent
    section = "" if dir_name.as_posix() == POSTS_OUTPUT_DIR else dir_name.name
    stem = drop_extension(PurePosixPath(output_rel.name)).as_posix()

    if stem == INDEX_NAME:
        return PostFileName(section=section, is_index=True, output_path=output_dir / dir_name)

    date = stem[:10]
    if not DATE_TOKEN_RE.match(date):
        raise ParseError(rel_path, "Post file name must start with a YYYY-MM-DD date")
    try:
        dt.date.fromisoformat(date)
    except ValueError as exc:
        raise ParseError(rel_path, f"Invalid date in post file name: {date}") from exc
    if len(stem) < 11 or stem[10].isalnum():
        raise ParseError(rel_path, "Post file name must separate the date from the slug")
    slug = stem[11:]
    if not slug:
        raise ParseError(rel_path, "Post file name has no slug after the date")

    link = (dir_name / f"{date}-{slug}").as_posix()
    return PostFileName(
        section=section,
        is_index=False,
        output_path=output_dir / link,
        date=date,
        slug=slug,
        link=link,
    )


def dedupe_tags(tags: Iterable[str]) -> tuple[str, ...]:
    seen = set()
    result = []
    for tag in tags:
        key = tag.lower()
        if tag and key not in seen:
            seen.add(key)
            result.append(tag)
    return tuple(result)


def find_invalid_tags(tags: Iterable[str], allowed_tags: Iterable[str]) -> list[str]:
    allowed = set(allowed_tags)
    if not allowed:
        return []
    return list(dedupe_tags(tag.lower() for tag in tags if tag.lower() not in allowed))


def build_page_config(root: Path, rel_path: Path, site: SiteConfig) -> PageConfig:
    record = parse(root / rel_path, rel_path)
    source = record.attributes.content_source
    if source:
        transcluded_rel = Path(PAGES_DIR) / f"{source}{rel_path.suffix}"
        transcluded = parse(root / transcluded_rel, transcluded_rel)
        record = replace(
            record,
            body=transcluded.body,
            excerpt=transcluded.excerpt,
            content_html=transcluded.content_html,
            toc=transcluded.toc,
        )
    return PageConfig(
        record=record,
        input_path=rel_path,
        output_path=page_output_path(site.output_dir, rel_path),
        site_title=append_title(record.attributes.title, site.site_title),
        layout=PAGE_LAYOUT,
    )


def build_page_configs(
    root: Path, paths: Iterable[Path], cache: BuildCache, site: SiteConfig
) -> tuple[list[PageConfig], set[Path]]:
    pages = []
    fresh = set()
    for rel_path in paths:
        if cache.should_recompute(rel_path, source_mtime(root / rel_path, rel_path)):
            pages.append(build_page_config(root, rel_path, site))
            fresh.add(rel_path)
        else:
            pages.append(cache.get(rel_path).config)
    return pages, fresh


def build_post_config(root: Path, rel_path: Path, site: SiteConfig) -> PostConfig:
    name = parse_post_file_name(site.output_dir, rel_path)
    record = parse(root / rel_path, rel_path)
    return PostConfig(
        record=record,
        input_path=rel_path,
        output_path=name.output_path,
        site_title=append_title(record.attributes.title, site.site_title),
        section=name.section,
        is_index=name.is_index,
        date=name.date,
        slug=name.slug,
        link=name.link,
        tags=dedupe_tags([*record.attributes.tags, name.section]),
        layout=POSTS_LAYOUT if name.is_index else POST_LAYOUT,
    )


def is_published(post: PostConfig, include_drafts: bool, today: dt.date) -> bool:
    if include_drafts or post.is_index:
        return True
    return post.published_on <= today


def same_members(previous: tuple[PostConfig, ...], current: tuple[PostConfig, ...], fresh: set[Path]) -> bool:
    if [p.source_path for p in previous] != [p.source_path for p in current]:
        return False
    return not any(p.source_path in fresh for p in current)


def aggregate_indexes(
    posts: list[PostConfig], cache: Optional[BuildCache] = None, fresh: Optional[set[Path]] = None
) -> list[PostConfig]:
    """Fill every index post with the posts of its section (all for the root index).

    An index whose file and member list are unchanged since the cached pass
    keeps its rendered HTML.
    """
    fresh = fresh or set()
    members = [post for post in posts if not post.is_index]
    result = []
    for post in posts:
        if post.is_index:
            section_posts = tuple(
                member for member in members if not post.section or member.section == post.section
            )
            entry = cache.get(post.source_path) if cache is not None else None
            html = None
            if (
                entry is not None
                and entry.config.html is not None
                and entry.source_mtime == post.record.source_mtime
                and same_members(entry.config.posts, section_posts, fresh - {post.source_path})
            ):
                html = entry.config.html
            post = replace(post, posts=section_posts, html=html)
        result.append(post)
    return result


def build_post_configs(
    root: Path,
    paths: Iterable[Path],
    cache: BuildCache,
    site: SiteConfig,
    include_drafts: bool = False,
    today: Optional[dt.date] = None,
) -> tuple[list[PostConfig], set[Path]]:
    today = today or dt.date.today()
    posts = []
    fresh = set()
    invalid: dict[Path, list[str]] = {}
    for rel_path in paths:
        if cache.should_recompute(rel_path, source_mtime(root / rel_path, rel_path)):
            post = build_post_config(root, rel_path, site)
            bad_tags = find_invalid_tags(post.record.attributes.tags, site.allowed_tags)
            if bad_tags:
                invalid[rel_path] = bad_tags
            fresh.add(rel_path)
        else:
            post = cache.get(rel_path).config
        posts.append(post)
    if invalid:
        raise TagValidationError(invalid)

    published = [post for post in posts if is_published(post, include_drafts, today)]
    return aggregate_indexes(published, cache, fresh), fresh


def posts_with_tag(tag: str, posts: Iterable[PostConfig]) -> tuple[PostConfig, ...]:
    key = tag.lower()
    return tuple(post for post in posts if key in {t.lower() for t in post.tags})


def extract_tags(posts: Iterable[PostConfig]) -> list[str]:
    return list(dedupe_tags(tag for post in posts for tag in post.tags))


def build_tag_pages(
    site: SiteConfig,
    posts: list[PostConfig],
    cache: BuildCache,
    fresh: set[Path],
) -> list[TagPageConfig]:
    members = [post for post in posts if not post.is_index]
    tag_pages = []
    for tag in extract_tags(members):
        tagged = posts_with_tag(tag, members)
        page = TagPageConfig(
            tag=tag,
            posts=tagged,
            output_path=site.output_dir / TAGS_OUTPUT_DIR / tag,
            site_title=append_title(f"Tag: {tag}", site.site_title),
        )
        previous = cache.tag_page(tag)
        if (
            previous is not None
            and previous.html is not None
            and previous.tag == tag
            and same_members(previous.posts, tagged, fresh)
        ):
            page = previous
        tag_pages.append(page)
    return tag_pages
