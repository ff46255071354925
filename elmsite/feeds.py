from __future__ import annotations

import datetime as dt
import html
import json
from pathlib import Path
from typing import Any, Iterable, Mapping

from .errors import ConfigError
from .log import get_logger
from .models import PostConfig
from .pages import posts_with_tag
from .writer import write_text

FEED_FILES = {"atom": "atom.xml", "json": "feed.json", "rss": "rss.xml"}
JSON_FEED_VERSION = "https://jsonfeed.org/version/1"

logger = get_logger("feeds")


def rfc822_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%a, %d %b %Y %H:%M:%S %z")


def iso_date(value: dt.datetime) -> str:
    value = value.replace(tzinfo=dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def post_datetime(post: PostConfig) -> dt.datetime:
    return dt.datetime.combine(post.published_on, dt.time())


def feed_items(config: Mapping[str, Any], posts: Iterable[PostConfig]) -> list[dict]:
    base = str(config.get("link") or "").rstrip("/")
    items = []
    for post in sorted((p for p in posts if not p.is_index), key=lambda p: p.date, reverse=True):
        section = "" if not post.section or config.get("isSectionFeed") else f"{post.section}/"
        link = f"{base}/{section}{post.date}-{post.slug}"
        items.append(
            {
                "title": post.title,
                "id": link,
                "link": link,
                "description": post.record.attributes.description or post.record.excerpt,
                "date": post_datetime(post),
            }
        )
    return items


def author_name(config: Mapping[str, Any]) -> str:
    author = config.get("author")
    if isinstance(author, Mapping):
        return str(author.get("name") or "")
    return str(author or "")


def render_rss(config: Mapping[str, Any], items: list[dict]) -> str:
    entries = []
    for item in items:
        entries.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(item['title'])}</title>",
                    f"<link>{html.escape(item['link'])}</link>",
                    f"<guid>{html.escape(item['id'])}</guid>",
                    f"<pubDate>{rfc822_date(item['date'])}</pubDate>",
                    f"<description>{html.escape(item['description'])}</description>",
                    "</item>",
                ]
            )
        )
    last_build = rfc822_date(items[0]["date"]) if items else rfc822_date(dt.datetime.now(dt.timezone.utc))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(str(config.get('title') or ''))}</title>",
            f"<link>{html.escape(str(config.get('link') or ''))}</link>",
            f"<description>{html.escape(str(config.get('description') or ''))}</description>",
            f"<lastBuildDate>{last_build}</lastBuildDate>",
            "\n".join(entries),
            "</channel>",
            "</rss>",
        ]
    )


def render_atom(config: Mapping[str, Any], items: list[dict]) -> str:
    link = str(config.get("link") or "")
    updated = iso_date(items[0]["date"]) if items else iso_date(dt.datetime.now(dt.timezone.utc))
    name = author_name(config)
    entries = []
    for item in items:
        entries.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(item['title'])}</title>",
                    f'<link href="{html.escape(item["link"])}" />',
                    f"<id>{html.escape(item['id'])}</id>",
                    f"<updated>{iso_date(item['date'])}</updated>",
                    f"<summary>{html.escape(item['description'])}</summary>",
                    f"<author><name>{html.escape(name)}</name></author>" if name else "",
                    "</entry>",
                ]
            )
        )
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(str(config.get('title') or ''))}</title>",
            f"<id>{html.escape(str(config.get('id') or link))}</id>",
            f"<updated>{updated}</updated>",
            f'<link href="{html.escape(link)}" />',
            "\n".join(entries),
            "</feed>",
        ]
    )


def render_json(config: Mapping[str, Any], items: list[dict]) -> str:
    name = author_name(config)
    feed = {
        "version": JSON_FEED_VERSION,
        "title": str(config.get("title") or ""),
        "home_page_url": str(config.get("link") or ""),
        "description": str(config.get("description") or ""),
        "items": [
            {
                "id": item["id"],
                "url": item["link"],
                "title": item["title"],
                "summary": item["description"],
                "date_published": iso_date(item["date"]),
                **({"author": {"name": name}} if name else {}),
            }
            for item in items
        ],
    }
    return json.dumps(feed, indent=4, ensure_ascii=False)


RENDERERS = {"atom": render_atom, "json": render_json, "rss": render_rss}


def generate_feed(output_dir: Path, config: Mapping[str, Any], posts: Iterable[PostConfig]) -> Path:
    feed_type = str(config.get("type") or "rss")
    if feed_type not in RENDERERS:
        raise ConfigError(f'Unknown feed type "{feed_type}"; use one of: {", ".join(sorted(RENDERERS))}')
    path = output_dir / FEED_FILES[feed_type]
    logger.debug("    Writing %s", path)
    write_text(path, RENDERERS[feed_type](config, feed_items(config, posts)))
    return path


def section_feed_config(config: Mapping[str, Any], section: str) -> dict:
    result = dict(config, isSectionFeed=True)
    for key in ("title", "id", "link"):
        if key in result:
            result[key] = f"{result[key]}/{section}"
    return result


def generate_feeds(config: Mapping[str, Any], output_dir: Path, posts: list[PostConfig]) -> list[Path]:
    posts = [post for post in posts if not post.is_index]
    written = [generate_feed(output_dir, dict(config, isSectionFeed=False), posts)]
    sections = list(dict.fromkeys(post.section for post in posts if post.section))
    for section in sections:
        written.append(
            generate_feed(
                output_dir / section,
                section_feed_config(config, section),
                posts_with_tag(section, posts),
            )
        )
    return written
