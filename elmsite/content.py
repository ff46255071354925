from __future__ import annotations

import html as html_lib
import re
from pathlib import Path
from typing import Optional

import markdown

from .errors import ParseError
from .models import Attributes, ContentRecord

PAGES_DIR = "_pages"
POSTS_DIR = "_posts"
CONTENT_SUFFIXES = (".md", ".emu")
FRONT_MATTER_MARKER = "---"
EXCERPT_LENGTH = 500
EXCERPT_MARKER = "..."
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "codehilite"]

TAG_RE = re.compile(r"<[^>]+>")
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
EMU_METADATA_RE = re.compile(r"\|>\s*Metadata\s*")
EMU_BLANK_LINE_RE = re.compile(r"\n\s*\n")
KNOWN_KEYS = {"title", "description", "tags", "contentSource"}


def find_content(root: Path, directory: str) -> list[Path]:
    base = root / directory
    if not base.is_dir():
        return []
    found = [
        path.relative_to(root)
        for path in base.rglob("*")
        if path.suffix in CONTENT_SUFFIXES and path.is_file()
    ]
    return sorted(found, key=lambda p: p.as_posix())


def find_pages(root: Path) -> list[Path]:
    return find_content(root, PAGES_DIR)


def find_posts(root: Path) -> list[Path]:
    return find_content(root, POSTS_DIR)


def source_mtime(path: Path, display: Optional[Path] = None) -> float:
    """Modification time of the file a (possibly symlinked) path points to."""
    try:
        return path.resolve(strict=True).stat().st_mtime
    except OSError as exc:
        raise ParseError(display or path, f"Can't stat file: {exc}") from exc


def unquote(value: str) -> str:
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def parse_front_matter(text: str) -> tuple[dict[str, str], str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].rstrip() != FRONT_MATTER_MARKER:
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].rstrip() == FRONT_MATTER_MARKER:
            end = i
            break
    if end is None:
        return {}, clean_text

    meta = {}
    for line in lines[1:end]:
        if not line.strip() or ":" not in line:
            continue
        key, value = line.split(":", 1)
        meta[key.strip()] = value.strip()
    body = "\n".join(lines[end + 1 :])
    if clean_text.endswith("\n") and body:
        body += "\n"
    return meta, body


def parse_emu_metadata(text: str) -> dict[str, str]:
    start = EMU_METADATA_RE.search(text)
    end = EMU_BLANK_LINE_RE.search(text)
    if start is None or end is None or end.start() < start.end():
        return {}
    meta = {}
    for line in re.split(r"\s*\n\s+", text[start.end() : end.start()]):
        parts = [part.strip() for part in re.split(r"\s*=\s*", line, maxsplit=1)]
        if len(parts) == 2 and parts[0]:
            meta[parts[0]] = parts[1]
    return meta


def to_attributes(meta: dict[str, str]) -> Attributes:
    tags = tuple(tag for tag in (meta.get("tags") or "").split() if tag)
    return Attributes(
        title=unquote(meta.get("title", "")),
        description=meta.get("description", ""),
        tags=tags,
        content_source=meta.get("contentSource", ""),
        extra={key: value for key, value in meta.items() if key not in KNOWN_KEYS},
    )


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match and not list_match.group("indent"):
            if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                out.append("")
        out.append(line)
    return "\n".join(out)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def convert_markdown(body: str) -> tuple[str, str]:
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
    content_html = md.convert(normalize_list_spacing(body))
    return content_html, md.toc


def make_excerpt(content_html: str) -> str:
    # Fixed cut, may end mid-word.
    text = html_lib.unescape(strip_tags(content_html)).strip()
    return text[:EXCERPT_LENGTH] + EXCERPT_MARKER


def read_source(path: Path, display: Optional[Path] = None) -> str:
    try:
        return path.resolve(strict=True).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(display or path, f"Can't read file: {exc}") from exc


def parse(path: Path, rel_path: Optional[Path] = None) -> ContentRecord:
    """Read one content file into a ContentRecord.

    ``path`` is read through any symlink; ``rel_path`` is the site-relative
    name recorded on the result and used in error messages.
    """
    display = rel_path or path
    mtime = source_mtime(path, display)
    text = read_source(path, display)
    if path.suffix == ".emu":
        return ContentRecord(
            attributes=to_attributes(parse_emu_metadata(text)),
            body=text,
            excerpt="",
            source_path=display,
            source_mtime=mtime,
            format="emu",
        )
    meta, body = parse_front_matter(text)
    content_html, toc = convert_markdown(body)
    return ContentRecord(
        attributes=to_attributes(meta),
        body=body,
        excerpt=make_excerpt(content_html),
        source_path=display,
        source_mtime=mtime,
        format="md",
        content_html=content_html,
        toc=toc,
    )
