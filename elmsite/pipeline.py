"""One render pass: discover, resolve, compile, render, write."""

from __future__ import annotations

import datetime as dt
import tempfile
from pathlib import Path
from typing import Optional

from .cache import BuildCache
from .config import SiteConfig, read_site_config
from .content import find_pages, find_posts
from .feeds import generate_feeds
from .layouts import ElmCompiler, LayoutCompiler, required_layouts
from .log import get_logger
from .pages import build_page_configs, build_post_configs, build_tag_pages
from .render import NodeRenderer, Renderer, RenderPool
from .writer import (
    copy_resources,
    duplicate_pages,
    empty_output_dir,
    run_post_process,
    write_highlight_css,
    write_pages,
)

logger = get_logger("pipeline")


class Pipeline:
    def __init__(
        self,
        root: Path,
        *,
        include_drafts: bool = False,
        workers: Optional[int] = None,
        compiler: Optional[LayoutCompiler] = None,
        renderer: Optional[Renderer] = None,
        today: Optional[dt.date] = None,
    ) -> None:
        self.root = root
        self.include_drafts = include_drafts
        self.workers = workers
        self.compiler = compiler
        self.renderer = renderer
        self.today = today

    def _compiler(self, site: SiteConfig) -> LayoutCompiler:
        return self.compiler or ElmCompiler(site.elm)

    def _renderer(self, site: SiteConfig) -> Renderer:
        return self.renderer or NodeRenderer(self.root, site.node)

    def run(self, cache: Optional[BuildCache] = None, *, keep_output_alive: bool = False) -> BuildCache:
        """Run one pass seeded with ``cache`` and return the cache for the next one.

        Nothing is written until every record has rendered, and the returned
        cache only exists once the pass has succeeded.
        """
        cache = cache or BuildCache.empty()
        site = read_site_config(self.root)

        logger.info("  Generating pages")
        pages, fresh_pages = build_page_configs(self.root, find_pages(self.root), cache, site)

        logger.info("  Generating posts")
        posts, fresh_posts = build_post_configs(
            self.root,
            find_posts(self.root),
            cache,
            site,
            include_drafts=self.include_drafts,
            today=self.today,
        )

        logger.info("  Generating tag pages")
        tag_pages = build_tag_pages(site, posts, cache, fresh_posts)
        logger.debug(
            "    %d pages (%d changed), %d posts (%d changed), %d tags",
            len(pages),
            len(fresh_pages),
            len(posts),
            len(fresh_posts),
            len(tag_pages),
        )

        workers = site.workers if self.workers is None else self.workers
        layouts = required_layouts([*pages, *posts, *tag_pages], has_posts=bool(posts))
        if not layouts:
            logger.info("  Nothing to render")
            self.write(site, pages, posts, tag_pages, keep_output_alive=keep_output_alive)
            return BuildCache.empty()

        with tempfile.TemporaryDirectory(prefix="elmsite-") as work_dir:
            logger.info("  Compiling layouts")
            compiled = self._compiler(site).compile(self.root, layouts, Path(work_dir))

            logger.info("  Rendering")
            with RenderPool(self._renderer(site), workers) as pool:
                pages = pool.render_all(compiled, pages)
                posts = pool.render_all(compiled, posts)
                tag_pages = pool.render_all(compiled, tag_pages)

        self.write(site, pages, posts, tag_pages, keep_output_alive=keep_output_alive)
        return BuildCache.from_configs([*pages, *posts], tag_pages)

    def write(self, site, pages, posts, tag_pages, *, keep_output_alive: bool) -> None:
        output_dir = site.output_dir
        if keep_output_alive:
            output_dir.mkdir(parents=True, exist_ok=True)
        else:
            logger.info("  Cleaning out the output path (%s)", output_dir)
            empty_output_dir(output_dir, self.root)

        logger.info("  Writing HTML")
        write_pages([*pages, *posts, *tag_pages])

        if site.copy:
            logger.info("  Duplicating pages")
            duplicate_pages(site.copy, output_dir)

        if site.feed:
            logger.info("  Generating feeds")
            generate_feeds(site.feed, output_dir, posts)

        if site.post_process:
            logger.info("  Doing your postprocessing")
            run_post_process(site.post_process, self.root)

        if site.highlight_style:
            write_highlight_css(site.highlight_style, output_dir)

        logger.info("  Copying resources")
        copy_resources(self.root, output_dir)
        logger.info("  Done.")


def build_site(root: Path, *, include_drafts: bool = False, workers: Optional[int] = None) -> BuildCache:
    logger.info("Building the site%s", ", including draft content" if include_drafts else "")
    return Pipeline(root, include_drafts=include_drafts, workers=workers).run()
