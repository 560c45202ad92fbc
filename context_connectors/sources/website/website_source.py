"""
Website source: a bounded breadth-first crawl converted to markdown-ish text.

Crawled pages have no stable notion of a delta, so every sync is a full
re-crawl. Pages are addressed by a path derived from the URL
(``/docs/intro?v=2`` becomes ``docs/intro_v=2.md``).
"""

import asyncio
import re
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

import httpx
from bs4 import BeautifulSoup

from context_connectors.exceptions import ConfigurationError
from context_connectors.logger import setup_logger
from context_connectors.sources.base.source_interface import Source
from context_connectors.types import (
    FileChanges,
    FileEntry,
    FileInfo,
    SourceKind,
    SourceMetadata,
    WebsiteSourceConfig,
    WebsiteSourceMetadata,
)
from context_connectors.utils import iso_timestamp

logger = setup_logger(__name__)

DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_PAGES = 100
DEFAULT_USER_AGENT = "ContextConnectors/1.0"
DEFAULT_DELAY_MS = 100

_SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:")
_STRIPPED_TAGS = ["script", "style", "nav", "header", "footer", "aside"]
_UNSAFE_QUERY_CHARS = re.compile(r"[^a-zA-Z0-9_=-]")


@dataclass
class CrawledPage:
    url: str
    path: str
    content: str
    title: str


def glob_to_regex(pattern: str) -> re.Pattern:
    """``*`` matches any run of characters (including ``/``), ``?`` one character."""
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$")


def normalize_url(url: str) -> str:
    """Drop the fragment and any trailing slash except on the root path."""
    parsed = urlparse(url)
    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]
    return urlunparse(parsed._replace(path=path, fragment=""))


def page_path_for_url(url: str) -> str:
    """Storage path for a crawled URL: ``/`` is ``index.md``, the query is kept."""
    parsed = urlparse(url)
    path = parsed.path
    if path in ("", "/"):
        path = "/index"
    if parsed.query:
        path = f"{path}_{_UNSAFE_QUERY_CHARS.sub('_', parsed.query)}"
    return path.lstrip("/") + ".md"


def html_to_text(soup: BeautifulSoup) -> str:
    """Reduce a page to headings, paragraphs, list items and fenced code."""
    for element in soup(_STRIPPED_TAGS):
        element.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""

    content = soup.select_one("article, main, [role=main]") or soup.body or soup

    for heading in content.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        level = int(heading.name[1])
        heading.replace_with(f"\n\n{'#' * level} {heading.get_text().strip()}\n\n")

    for paragraph in content.find_all("p"):
        paragraph.replace_with(f"\n\n{paragraph.get_text().strip()}\n\n")

    for item in content.find_all("li"):
        item.replace_with(f"\n- {item.get_text().strip()}")

    for block in content.find_all(["pre", "code"]):
        # <pre><code> is fenced once, by the <pre>
        if block.name == "code" and block.find_parent("pre") is not None:
            continue
        block.replace_with(f"\n```\n{block.get_text()}\n```\n")

    text = content.get_text()
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]+", " ", text).strip()

    if title:
        text = f"# {title}\n\n{text}"
    return text


class WebsiteSource(Source):
    """Crawl a website and expose its pages as markdown files."""

    kind = SourceKind.WEBSITE

    def __init__(
        self,
        config: WebsiteSourceConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        parsed = urlparse(config.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid website URL: {config.url}")

        self.url = config.url
        self.start_url = normalize_url(config.url)
        self.origin = f"{parsed.scheme}://{parsed.netloc}"
        self.max_depth = (
            config.max_depth if config.max_depth is not None else DEFAULT_MAX_DEPTH
        )
        self.max_pages = (
            config.max_pages if config.max_pages is not None else DEFAULT_MAX_PAGES
        )
        self.include_paths = list(config.include_paths or [])
        self.exclude_paths = list(config.exclude_paths or [])
        self.respect_robots_txt = (
            config.respect_robots_txt if config.respect_robots_txt is not None else True
        )
        self.user_agent = config.user_agent or DEFAULT_USER_AGENT
        self.delay_ms = config.delay_ms if config.delay_ms is not None else DEFAULT_DELAY_MS

        self._include = [glob_to_regex(p) for p in self.include_paths]
        self._exclude = [glob_to_regex(p) for p in self.exclude_paths]
        self._crawled: List[CrawledPage] = []
        self._crawl_done = False
        self._robots_rules: Set[str] = set()
        self._robots_loaded = False

        self.client = httpx.AsyncClient(
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            timeout=30.0,
            transport=transport,
        )

    async def close(self) -> None:
        await self.client.aclose()

    # ============ robots.txt ============

    async def _load_robots_txt(self) -> None:
        if self._robots_loaded or not self.respect_robots_txt:
            return
        self._robots_loaded = True

        try:
            response = await self.client.get(f"{self.origin}/robots.txt")
        except httpx.HTTPError as e:
            logger.debug(f"[WEBSITE] robots.txt unavailable: {e}")
            return

        if response.status_code == 200:
            self._parse_robots_txt(response.text)

    def _parse_robots_txt(self, content: str) -> None:
        applies = False
        agent_name = self.user_agent.lower()
        for line in content.splitlines():
            directive, sep, value = line.split("#", 1)[0].partition(":")
            if not sep:
                continue
            directive = directive.strip().lower()
            # rule paths are case-sensitive, only directive names and agents are not
            value = value.strip()
            if directive == "user-agent":
                agent = value.lower()
                applies = agent == "*" or agent == agent_name
            elif applies and directive == "disallow":
                rule = value
                if rule:
                    self._robots_rules.add(rule)

    def is_allowed_by_robots(self, path: str) -> bool:
        if not self.respect_robots_txt:
            return True
        return not any(path.startswith(rule) for rule in self._robots_rules)

    # ============ Crawling ============

    def should_index(self, url: str) -> bool:
        """Include/exclude patterns gate indexing only, never link discovery."""
        path = urlparse(url).path or "/"
        if any(rx.match(path) for rx in self._exclude):
            return False
        if self._include:
            return any(rx.match(path) for rx in self._include)
        return True

    def extract_links(self, soup: BeautifulSoup, base_url: str) -> List[str]:
        links: List[str] = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.startswith(_SKIPPED_SCHEMES):
                continue
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
            if f"{parsed.scheme}://{parsed.netloc}" != self.origin:
                continue
            links.append(normalize_url(absolute))
        return links

    async def _crawl_page(self, url: str) -> Optional[Tuple[str, str, List[str]]]:
        try:
            response = await self.client.get(
                url, headers={"Accept": "text/html,application/xhtml+xml"}
            )
        except httpx.HTTPError as e:
            logger.debug(f"[WEBSITE] Failed to fetch {url}: {e}")
            return None

        if not response.is_success:
            return None
        if "text/html" not in response.headers.get("content-type", ""):
            return None

        soup = BeautifulSoup(response.text, "html.parser")
        links = self.extract_links(soup, url)
        title = (soup.title.get_text(strip=True) if soup.title else "") or urlparse(url).path
        return html_to_text(soup), title, links

    async def crawl(self) -> List[CrawledPage]:
        """Breadth-first crawl bounded by depth and page count; runs once per instance."""
        if self._crawl_done:
            return self._crawled

        self._crawled = []
        await self._load_robots_txt()

        visited: Set[str] = set()
        queue: Deque[Tuple[str, int]] = deque([(self.start_url, 0)])
        logger.info(
            f"[WEBSITE] Starting crawl from {self.start_url} "
            f"(max depth: {self.max_depth}, max pages: {self.max_pages})"
        )

        while queue and len(self._crawled) < self.max_pages:
            url, depth = queue.popleft()
            if url in visited:
                continue
            visited.add(url)

            if not self.is_allowed_by_robots(urlparse(url).path or "/"):
                continue

            if len(visited) > 1 and self.delay_ms > 0:
                await asyncio.sleep(self.delay_ms / 1000)

            result = await self._crawl_page(url)
            if result is None:
                continue
            content, title, links = result

            if depth < self.max_depth:
                queue.extend((link, depth + 1) for link in links if link not in visited)

            if not self.should_index(url):
                continue

            self._crawled.append(
                CrawledPage(url=url, path=page_path_for_url(url), content=content, title=title)
            )
            logger.debug(f"[WEBSITE] Crawled {url} ({len(self._crawled)}/{self.max_pages})")

        self._crawl_done = True
        logger.info(f"[WEBSITE] Crawl complete, {len(self._crawled)} pages")
        return self._crawled

    # ============ Source API ============

    async def fetch_all(self) -> List[FileEntry]:
        pages = await self.crawl()
        return [FileEntry(path=page.path, contents=page.content) for page in pages]

    async def fetch_changes(self, previous: SourceMetadata) -> Optional[FileChanges]:
        return None

    async def get_metadata(self) -> WebsiteSourceMetadata:
        return WebsiteSourceMetadata(
            config=WebsiteSourceConfig(
                url=self.url,
                max_depth=self.max_depth,
                max_pages=self.max_pages,
                include_paths=self.include_paths or None,
                exclude_paths=self.exclude_paths or None,
                respect_robots_txt=self.respect_robots_txt,
                user_agent=None
                if self.user_agent == DEFAULT_USER_AGENT
                else self.user_agent,
                delay_ms=None if self.delay_ms == DEFAULT_DELAY_MS else self.delay_ms,
            ),
            synced_at=iso_timestamp(),
        )

    async def list_files(self, directory: str = "") -> List[FileInfo]:
        # pages have no hierarchy; everything is listed at the root
        if directory not in ("", "/", "."):
            return []
        pages = await self.crawl()
        return [FileInfo(path=page.path, type="file") for page in pages]

    async def read_file(self, path: str) -> Optional[str]:
        for page in self._crawled:
            if page.path == path:
                return page.content

        url_path = path[:-3] if path.endswith(".md") else path
        url_path = "/" if url_path == "index" else "/" + url_path.lstrip("/")
        result = await self._crawl_page(f"{self.origin}{url_path}")
        return result[0] if result else None
