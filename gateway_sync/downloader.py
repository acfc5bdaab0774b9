# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

"""Download allowlist/blocklist sources and normalize them into domain sets."""

import asyncio
import logging
import re
from typing import Dict, Iterable, List, Sequence, Tuple

import aiohttp

from gateway_sync.config import Config
from gateway_sync.context import RunContext
from gateway_sync.errors import DownloadError

logger = logging.getLogger(__name__)

COMMENT_PREFIX = re.compile(r'^\s*(#|//|!|/\*)')

# Labels of 1-63 chars that do not start or end with '-', alphabetic TLD of 2-63 chars
DOMAIN_PATTERN = re.compile(r'^([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$')

_HOSTS_PREFIXES = ("0.0.0.0 ", "127.0.0.1 ", "::1 ")
_MARKER_PREFIXES = ("||", "*.", "^")

def normalize_line(line: str) -> str:
    """Reduce a hosts/adblock/plain list line to a bare lowercase domain candidate."""
    s = line.strip()
    for prefix in _HOSTS_PREFIXES + _MARKER_PREFIXES:
        if s.startswith(prefix):
            s = s[len(prefix):]
    # Anything after whitespace is list metadata
    s = s.split(" ")[0]
    s = s.rstrip("^/\t\r\n ")
    s = s.strip("|\t\r\n ")
    return s.lower()

def is_valid_domain(domain: str) -> bool:
    """Validate domain format."""
    if not domain or len(domain) > 253:
        return False
    return bool(DOMAIN_PATTERN.match(domain))

def parse_domains(lines: Iterable[str]) -> List[str]:
    """Valid domains found in a source, deduplicated, in order of first appearance."""
    seen: Dict[str, None] = {}
    for line in lines:
        line = line.strip()
        if not line or COMMENT_PREFIX.match(line):
            continue
        domain = normalize_line(line)
        if is_valid_domain(domain):
            seen.setdefault(domain, None)
    return list(seen)

class Downloader:
    def __init__(self, timeout: int = 30, max_concurrency: int = 4):
        self.timeout = timeout
        self.max_concurrency = max_concurrency

    @classmethod
    def from_config(cls, config: Config) -> "Downloader":
        return cls(timeout=config.request_timeout, max_concurrency=config.max_concurrent_downloads)

    def download_and_process(self, ctx: RunContext, config: Config) -> Tuple[List[str], List[str]]:
        """
        Download every configured source and return (allow, block).

        Both are deduplicated and in first-seen order across sources; block
        entries that are also allowed are dropped. Any failing source raises
        DownloadError.
        """
        ctx.check()
        allow_sources, block_sources = asyncio.run(
            self._download_all(list(config.allow_urls), list(config.block_urls)))
        ctx.check()

        allow = self._merge("allowlist", config.allow_urls, allow_sources)
        block = self._merge("blocklist", config.block_urls, block_sources)

        allowed = set(allow)
        overlap = sum(1 for domain in block if domain in allowed)
        if overlap:
            logger.info(f"Dropping {overlap:,} blocklist entries that are also allowlisted")
            block = [domain for domain in block if domain not in allowed]
        return allow, block

    @staticmethod
    def _merge(kind: str, urls: Sequence[str], sources: List[List[str]]) -> List[str]:
        merged: Dict[str, None] = {}
        for i, (url, domains) in enumerate(zip(urls, sources), 1):
            before = len(merged)
            for domain in domains:
                merged.setdefault(domain, None)
            logger.info(f"  [{i}/{len(urls)}] {kind} {url}: "
                        f"added {len(merged) - before:,} unique domain(s)")
        return list(merged)

    async def _download_all(self, allow_urls: List[str],
                            block_urls: List[str]) -> Tuple[List[List[str]], List[List[str]]]:
        if allow_urls:
            logger.info(f"📥 Downloading {len(allow_urls)} allowlist source(s)...")
        if block_urls:
            logger.info(f"📥 Downloading {len(block_urls)} blocklist source(s)...")

        semaphore = asyncio.Semaphore(self.max_concurrency)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            tasks = [self._fetch_domains(session, semaphore, url)
                     for url in allow_urls + block_urls]
            results = await asyncio.gather(*tasks)
        return list(results[:len(allow_urls)]), list(results[len(allow_urls):])

    async def _fetch_domains(self, session: aiohttp.ClientSession,
                             semaphore: asyncio.Semaphore, url: str) -> List[str]:
        async with semaphore:
            text = await self._fetch_text(session, url)
        return parse_domains(text.splitlines())

    async def _fetch_text(self, session: aiohttp.ClientSession, url: str) -> str:
        """Fetch one source, raising DownloadError on any failure."""
        logger.info(f"🔗 Fetching {url}")
        try:
            async with session.get(url) as response:
                if response.status < 200 or response.status >= 300:
                    logger.error(f"🚫 Non-2xx response {response.status} from {url}")
                    raise DownloadError(url, status=response.status)
                return await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"🚫 Error downloading {url}: {e}")
            raise DownloadError(url, detail=str(e)) from e
