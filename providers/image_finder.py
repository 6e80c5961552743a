"""
Image Finder - Public portrait lookup via the Wikipedia page-image API.

Used by backends without image search and as the Gemini fallback.
"""

import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from core.constants import PLACEHOLDER_AVATAR_URL


logger = logging.getLogger(__name__)


def placeholder_avatar(name: str) -> str:
    """Generated initials avatar for a name."""
    return PLACEHOLDER_AVATAR_URL.format(name=quote(name))


def is_placeholder_image(url: Optional[str]) -> bool:
    """True for empty images and generated or Wikipedia fallback images."""
    if not url:
        return True
    return "ui-avatars.com" in url or "wikipedia" in url


def name_variants(name: str) -> list[str]:
    """Titles to try in order: exact, with country, surname with context."""
    variants = [name, f"{name} Kenya"]
    parts = name.split()
    if len(parts) > 1:
        variants.append(f"{parts[-1]} Kenya politician")
    return variants


class ImageFinder:
    """
    Wikipedia thumbnail lookup.

    find() NEVER raises - returns None when nothing is found.
    """

    WIKI_URL = "https://en.wikipedia.org/w/api.php"
    THUMBNAIL_SIZE = 500
    DEFAULT_TIMEOUT = 8

    def __init__(self, timeout: Optional[int] = None) -> None:
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def find(self, name: str) -> Optional[str]:
        """Find a portrait URL for a person, trying several title variants."""
        for variant in name_variants(name):
            url = await self._search_wiki(variant)
            if url:
                return url
        logger.debug(f"[image_finder] No image found for {name}")
        return None

    async def _search_wiki(self, title: str) -> Optional[str]:
        params = {
            "action": "query",
            "titles": title,
            "prop": "pageimages",
            "format": "json",
            "pithumbsize": str(self.THUMBNAIL_SIZE),
            "origin": "*",
        }
        session = await self._get_session()
        try:
            async with session.get(self.WIKI_URL, params=params) as response:
                if response.status != 200:
                    return None
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            logger.warning(f"[image_finder] Lookup for '{title}' failed: {e}")
            return None

        pages = (data.get("query") or {}).get("pages") or {}
        for page_id, page in pages.items():
            if page_id == "-1":
                continue
            thumbnail = page.get("thumbnail") or {}
            if thumbnail.get("source"):
                return thumbnail["source"]
        return None

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
