"""
Image handling for prompts.

Image references (Markdown ``![alt](url)`` and HTML ``<img src="url">``) are
pulled out of the prompt. Images hosted as GitHub user attachments are
downloaded into the workspace so they can be handed to the agent, and every
reference in the prompt is replaced with an ``<image_N>`` placeholder.
"""

import asyncio
import re
from pathlib import Path
from typing import List, Sequence
from urllib.parse import urlparse

import httpx

from codez.constants import ALLOWED_IMAGE_PREFIX
from codez.utils.logging import get_logger

logger = get_logger(__name__)

MARKDOWN_IMAGE_RE = re.compile(r"!\[[\s\S]*?\]\((https?://[^)]+)\)")
HTML_IMAGE_RE = re.compile(r"""<img[^>]*src=["'](https?://[^"']+)["'][^>]*>""")


def extract_image_urls(text: str) -> List[str]:
    """Return unique image URLs in order of first appearance (Markdown first, then HTML)."""
    urls = MARKDOWN_IMAGE_RE.findall(text) + HTML_IMAGE_RE.findall(text)
    return list(dict.fromkeys(urls))


def replace_image_references(text: str, urls: Sequence[str]) -> str:
    """Replace every Markdown or HTML reference to ``urls[i]`` with ``<image_i>``."""
    for index, url in enumerate(urls):
        placeholder = f"<image_{index}>"
        escaped = re.escape(url)
        text = re.sub(rf"!\[[\s\S]*?\]\({escaped}\)", lambda _m: placeholder, text)
        text = re.sub(rf"""<img[^>]*src=["']{escaped}["'][^>]*>""", lambda _m: placeholder, text)
    return text


def _write_bytes(path: Path, data: bytes) -> None:
    path.write_bytes(data)


async def download_images(
    urls: Sequence[str],
    download_dir: str,
    http_client: httpx.AsyncClient,
) -> List[str]:
    """
    Download images into ``download_dir``.

    Failures are logged and skipped.

    Returns:
        Paths of the files that were written
    """
    target = Path(download_dir)
    await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
    downloaded: List[str] = []
    for url in urls:
        try:
            filename = Path(urlparse(url).path).name
            if not filename:
                raise ValueError("URL has no file name")
            dest = target / filename
            response = await http_client.get(url, follow_redirects=True)
            response.raise_for_status()
            await asyncio.to_thread(_write_bytes, dest, response.content)
            downloaded.append(str(dest))
            logger.info(f"Downloaded image {url} to {dest} ({len(response.content)} bytes)")
        except (httpx.HTTPError, OSError, ValueError) as e:
            logger.warning(f"Failed to download image {url}: {e}")
    return downloaded


async def localize_images(prompt: str, images_dir: str, http_client: httpx.AsyncClient) -> tuple[str, List[str]]:
    """
    Download attachable images and swap every image reference for a placeholder.

    Returns:
        Tuple of (rewritten prompt, downloaded file paths)
    """
    urls = extract_image_urls(prompt)
    if not urls:
        return prompt, []

    allowed = [url for url in urls if url.startswith(ALLOWED_IMAGE_PREFIX)]
    downloaded = await download_images(allowed, images_dir, http_client) if allowed else []
    return replace_image_references(prompt, urls), downloaded
