"""Web tools — fetch a URL, and the search placeholder."""

from __future__ import annotations

import re
from urllib.parse import quote_plus

import httpx
from langchain_core.tools import tool
from loguru import logger

from voidex.agent.tools.result import ToolResult
from voidex.core.config.schema import Config

MAX_REDIRECTS = 5
MAX_FETCH_CHARS = 15_000

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

_BINARY_TYPES = re.compile(r"image|video|audio|pdf|zip|octet-stream")


def make_web_tools(config: Config) -> list:
    """Create web tools."""
    fetch_timeout = config.tools.web.fetch_timeout

    @tool
    async def web_fetch(url: str) -> ToolResult:
        """Fetch content from a URL. Binary responses are summarized, text is capped."""
        async with httpx.AsyncClient(
            timeout=fetch_timeout, follow_redirects=True, max_redirects=MAX_REDIRECTS
        ) as client:
            try:
                resp = await client.get(
                    url, headers={"User-Agent": USER_AGENT, "Accept": "*/*"}
                )
                resp.raise_for_status()
            except httpx.TimeoutException:
                return ToolResult("Fetch error: Timeout", is_error=True)
            except httpx.HTTPError as e:
                return ToolResult(f"Fetch error: {e}", is_error=True)

        content_type = resp.headers.get("content-type", "")
        if _BINARY_TYPES.search(content_type):
            size = resp.headers.get("content-length", "unknown")
            logger.debug(f"web_fetch binary {content_type} from {url}")
            return ToolResult(
                f"[BINARY DATA OMITTED - Type: {content_type}, Size: {size} bytes]"
            )
        return ToolResult(resp.text[:MAX_FETCH_CHARS])

    @tool
    def google_web_search(query: str) -> ToolResult:
        """Perform a web search."""
        return ToolResult(
            "[NOTICE] Direct search API not configured.\n"
            "STRATEGY: Use the 'web_fetch' tool with "
            f"'https://duckduckgo.com/html/?q={quote_plus(query)}' to scrape results.",
            is_error=True,
        )

    return [web_fetch, google_web_search]
