"""
Web tools: page fetch with HTML-to-text extraction, and search against an
Ollama-compatible web search endpoint. Every target URL passes the outbound
network policy first, including each redirect hop.
"""
from __future__ import annotations

import html
import json
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import httpx

from ..core.cancel import CancelToken
from ..core.network_policy import NetworkPolicy, NetworkPolicyViolation
from .base import Tool, ToolCancelled, ToolContext, ToolError, ToolTimeout, parse_arguments, string_arg


DEFAULT_TIMEOUT = 20.0
MAX_BODY_BYTES = 2 * 1024 * 1024
MAX_REDIRECTS = 5
DEFAULT_MAX_RESULTS = 5
USER_AGENT = "toolloop/1.0"

SCRIPT_RE = re.compile(r"(?is)<script.*?>.*?</script>")
STYLE_RE = re.compile(r"(?is)<style.*?>.*?</style>")
TAG_RE = re.compile(r"(?s)<[^>]+>")
SPACE_RE = re.compile(r"\s+")


def extract_text_from_html(content: str) -> str:
    text = SCRIPT_RE.sub(" ", content)
    text = STYLE_RE.sub(" ", text)
    text = TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return SPACE_RE.sub(" ", text)


class HttpTool(Tool):
    """Base for tools that talk HTTP through the network policy."""

    label = "http"

    def __init__(self, network_policy: Optional[NetworkPolicy] = None, transport: Optional[httpx.BaseTransport] = None):
        self.network_policy = network_policy or NetworkPolicy()
        self.transport = transport

    def _check_url(self, url: str, token: CancelToken):
        try:
            self.network_policy.ensure_allowed(url, cancel=token)
        except NetworkPolicyViolation as exc:
            raise ToolError(f"outbound URL blocked: {exc}") from exc

    def _check_token(self, token: CancelToken):
        if token.cancelled:
            raise ToolCancelled(f"{self.label} request cancelled")
        if token.expired:
            raise ToolTimeout(f"{self.label} request timed out")

    def _send(
        self, context: ToolContext, method: str, url: str, follow_redirects: bool = False, **kwargs: Any
    ) -> Tuple[httpx.Response, bytes]:
        timeout = context.effective_timeout(DEFAULT_TIMEOUT)
        token = context.token().child(timeout)
        current_url = url
        try:
            with httpx.Client(transport=self.transport, follow_redirects=False) as client:
                for _ in range(MAX_REDIRECTS + 1):
                    self._check_url(current_url, token)
                    self._check_token(token)
                    with client.stream(method, current_url, timeout=token.remaining(timeout), **kwargs) as resp:
                        location = resp.headers.get("Location", "").strip()
                        if follow_redirects and resp.is_redirect and location:
                            current_url = urljoin(current_url, location)
                            continue
                        return resp, self._read_limited(resp, token)
        except httpx.TimeoutException as exc:
            raise ToolTimeout(f"{self.label} request timed out") from exc
        except httpx.HTTPError as exc:
            raise ToolError(f"error calling {self.label} endpoint: {exc}") from exc
        raise ToolError(f"{self.label} request exceeded {MAX_REDIRECTS} redirects")

    def _read_limited(self, resp: httpx.Response, token: CancelToken) -> bytes:
        chunks: List[bytes] = []
        total = 0
        for chunk in resp.iter_bytes():
            self._check_token(token)
            chunk = chunk[: MAX_BODY_BYTES - total]
            chunks.append(chunk)
            total += len(chunk)
            if total >= MAX_BODY_BYTES:
                break
        return b"".join(chunks)


class FetchWebPageTool(HttpTool):
    name = "FetchWebPage"
    description = "Fetch a webpage by URL and return extracted text content"
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "Fully-qualified URL to fetch"},
        },
        "required": ["url"],
    }
    label = "webpage"

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        page_url = string_arg(args, "url", required=True).strip()

        resp, body = self._send(context, "GET", page_url, follow_redirects=True, headers={"User-Agent": USER_AGENT})
        if not resp.is_success:
            raise ToolError(f"webpage request failed with status {resp.status_code}")

        content_type = resp.headers.get("Content-Type", "").lower()
        text = body.decode(resp.charset_encoding or "utf-8", errors="replace")
        if "text/html" in content_type:
            text = extract_text_from_html(text)

        context.log.debug("FetchWebPage fetched %d bytes from %s", len(body), page_url)
        return {"url": page_url, "content_type": content_type, "content": text.strip()}


class WebSearchOllamaTool(HttpTool):
    name = "WebSearchOllama"
    description = "Search the web using your Ollama search endpoint and return a list of search results"
    parameters = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query string"},
            "max_results": {
                "type": "integer",
                "description": "Maximum number of search results to return (default 5)",
            },
        },
        "required": ["query"],
    }
    label = "web search"

    def __init__(
        self,
        search_url: str = "",
        api_key: str = "",
        network_policy: Optional[NetworkPolicy] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(network_policy=network_policy, transport=transport)
        self.search_url = (search_url or "").strip()
        self.api_key = (api_key or "").strip()

    def execute(self, context: ToolContext, arguments: str) -> Any:
        args = parse_arguments(arguments)
        query = string_arg(args, "query", required=True).strip()
        max_results = coerce_max_results(args.get("max_results"))

        if not self.search_url:
            raise ToolError(
                "set OLLAMA_WEB_SEARCH_URL to your Ollama web search endpoint, "
                "and set OLLAMA_WEB_SEARCH_API_KEY with your key"
            )

        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        resp, body = self._send(
            context,
            "POST",
            self.search_url,
            headers=headers,
            content=json.dumps({"query": query, "max_results": max_results}),
        )
        if not resp.is_success:
            detail = body.decode("utf-8", errors="replace")
            raise ToolError(f"web search request failed with status {resp.status_code}: {detail}")

        try:
            results = parse_search_results(json.loads(body))
        except ValueError as exc:
            raise ToolError(f"error parsing web search results: {exc}") from exc

        context.log.debug("WebSearchOllama query=%r results=%d", query, len(results))
        return {"query": query, "results": results}


def coerce_max_results(value: Any, default: int = DEFAULT_MAX_RESULTS) -> int:
    result = default
    if isinstance(value, bool):
        result = default
    elif isinstance(value, (int, float)):
        try:
            result = int(value)
        except (ValueError, OverflowError):
            result = default
    elif isinstance(value, str):
        try:
            result = int(value)
        except ValueError:
            result = default
    return result if result > 0 else default


def _first_string(item: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str):
            return value
    return ""


def parse_search_results(payload: Any) -> List[Dict[str, str]]:
    items: List[Any] = []
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        for key in ("results", "items", "data"):
            if isinstance(payload.get(key), list):
                items = payload[key]
                break

    results = []
    for item in items:
        if not isinstance(item, dict):
            continue
        result = {
            "title": _first_string(item, "title", "name"),
            "url": _first_string(item, "url", "link"),
            "snippet": _first_string(item, "snippet", "description", "content"),
        }
        if result["url"].strip():
            results.append(result)
    return results
