"""Web collector: fetch a URL, reduce HTML to plain text, hash the result.

Fetch guards:
- Allowed URL schemes: https:// and http:// only.
- SSRF guard: hostnames resolving to private/loopback/link-local/reserved
  addresses are rejected before any connection (can be disabled for local
  development).
- Content-Type whitelist: text/html, application/xhtml+xml, text/plain.
- Max response body: 5 MB. Max redirects: 3. Timeout: 30 seconds.

Cleaning (HTML):
- Drop script, style, nav, footer, header, noscript, svg and iframe elements
  together with everything nested inside them.
- Block-level tags become line breaks; all other tags are dropped; entities
  are decoded.
- Non-newline whitespace runs collapse to one space, 3+ newlines to 2, and
  every line is trimmed.
"""

from __future__ import annotations

import hashlib
import ipaddress
import re
import socket
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime, timezone
from http.client import HTTPResponse

from bs4 import BeautifulSoup

from kindex.db.models import CollectedContent
from kindex.ingest.base import BaseCollector

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; kindex-collector/0.1)"
DEFAULT_TIMEOUT = 30  # seconds
_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "application/xhtml+xml", "text/plain"}

_REMOVED_TAGS = ["script", "style", "nav", "footer", "header", "noscript", "svg", "iframe"]
_BLOCK_TAGS = [
    "br", "p", "div", "li", "h1", "h2", "h3", "h4", "h5", "h6",
    "tr", "blockquote", "section", "article", "aside", "main",
]

_INLINE_WS_RE = re.compile(r"[^\S\n]+")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")


class CollectorError(RuntimeError):
    """Raised when a URL is unreachable or answers with a non-2xx status."""


class SsrfError(ValueError):
    """Raised when a URL resolves to a private or reserved address."""


class WebCollector(BaseCollector):
    """Fetch a web page and return its cleaned text with a SHA-256 hash.

    Args:
        timeout: Seconds allowed for connect + read.
        user_agent: User-Agent header sent with every request.
        block_private_addresses: Apply the SSRF guard before fetching.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        block_private_addresses: bool = True,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.block_private_addresses = block_private_addresses

    def collect(self, url: str) -> CollectedContent:
        self._validate_scheme(url)
        if self.block_private_addresses:
            self._check_ssrf(url)
        body, content_type, charset = self._fetch(url)
        raw = body.decode(charset or "utf-8", errors="replace")

        if content_type == "text/plain":
            title, text = url, normalize_whitespace(raw)
        else:
            title = extract_title(raw) or url
            text = html_to_text(raw)

        return CollectedContent(
            url=url,
            title=title,
            text=text,
            content_hash=content_hash(text),
            collected_at=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # Fetch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme not in _ALLOWED_SCHEMES:
            raise ValueError(
                f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the hostname and block private/reserved IP ranges.

        Raises SsrfError if any resolved address is private, loopback,
        link-local, or otherwise reserved.
        """
        hostname = urllib.parse.urlparse(url).hostname
        if not hostname:
            raise ValueError(f"URL has no hostname: {url}")

        try:
            addrinfos = socket.getaddrinfo(hostname, None)
        except socket.gaierror as exc:
            raise CollectorError(f"DNS resolution failed for '{hostname}': {exc}") from exc

        for addrinfo in addrinfos:
            try:
                ip = ipaddress.ip_address(addrinfo[4][0])
            except ValueError:
                continue
            if (
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_reserved
                or ip.is_multicast
                or ip.is_unspecified
            ):
                raise SsrfError(
                    f"URL resolves to private address ({ip}). "
                    "Access to internal network addresses is not allowed."
                )

    def _fetch(self, url: str) -> tuple[bytes, str, str | None]:
        """Fetch *url* with timeout, redirect limit, size cap, and Content-Type check.

        Returns (body_bytes, content_type_without_params, charset_or_None).
        """
        request = urllib.request.Request(
            url, headers={"User-Agent": self.user_agent, "Accept": _ACCEPT}
        )
        opener = urllib.request.build_opener(_LimitedRedirectHandler(_MAX_REDIRECTS))

        try:
            response: HTTPResponse = opener.open(request, timeout=self.timeout)
        except urllib.error.HTTPError as exc:
            raise CollectorError(f"HTTP {exc.code} {exc.reason}: {url}") from exc
        except urllib.error.URLError as exc:
            raise CollectorError(f"URL is unreachable: {url} ({exc.reason})") from exc
        except TimeoutError as exc:
            raise CollectorError(
                f"Timed out after {self.timeout}s fetching {url}"
            ) from exc

        with response:
            status = getattr(response, "status", 200)
            if not 200 <= status < 300:
                raise CollectorError(f"HTTP {status} {response.reason}: {url}")

            ct = response.headers.get_content_type()
            if ct not in _ALLOWED_CONTENT_TYPES:
                raise CollectorError(
                    f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                    f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
                )

            try:
                body = response.read(_MAX_BYTES + 1)
            except TimeoutError as exc:
                raise CollectorError(
                    f"Timed out after {self.timeout}s reading {url}"
                ) from exc
            if len(body) > _MAX_BYTES:
                raise CollectorError(
                    f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for URL '{url}'."
                )
            return body, ct, response.headers.get_content_charset()


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int) -> None:
        self._max_redirects = max_redirects
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise CollectorError(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        return super().redirect_request(req, fp, code, msg, headers, newurl)


# ------------------------------------------------------------------
# Cleaning helpers
# ------------------------------------------------------------------


def content_hash(text: str) -> str:
    """SHA-256 hex digest of *text* (UTF-8), the change-detection fingerprint."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def extract_title(html: str) -> str | None:
    """Return the stripped ``<title>`` text, or None if absent or empty."""
    soup = BeautifulSoup(html, "html.parser")
    if soup.title is None:
        return None
    title = soup.title.get_text().strip()
    return title or None


def html_to_text(html: str) -> str:
    """Reduce an HTML document to normalised plain text."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(_REMOVED_TAGS):
        if not tag.decomposed:  # already gone with a removed ancestor
            tag.decompose()

    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n")
        if tag.name != "br":
            tag.insert_after("\n")

    return normalize_whitespace(soup.get_text())


def normalize_whitespace(text: str) -> str:
    """Collapse inline whitespace, cap blank lines at one, trim every line."""
    text = _INLINE_WS_RE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _MANY_NEWLINES_RE.sub("\n\n", text)
    return text.strip()
