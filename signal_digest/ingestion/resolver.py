"""Syntactic source resolution: raw URL -> canonical feed endpoint.

Classification runs an ordered table of detection rules. Each rule is a
small record of compiled patterns plus derivers for the feed endpoint,
display name and favicon. The first rule with a matching pattern wins, so
table order is the tie-break for URLs that fit several families.

No network I/O happens here. URLs that match no rule fall back to a
low-confidence ``blog`` source whose feed is discovered by the fetcher.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlparse

from signal_digest.ingestion.schemas import DetectedSource, SourceType

logger = logging.getLogger(__name__)

Deriver = Callable[[str, re.Match[str]], str]

_GOOGLE_FAVICON = "https://www.google.com/s2/favicons?domain={domain}&sz=64"


@dataclass(frozen=True)
class DetectionRule:
    """One provider family: patterns plus endpoint/name/favicon derivers."""

    type: SourceType
    patterns: tuple[re.Pattern[str], ...]
    feed_url: Deriver
    name: Deriver
    favicon: Deriver

    def match(self, url: str) -> re.Match[str] | None:
        for pattern in self.patterns:
            m = pattern.search(url)
            if m:
                return m
        return None


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def _hostname(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def _host_label(url: str) -> str:
    """First DNS label without a leading www (``blog.example.com`` -> ``blog``)."""
    host = _hostname(url)
    if host.startswith("www."):
        host = host[4:]
    return host.split(".")[0] if host else ""


def domain_favicon(url: str) -> str:
    """Google favicon service URL for the host, or "" when the URL has none."""
    host = _hostname(url)
    return _GOOGLE_FAVICON.format(domain=host) if host else ""


def _dashes_to_spaces(value: str) -> str:
    return value.replace("-", " ")


# ── Per-family derivers ─────────────────────────────────────────


def _youtube_feed(url: str, m: re.Match[str]) -> str:
    if "feeds/videos.xml" in url:
        return url
    if "/channel/" in url.lower():
        return f"https://www.youtube.com/feeds/videos.xml?channel_id={m.group(1)}"
    # @handle, /c/ and /user/ pages: the fetcher discovers the channel feed
    return url


def _youtube_name(url: str, m: re.Match[str]) -> str:
    if "feeds/videos.xml" in url or not m.groups():
        return "YouTube Channel"
    return _dashes_to_spaces(m.group(1))


def _medium_feed(url: str, m: re.Match[str]) -> str:
    if "@" in m.group(0):
        return f"https://medium.com/feed/@{m.group(1)}"
    return f"https://medium.com/feed/{m.group(1)}"


def _github_feed(url: str, m: re.Match[str]) -> str:
    groups = m.groups()
    if len(groups) >= 2 and groups[1]:
        return f"https://github.com/{groups[0]}/{groups[1]}/releases.atom"
    return f"https://github.com/{groups[0]}.atom"


def _github_name(url: str, m: re.Match[str]) -> str:
    groups = m.groups()
    if len(groups) >= 2 and groups[1]:
        return f"{groups[0]}/{groups[1]}"
    return groups[0]


def _substack_favicon(url: str, m: re.Match[str]) -> str:
    sub = re.search(r"([\w-]+)\.substack\.com", url, re.IGNORECASE)
    if sub:
        return f"https://{sub.group(1)}.substack.com/favicon.ico"
    return "https://substack.com/favicon.ico"


def _constant(value: str) -> Deriver:
    return lambda url, m: value


# Ordered: first match wins.
DETECTION_RULES: tuple[DetectionRule, ...] = (
    DetectionRule(
        type=SourceType.YOUTUBE,
        patterns=_compile(
            r"youtube\.com/@([\w-]+)",
            r"youtube\.com/channel/([\w-]+)",
            r"youtube\.com/c/([\w-]+)",
            r"youtube\.com/user/([\w-]+)",
            r"youtube\.com/feeds/videos\.xml",
        ),
        feed_url=_youtube_feed,
        name=_youtube_name,
        favicon=_constant("https://www.youtube.com/favicon.ico"),
    ),
    DetectionRule(
        type=SourceType.PODCAST,
        patterns=_compile(
            r"feeds\.megaphone\.fm",
            r"anchor\.fm/s/",
            r"feeds\.buzzsprout\.com",
            r"rss\.art19\.com",
            r"feeds\.simplecast\.com",
            r"feed\.podbean\.com",
        ),
        feed_url=lambda url, m: url,
        name=_constant("Podcast"),
        # Empty: the feed's own artwork is preferred once fetched
        favicon=_constant(""),
    ),
    DetectionRule(
        type=SourceType.REDDIT,
        patterns=_compile(r"reddit\.com/r/(\w+)"),
        feed_url=lambda url, m: f"https://www.reddit.com/r/{m.group(1)}/.rss",
        name=lambda url, m: f"r/{m.group(1)}",
        favicon=_constant("https://www.reddit.com/favicon.ico"),
    ),
    DetectionRule(
        type=SourceType.SUBSTACK,
        patterns=_compile(
            r"([\w-]+)\.substack\.com",
            r"substack\.com/@([\w-]+)",
        ),
        feed_url=lambda url, m: f"https://{m.group(1)}.substack.com/feed",
        name=lambda url, m: _dashes_to_spaces(m.group(1)),
        favicon=_substack_favicon,
    ),
    DetectionRule(
        type=SourceType.MEDIUM,
        patterns=_compile(
            r"medium\.com/@([\w-]+)",
            r"medium\.com/([\w-]+)",
            r"([\w-]+)\.medium\.com",
        ),
        feed_url=_medium_feed,
        name=lambda url, m: _dashes_to_spaces(m.group(1)),
        favicon=_constant("https://medium.com/favicon.ico"),
    ),
    DetectionRule(
        type=SourceType.HACKERNEWS,
        patterns=_compile(r"news\.ycombinator\.com", r"ycombinator\.com"),
        feed_url=_constant("https://hnrss.org/frontpage"),
        name=_constant("Hacker News"),
        favicon=_constant("https://news.ycombinator.com/favicon.ico"),
    ),
    DetectionRule(
        type=SourceType.GITHUB,
        patterns=_compile(
            r"github\.com/([\w-]+)/([\w.-]+?)/releases",
            r"github\.com/([\w-]+)/([\w.-]+?)(?:\.git)?(?:[/?#]|$)",
            r"github\.com/([\w-]+)",
        ),
        feed_url=_github_feed,
        name=_github_name,
        favicon=_constant("https://github.com/favicon.ico"),
    ),
    DetectionRule(
        type=SourceType.TWITTER,
        patterns=_compile(
            r"(?:^|[/.])twitter\.com/(\w+)",
            r"(?:^|[/.])x\.com/(\w+)",
        ),
        feed_url=lambda url, m: f"https://nitter.net/{m.group(1)}/rss",
        name=lambda url, m: f"@{m.group(1)}",
        favicon=_constant("https://abs.twimg.com/favicons/twitter.ico"),
    ),
    DetectionRule(
        type=SourceType.RSS,
        patterns=_compile(
            r"\.rss$",
            r"\.atom$",
            r"\.xml$",
            r"/feed/?$",
            r"/rss/?$",
            r"/atom/?$",
            r"feeds\.feedburner\.com",
        ),
        feed_url=lambda url, m: url,
        name=lambda url, m: _host_label(url) or "RSS Feed",
        favicon=lambda url, m: domain_favicon(url),
    ),
)


def capitalize_words(value: str) -> str:
    """Upper-case the first letter of each space-separated word, lower the rest."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in value.split(" "))


def normalize_url(raw_url: str) -> str:
    """Trim and default the scheme to https."""
    url = raw_url.strip()
    if not url.lower().startswith("http"):
        url = "https://" + url
    return url


def normalize_feed_endpoint(endpoint: str) -> str:
    """Canonical form used for per-subscriber uniqueness of feed endpoints.

    Lower-cases scheme and host and drops a trailing slash from the path;
    query strings are kept because some feeds are keyed by them.
    """
    parsed = urlparse(endpoint.strip())
    if not parsed.netloc:
        return endpoint.strip()
    path = parsed.path.rstrip("/")
    normalized = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        normalized += f"?{parsed.query}"
    return normalized


def resolve(raw_url: str) -> DetectedSource | None:
    """Classify a URL into a canonical (type, feed endpoint) pair.

    Args:
        raw_url: Anything a subscriber pasted, with or without a scheme.

    Returns:
        DetectedSource with ``high`` confidence for a matched rule, ``low``
        for the generic web-page fallback, or None if the input has no
        usable host.
    """
    if not raw_url or not raw_url.strip():
        return None

    url = normalize_url(raw_url)

    try:
        host = urlparse(url).hostname
    except ValueError:
        logger.debug("Unparseable URL %r", raw_url)
        return None

    if not host or "." not in host:
        return None

    for rule in DETECTION_RULES:
        m = rule.match(url)
        if m is None:
            continue
        return DetectedSource(
            type=rule.type,
            name=capitalize_words(rule.name(url, m)),
            feed_url=rule.feed_url(url, m),
            original_url=url,
            favicon=rule.favicon(url, m),
            confidence="high",
        )

    return DetectedSource(
        type=SourceType.BLOG,
        name=capitalize_words(_host_label(url)),
        feed_url=url,
        original_url=url,
        favicon=domain_favicon(url),
        confidence="low",
    )
