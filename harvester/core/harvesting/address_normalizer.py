"""Address normalization - canonicalize, filter, classify and deduplicate URLs."""

import re
from collections.abc import Iterable
from typing import Any, List, Optional, Set
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import structlog

from harvester.core.harvesting.models import Address, Platform
from harvester.utils.exceptions import InvalidInputError

logger = structlog.get_logger(__name__)

YOUTUBE_HOST = "www.youtube.com"
INSTAGRAM_HOST = "www.instagram.com"
REDDIT_HOST = "www.reddit.com"

HOST_ALIASES = {
    "youtube.com": YOUTUBE_HOST,
    "m.youtube.com": YOUTUBE_HOST,
    "instagram.com": INSTAGRAM_HOST,
    "m.instagram.com": INSTAGRAM_HOST,
    "reddit.com": REDDIT_HOST,
    "m.reddit.com": REDDIT_HOST,
}

SHORT_VIDEO_HOSTS = {"youtu.be", "www.youtu.be"}
SHORT_AGGREGATOR_HOSTS = {"redd.it", "www.redd.it"}

GARBAGE_HOSTS = {
    "accounts.google.com",
    "myaccount.google.com",
    "support.google.com",
    "policies.google.com",
    "consent.google.com",
    "consent.youtube.com",
    "accounts.youtube.com",
    "help.instagram.com",
    "about.instagram.com",
    "support.reddithelp.com",
    "www.reddithelp.com",
    "accounts.reddit.com",
}

# Login-gated views on platform hosts
GARBAGE_PATH_PREFIXES = ("/accounts/", "/login", "/signin", "/register", "/signup")

TRACKING_PARAMS = {"fbclid", "gclid"}

# Share and referral markers, only meaningful on platform hosts
PLATFORM_TRACKING_PARAMS = {"si", "igsh", "igshid", "feature"}

DEFAULT_PORTS = {"http": 80, "https": 443}

VIDEO_PATH = re.compile(r"^/(watch$|shorts/|channel/|user/|c/|@)")
PHOTO_CONTENT_PATH = re.compile(r"^/(p|reel|reels|tv)/[^/]+")
PHOTO_PROFILE_PATH = re.compile(r"^/[A-Za-z0-9._]+$")
PHOTO_RESERVED = {"/explore", "/direct", "/stories", "/about", "/legal", "/developer"}


def _on_domain(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def _is_platform_host(host: str) -> bool:
    return any(_on_domain(host, d) for d in ("youtube.com", "instagram.com", "reddit.com"))


def _is_tracking_param(key: str, platform_host: bool) -> bool:
    key = key.lower()
    if key in TRACKING_PARAMS or key.startswith("utm_"):
        return True
    return platform_host and key in PLATFORM_TRACKING_PARAMS


def extract_raw(item: Any) -> Optional[str]:
    """Return the string form of an input item, or None for unsupported shapes."""
    if isinstance(item, str):
        return item.strip() or None
    if isinstance(item, dict):
        url = item.get("url")
        if isinstance(url, str):
            return url.strip() or None
    return None


def canonicalize(url: str) -> str:
    """Return the canonical form of an http(s) URL.

    Lowercases scheme and host, drops default ports, fragments and tracking
    parameters, expands short links, collapses platform host aliases, sorts
    query parameters and strips a trailing slash (except at the root).
    Applying it to its own output returns the same string.
    """
    parsed = urlparse(url.strip())
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()
    path = parsed.path or "/"
    query = parsed.query
    path_params = parsed.params

    if ":" in host:
        # IPv6 literal
        host = f"[{host}]"
    if parsed.port and parsed.port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parsed.port}"

    if host in SHORT_VIDEO_HOSTS:
        video_id = path.strip("/").split("/")[0]
        if video_id:
            extra = [(k, v) for k, v in parse_qsl(query, keep_blank_values=True) if k != "v"]
            query = urlencode([("v", video_id)] + extra)
            host, path, path_params = YOUTUBE_HOST, "/watch", ""
            scheme = "https"
    elif host in SHORT_AGGREGATOR_HOSTS:
        post_id = path.strip("/").split("/")[0]
        if post_id:
            host, path, path_params = REDDIT_HOST, f"/comments/{post_id}", ""
            scheme = "https"

    host = HOST_ALIASES.get(host, host)

    platform_host = _is_platform_host(host)
    params = [
        (k, v)
        for k, v in parse_qsl(query, keep_blank_values=True)
        if not _is_tracking_param(k, platform_host)
    ]
    query = urlencode(sorted(params))

    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunparse((scheme, host, path, path_params, query, ""))


def classify(canonical: str) -> Platform:
    """Tag a canonical URL with its platform."""
    parsed = urlparse(canonical)
    host = parsed.netloc
    path = parsed.path

    if _on_domain(host, "reddit.com"):
        return Platform.AGGREGATOR
    if _on_domain(host, "youtube.com") and VIDEO_PATH.match(path):
        return Platform.VIDEO
    if _on_domain(host, "instagram.com"):
        if PHOTO_CONTENT_PATH.match(path):
            return Platform.PHOTO
        if PHOTO_PROFILE_PATH.match(path) and path not in PHOTO_RESERVED:
            return Platform.PHOTO
    return Platform.GENERIC


def is_garbage(canonical: str) -> bool:
    """Check for auth/support destinations and bare platform homepages."""
    parsed = urlparse(canonical)
    host = parsed.netloc
    if host in GARBAGE_HOSTS:
        return True
    if _is_platform_host(host):
        if parsed.path == "/" and not parsed.query:
            return True
        if parsed.path.lower().startswith(GARBAGE_PATH_PREFIXES):
            return True
    return False


def normalize_one(item: Any) -> Optional[Address]:
    """Normalize a single input item into a classified Address.

    Returns None when the item has an unsupported shape, is not a
    well-formed http(s) URL, or points at a known garbage destination.
    """
    raw = extract_raw(item)
    if raw is None:
        return None

    parsed = urlparse(raw)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        logger.debug("address_rejected", url=raw, reason="not an http(s) url")
        return None

    try:
        canonical = canonicalize(raw)
    except ValueError as e:
        logger.debug("address_rejected", url=raw, reason=str(e))
        return None

    if is_garbage(canonical):
        logger.debug("address_rejected", url=raw, reason="garbage destination")
        return None

    return Address(raw=raw, canonical=canonical, platform=classify(canonical))


class AddressRegistry:
    """Run-wide set of canonical addresses already accepted for dispatch."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()

    def __contains__(self, address: Address) -> bool:
        return address.canonical in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def add(self, address: Address) -> bool:
        """Record an address; False if its canonical form was already seen."""
        if address.canonical in self._seen:
            return False
        self._seen.add(address.canonical)
        return True


class AddressNormalizer:
    """Turn raw seed items into a deduplicated, classified address list."""

    def __init__(
        self,
        allowed_platforms: Optional[Iterable[Platform | str]] = None,
        registry: Optional[AddressRegistry] = None,
    ) -> None:
        self.allowed: Optional[Set[Platform]] = (
            {Platform(p) for p in allowed_platforms} if allowed_platforms else None
        )
        self.registry = registry or AddressRegistry()

    def is_allowed(self, address: Address) -> bool:
        return self.allowed is None or address.platform in self.allowed

    def normalize(self, items: Iterable[Any]) -> List[Address]:
        """Normalize seed items, preserving first-seen order.

        Raises:
            InvalidInputError: If no valid address survives filtering
        """
        addresses: List[Address] = []
        dropped = 0

        for item in items:
            address = normalize_one(item)
            if address is None or not self.is_allowed(address):
                dropped += 1
                continue
            if self.registry.add(address):
                addresses.append(address)

        logger.info("seeds_normalized", accepted=len(addresses), dropped=dropped)

        if not addresses:
            raise InvalidInputError("No valid addresses survived normalization")

        return addresses

    def admit(self, item: Any) -> Optional[Address]:
        """Normalize a discovered link; None if invalid, filtered or already seen."""
        address = normalize_one(item)
        if address is None or not self.is_allowed(address):
            return None
        if not self.registry.add(address):
            return None
        return address
