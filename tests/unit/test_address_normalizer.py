"""Unit tests for address canonicalization, classification and deduplication."""

import pytest

from harvester.core.harvesting.address_normalizer import (
    AddressNormalizer,
    AddressRegistry,
    canonicalize,
    classify,
    is_garbage,
    normalize_one,
)
from harvester.core.harvesting.models import Platform
from harvester.utils.exceptions import InvalidInputError


@pytest.mark.parametrize(
    "raw",
    [
        "https://www.youtu.be/XYZ123",
        "https://youtu.be/XYZ123",
        "https://youtu.be/XYZ123?si=abcdef",
        "https://m.youtube.com/watch?v=XYZ123&feature=share",
        "HTTPS://YouTube.com/watch?v=XYZ123",
    ],
)
def test_short_video_links_expand_to_watch_address(raw):
    """Test that short and aliased video links canonicalize to the watch form."""
    assert canonicalize(raw) == "https://www.youtube.com/watch?v=XYZ123"


def test_short_aggregator_link_expands():
    """Test that redd.it links become comment-thread addresses."""
    assert canonicalize("https://redd.it/abc12") == "https://www.reddit.com/comments/abc12"


def test_canonicalize_drops_noise():
    """Test that fragments, tracking params, default ports and trailing slashes go."""
    url = "HTTP://Example.COM:80/Blog/Post1/?utm_source=x&b=2&a=1&fbclid=zz#top"

    assert canonicalize(url) == "http://example.com/Blog/Post1?a=1&b=2"


def test_canonicalize_keeps_root_slash_and_custom_port():
    """Test that the root path and non-default ports survive."""
    assert canonicalize("https://example.com") == "https://example.com/"
    assert canonicalize("https://example.com:8443/x/") == "https://example.com:8443/x"


def test_canonicalize_brackets_ipv6_hosts():
    """Test that IPv6 literals keep their brackets next to a port."""
    assert canonicalize("http://[::1]:8080/a/") == "http://[::1]:8080/a"
    assert canonicalize("http://[2001:DB8::1]/x") == "http://[2001:db8::1]/x"


def test_share_params_only_dropped_on_platform_hosts():
    """Test that si and feature survive on ordinary sites."""
    assert canonicalize("https://example.com/page?si=1&feature=x") == (
        "https://example.com/page?feature=x&si=1"
    )
    assert canonicalize("https://www.youtube.com/watch?v=A1&feature=share&si=1") == (
        "https://www.youtube.com/watch?v=A1"
    )


def test_canonicalize_keeps_path_params():
    """Test that ;params on the last path segment are preserved."""
    assert canonicalize("https://example.com/a;v=1?x=1") == "https://example.com/a;v=1?x=1"


@pytest.mark.parametrize(
    "raw",
    [
        "https://youtu.be/XYZ123?t=30",
        "https://www.reddit.com/r/python/comments/1/title/?utm_medium=web",
        "https://www.instagram.com/p/Cabc/?igsh=1",
        "http://Example.com:8080/a/b/?z=1&a=2#frag",
        "http://[::1]:8080/a/",
        "https://example.com/a;v=1/",
    ],
)
def test_canonicalize_is_idempotent(raw):
    """Test that canonicalizing a canonical address changes nothing."""
    once = canonicalize(raw)

    assert canonicalize(once) == once


@pytest.mark.parametrize(
    "url,platform",
    [
        ("https://www.reddit.com/r/python", Platform.AGGREGATOR),
        ("https://old.reddit.com/r/python/comments/1/x", Platform.AGGREGATOR),
        ("https://www.youtube.com/watch?v=XYZ123", Platform.VIDEO),
        ("https://www.youtube.com/@somechannel", Platform.VIDEO),
        ("https://www.youtube.com/shorts/abc", Platform.VIDEO),
        ("https://www.instagram.com/p/Cabc", Platform.PHOTO),
        ("https://www.instagram.com/reel/Cabc", Platform.PHOTO),
        ("https://www.instagram.com/some.user", Platform.PHOTO),
        ("https://www.instagram.com/explore", Platform.GENERIC),
        ("https://www.youtube.com/feed/trending", Platform.GENERIC),
        ("https://example.com/blog/post1", Platform.GENERIC),
        ("https://notyoutube.com/watch", Platform.GENERIC),
        ("https://notinstagram.com/p/Cabc", Platform.GENERIC),
        ("https://fakereddit.com/r/python", Platform.GENERIC),
    ],
)
def test_classify(url, platform):
    """Test platform classification of canonical addresses."""
    assert classify(url) is platform


@pytest.mark.parametrize(
    "url",
    [
        "https://accounts.google.com/ServiceLogin",
        "https://www.instagram.com/accounts/login",
        "https://www.reddit.com/login",
        "https://www.youtube.com/",
        "https://consent.youtube.com/m?continue=x",
    ],
)
def test_is_garbage(url):
    """Test that auth, support and bare platform homepages are rejected."""
    assert is_garbage(canonicalize(url))


def test_is_garbage_allows_content():
    """Test that ordinary pages and generic roots pass the garbage filter."""
    assert not is_garbage("https://www.youtube.com/watch?v=XYZ123")
    assert not is_garbage("https://example.com/")


@pytest.mark.parametrize(
    "item",
    [None, 42, "", "   ", "ftp://example.com/file", "not a url", {"link": "https://x.com"}],
)
def test_normalize_one_rejects_bad_items(item):
    """Test that unsupported shapes and non-http(s) addresses are dropped."""
    assert normalize_one(item) is None


def test_normalize_one_accepts_mapping():
    """Test that {"url": ...} items are accepted like strings."""
    address = normalize_one({"url": "https://www.youtu.be/XYZ123"})

    assert address is not None
    assert address.raw == "https://www.youtu.be/XYZ123"
    assert address.canonical == "https://www.youtube.com/watch?v=XYZ123"
    assert address.platform is Platform.VIDEO


def test_normalize_deduplicates_and_keeps_order():
    """Test that repeats of one canonical address collapse to a single entry."""
    normalizer = AddressNormalizer()

    addresses = normalizer.normalize(
        [
            "https://example.com/b",
            "https://youtu.be/XYZ123",
            "https://www.youtube.com/watch?v=XYZ123&utm_source=feed",
            {"url": "https://m.youtube.com/watch?v=XYZ123"},
            "https://example.com/b/",
        ]
    )

    assert [a.canonical for a in addresses] == [
        "https://example.com/b",
        "https://www.youtube.com/watch?v=XYZ123",
    ]
    assert len(normalizer.registry) == 2


def test_normalize_applies_platform_allow_list():
    """Test that addresses outside the allow-list are dropped."""
    normalizer = AddressNormalizer(allowed_platforms=["video"])

    addresses = normalizer.normalize(
        ["https://example.com/page", "https://youtu.be/XYZ123"]
    )

    assert [a.platform for a in addresses] == [Platform.VIDEO]


def test_normalize_raises_when_nothing_survives():
    """Test that an input with no valid address is rejected."""
    normalizer = AddressNormalizer()

    with pytest.raises(InvalidInputError):
        normalizer.normalize(["", "mailto:x@example.com", "https://www.reddit.com/login"])


def test_admit_skips_known_addresses():
    """Test that discovered links already in the registry are not admitted twice."""
    normalizer = AddressNormalizer()
    normalizer.normalize(["https://example.com/a"])

    assert normalizer.admit("https://example.com/a/#section") is None
    assert normalizer.admit("https://example.com/c").canonical == "https://example.com/c"
    assert normalizer.admit("https://example.com/c") is None


def test_registry_add():
    """Test that the registry reports whether an address was new."""
    registry = AddressRegistry()
    address = normalize_one("https://example.com/a")

    assert registry.add(address) is True
    assert registry.add(normalize_one("https://example.com/a/")) is False
    assert address in registry
