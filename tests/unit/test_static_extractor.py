"""Unit tests for the static (HTTP + selector heuristics) lane."""

import httpx
import pytest

from fakes import FakeFetcher
from harvester.core.harvesting.address_normalizer import normalize_one
from harvester.core.harvesting.fetcher import FetchResponse
from harvester.core.harvesting.models import ExtractionLimits
from harvester.core.harvesting.static_extractor import StaticExtractor
from harvester.utils.exceptions import FetchFailureError

BLOG_HTML = """
<html>
  <head><title>My Blog - Post 1</title></head>
  <body>
    <h1>Post 1</h1>
    <article>
      <h2><a href="/blog/post2">Related: Post 2</a></h2>
      <p>This is the body of the first post.</p>
      <h3>Section</h3>
    </article>
    <div class="comment">Nice write-up</div>
    <div class="comment">   </div>
    <div class="comment">Thanks for sharing</div>
    <a href="https://other.example.org/page#frag">Elsewhere</a>
    <a href="mailto:me@example.com">Mail</a>
  </body>
</html>
"""

THREAD_HTML = """
<html>
  <head><title>r/rust</title></head>
  <body>
    <a class="title" href="/r/rust/comments/1/first">First thread</a>
    <a class="title" href="/r/rust/comments/2/second">Second thread</a>
    <a class="title" href="/r/rust/comments/1/first">First thread</a>
    <div data-testid="comment">Rust is great</div>
    <div data-testid="comment">Borrow checker again</div>
    <div class="comment">fallback comment</div>
  </body>
</html>
"""


@pytest.fixture
def blog_address():
    return normalize_one("https://example.com/blog/post1")


@pytest.fixture
def thread_address():
    return normalize_one("https://www.reddit.com/r/rust")


@pytest.mark.asyncio
async def test_generic_page_posts_from_headings(blog_address):
    """Test that a generic page yields heading posts, comments and text."""
    fetcher = FakeFetcher({blog_address.canonical: BLOG_HTML})
    extractor = StaticExtractor(fetcher)

    outcome = await extractor.extract(blog_address)

    assert outcome.title == "My Blog - Post 1"
    assert [p.title for p in outcome.posts] == ["Post 1", "Related: Post 2", "Section"]
    assert outcome.posts[1].url == "https://example.com/blog/post2"
    assert outcome.posts[0].url is None
    assert outcome.comments == ["Nice write-up", "Thanks for sharing"]
    assert "body of the first post" in outcome.text
    assert not outcome.verdict.blocked
    assert fetcher.calls == [blog_address.canonical]


@pytest.mark.asyncio
async def test_aggregator_page_link_posts_and_comments(thread_address):
    """Test aggregator link posts (deduplicated) and platform comment selectors."""
    fetcher = FakeFetcher({thread_address.canonical: THREAD_HTML})
    extractor = StaticExtractor(fetcher, follow_links=False)

    outcome = await extractor.extract(thread_address)

    assert [p.url for p in outcome.posts] == [
        "https://www.reddit.com/r/rust/comments/1/first",
        "https://www.reddit.com/r/rust/comments/2/second",
    ]
    assert outcome.comments == ["Rust is great", "Borrow checker again"]
    assert outcome.links == []


def test_limits_cap_posts_and_comments(thread_address):
    """Test that extraction respects the configured caps."""
    extractor = StaticExtractor(
        FakeFetcher({}), limits=ExtractionLimits(max_posts=1, max_comments=0)
    )

    outcome = extractor.parse(thread_address, THREAD_HTML)

    assert len(outcome.posts) == 1
    assert outcome.comments == []


def test_unmatched_heuristics_yield_empty_values(blog_address):
    """Test that a page matching no heuristic gives empty lists, not errors."""
    extractor = StaticExtractor(FakeFetcher({}), follow_links=False)

    outcome = extractor.parse(blog_address, "<html><body></body></html>")

    assert outcome.title is None
    assert outcome.posts == []
    assert outcome.comments == []
    assert outcome.text is None


def test_title_falls_back_to_og_title(blog_address):
    """Test the title chain when neither <title> nor <h1> is present."""
    html = '<html><head><meta property="og:title" content="OG Title"></head><body></body></html>'

    outcome = StaticExtractor(FakeFetcher({})).parse(blog_address, html)

    assert outcome.title == "OG Title"


def test_discover_links(blog_address):
    """Test that links are absolute http(s) URLs without fragments."""
    outcome = StaticExtractor(FakeFetcher({})).parse(blog_address, BLOG_HTML)

    assert outcome.links == [
        "https://example.com/blog/post2",
        "https://other.example.org/page",
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 429, 500])
async def test_non_success_status_is_fetch_failure(blog_address, status):
    """Test that a non-success status raises FetchFailureError with the code."""
    fetcher = FakeFetcher(
        {blog_address.canonical: FetchResponse(url=blog_address.canonical, status=status, text="")}
    )

    with pytest.raises(FetchFailureError) as exc_info:
        await StaticExtractor(fetcher).extract(blog_address)

    assert exc_info.value.reason == f"HTTP {status}"
    assert exc_info.value.url == blog_address.canonical


@pytest.mark.asyncio
async def test_transport_error_is_fetch_failure(blog_address, transport_error):
    """Test that httpx transport errors become FetchFailureError."""
    fetcher = FakeFetcher({blog_address.canonical: transport_error})

    with pytest.raises(FetchFailureError) as exc_info:
        await StaticExtractor(fetcher).extract(blog_address)

    assert exc_info.value.reason.startswith("transport error")
    assert isinstance(exc_info.value.__cause__, httpx.HTTPError)


CHALLENGE_HTML = """
<html>
  <head><title>Just a moment</title></head>
  <body>
    <h1>Are you a robot?</h1>
    <p>Please verify you are a human to continue.</p>
    <a href="/help">Help</a>
  </body>
</html>
"""


@pytest.mark.asyncio
async def test_challenge_page_with_success_status_is_blocked(blog_address):
    """Test that a 200 interstitial comes back blocked with no links."""
    fetcher = FakeFetcher({blog_address.canonical: CHALLENGE_HTML})
    extractor = StaticExtractor(fetcher)

    outcome = await extractor.extract(blog_address)

    assert outcome.verdict.blocked
    assert "verify you are a human" in outcome.verdict.reason
    assert outcome.title == "Just a moment"
    assert outcome.links == []
    assert outcome.posts == []


def test_challenge_redirect_target_is_blocked(blog_address):
    """Test that landing on a challenge URL after redirects is blocked."""
    extractor = StaticExtractor(FakeFetcher({}))

    outcome = extractor.parse(
        blog_address, BLOG_HTML, base_url="https://example.com/challenge?next=/blog/post1"
    )

    assert outcome.verdict.blocked
    assert outcome.verdict.reason.startswith("redirected to")


def test_script_text_does_not_trigger_block(blog_address):
    """Test that challenge phrases inside scripts and comments are ignored."""
    html = BLOG_HTML.replace(
        "</head>",
        "<script>var msg = 'captcha';</script><!-- unusual traffic --></head>",
    )
    extractor = StaticExtractor(FakeFetcher({}))

    outcome = extractor.parse(blog_address, html)

    assert not outcome.verdict.blocked
    assert outcome.posts
