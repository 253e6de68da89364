from docs_hound.frontier import ClaimOutcome, Frontier
from docs_hound.urls import UrlScope

SCOPE = UrlScope(allowed_hosts=("docs.example.com",))


def test_claim_moves_url_from_queued_to_visited():
    f = Frontier()
    f.mark_queued("https://docs.example.com/a")
    assert f.claim("https://docs.example.com/a", max_pages=10) is ClaimOutcome.CLAIMED
    assert f.visited == {"https://docs.example.com/a"}
    assert f.queued == set()


def test_second_claim_is_absorbed_as_duplicate():
    f = Frontier()
    f.claim("https://docs.example.com/a", max_pages=10)
    f.mark_queued("https://docs.example.com/a")
    assert f.claim("https://docs.example.com/a", max_pages=10) is ClaimOutcome.DUPLICATE
    assert len(f.visited) == 1
    assert f.queued == set()


def test_claim_past_cap_sets_hit_limit_without_visiting():
    f = Frontier()
    f.claim("https://docs.example.com/a", max_pages=1)
    f.mark_queued("https://docs.example.com/b")
    assert f.claim("https://docs.example.com/b", max_pages=1) is ClaimOutcome.LIMIT
    assert f.hit_limit is True
    assert "https://docs.example.com/b" not in f.visited
    assert f.queued == set()


def test_should_crawl_checks_membership_scope_and_cap():
    f = Frontier()
    url = "https://docs.example.com/a"
    assert f.should_crawl(url, scope=SCOPE, max_pages=2)

    f.mark_queued(url)
    assert not f.should_crawl(url + "/", scope=SCOPE, max_pages=2)
    assert not f.should_crawl("https://other.example.com/x", scope=SCOPE, max_pages=2)
    assert not f.should_crawl("mailto:a@docs.example.com", scope=SCOPE, max_pages=2)

    f.claim("https://docs.example.com/b", max_pages=2)
    f.claim("https://docs.example.com/c", max_pages=2)
    assert not f.should_crawl("https://docs.example.com/d", scope=SCOPE, max_pages=2)


def test_should_crawl_is_side_effect_free():
    f = Frontier()
    f.should_crawl("https://docs.example.com/a", scope=SCOPE, max_pages=1)
    assert f.visited == set() and f.queued == set() and f.discovered == set()
    assert f.hit_limit is False


def test_reset_clears_everything():
    f = Frontier()
    f.claim("https://docs.example.com/a", max_pages=5)
    f.mark_queued("https://docs.example.com/b")
    f.mark_discovered("https://docs.example.com/c")
    assert f.hit_limit
    f.reset()
    assert f.visited == set() and f.queued == set() and f.discovered == set()
    assert f.hit_limit is False


def test_committed_counts_scheduled_and_claimed():
    f = Frontier()
    f.mark_queued("https://docs.example.com/a")
    f.mark_queued("https://docs.example.com/b")
    assert f.committed() == 2

    f.claim("https://docs.example.com/a", max_pages=10)
    assert f.committed() == 2
    f.mark_discovered("https://docs.example.com/c")
    assert f.committed() == 2
