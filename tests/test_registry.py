import pytest

from docs_hound.registry import SiteRegistry, SiteStatus, UrlFilters


@pytest.fixture
def registry(tmp_path):
    return SiteRegistry(tmp_path)


def test_add_and_get_site(registry):
    site = registry.add_site("https://docs.example.com/start", description="Example")

    assert site.domain == "docs.example.com"
    meta = registry.get_site("docs.example.com")
    assert meta is not None
    assert meta.name == "docs.example.com"
    assert meta.base_url == "https://docs.example.com/start"
    assert meta.status is SiteStatus.PENDING
    assert meta.description == "Example"
    assert registry.site_exists("docs.example.com")
    assert registry.get_site("missing.example.com") is None


def test_add_site_requires_absolute_url(registry):
    with pytest.raises(ValueError):
        registry.add_site("docs.example.com")


def test_status_transitions_stamp_timestamps(registry):
    registry.add_site("https://docs.example.com/")

    registry.update_status("docs.example.com", SiteStatus.DISCOVERED)
    meta = registry.get_site("docs.example.com")
    assert meta.status is SiteStatus.DISCOVERED
    assert meta.last_discovered_at is not None
    assert meta.last_indexed_at is None

    registry.update_status("docs.example.com", SiteStatus.INDEXED)
    assert registry.get_site("docs.example.com").last_indexed_at is not None

    registry.update_status("docs.example.com", SiteStatus.ERROR, "boom")
    meta = registry.get_site("docs.example.com")
    assert meta.status is SiteStatus.ERROR
    assert meta.error_message == "boom"


def test_unknown_domain_updates_raise_key_error(registry):
    with pytest.raises(KeyError):
        registry.update_status("missing.example.com", SiteStatus.INDEXING)
    with pytest.raises(KeyError):
        registry.set_discovered_urls("missing.example.com", ["https://x/"])


def test_update_site_rejects_unknown_fields(registry):
    registry.add_site("https://docs.example.com/")
    with pytest.raises(ValueError):
        registry.update_site("docs.example.com", color="blue")


def test_discovered_and_indexed_sets_update_counts(registry):
    registry.add_site("https://docs.example.com/")
    urls = ["https://docs.example.com/a", "https://docs.example.com/b", "https://docs.example.com/a"]

    registry.set_discovered_urls("docs.example.com", urls)
    assert registry.get_discovered_urls("docs.example.com") == urls[:2]
    assert registry.get_site("docs.example.com").discovered_count == 2

    registry.set_discovered_urls("docs.example.com", [])
    assert registry.get_discovered_urls("docs.example.com") == []

    registry.set_indexed_pages("docs.example.com", urls[:1])
    assert registry.get_indexed_pages("docs.example.com") == urls[:1]
    assert registry.get_site("docs.example.com").page_count == 1


def test_url_filters_round_trip_and_validate(registry):
    registry.add_site("https://docs.example.com/")
    filters = UrlFilters(include_patterns=(r"/docs/",), exclude_patterns=(r"/v1/",))
    registry.set_url_filters("docs.example.com", filters)

    assert registry.get_site("docs.example.com").url_filters == filters
    with pytest.raises(ValueError):
        UrlFilters(exclude_patterns=("[",))


def test_list_sites_newest_first_and_remove(registry):
    registry.add_site("https://old.example.com/")
    registry.add_site("https://new.example.com/")
    registry.update_site("old.example.com", created_at="2024-01-01T00:00:00Z")
    registry.update_site("new.example.com", created_at="2025-01-01T00:00:00Z")
    registry.set_discovered_urls("old.example.com", ["https://old.example.com/a"])

    assert [s.domain for s in registry.list_sites()] == [
        "new.example.com",
        "old.example.com",
    ]

    registry.remove_site("old.example.com")
    assert not registry.site_exists("old.example.com")
    assert registry.get_discovered_urls("old.example.com") == []
    assert [s.domain for s in registry.list_sites()] == ["new.example.com"]
