"""Tests for stocklink.utils.url: URL and domain helpers."""

from __future__ import annotations

import pytest

from stocklink.utils.url import (
    asset_slug,
    extract_domain,
    get_base_domain,
    is_login_url,
    is_same_site,
    normalize_asset_url,
)


class TestExtractDomain:
    """Tests for extract_domain()."""

    def test_simple_url(self) -> None:
        assert extract_domain("https://www.freepik.com/photos") == "www.freepik.com"

    def test_url_with_port(self) -> None:
        assert extract_domain("https://localhost:3000/health") == "localhost"

    def test_invalid_url_returns_unknown(self) -> None:
        assert extract_domain("not a url") == "unknown"


class TestGetBaseDomain:
    """Tests for get_base_domain()."""

    def test_strips_subdomains(self) -> None:
        assert get_base_domain("downloadscdn5.freepik.com") == "freepik.com"

    def test_co_uk_tld(self) -> None:
        assert get_base_domain("www.example.co.uk") == "example.co.uk"

    def test_single_label(self) -> None:
        assert get_base_domain("localhost") == "localhost"


class TestIsSameSite:
    """Tests for is_same_site()."""

    def test_subdomain_is_same_site(self) -> None:
        assert is_same_site("https://img.freepik.com/download/x", "https://www.freepik.com/photo/a_1.htm")

    def test_other_site(self) -> None:
        assert not is_same_site("https://flaticon.com/download/x", "https://www.freepik.com/photo/a_1.htm")

    def test_unparseable_is_not_same_site(self) -> None:
        assert not is_same_site("garbage", "garbage")


class TestNormalizeAssetUrl:
    """Tests for normalize_asset_url()."""

    def test_strips_fragment(self) -> None:
        url = "https://www.freepik.com/icon/location_4249665#fromView=popular&uuid=c13f"
        assert normalize_asset_url(url) == "https://www.freepik.com/icon/location_4249665"

    def test_strips_query(self) -> None:
        assert normalize_asset_url("https://www.freepik.com/a_1.htm?log-in=1") == "https://www.freepik.com/a_1.htm"

    def test_clean_url_unchanged(self) -> None:
        assert normalize_asset_url("https://www.freepik.com/a_1.htm") == "https://www.freepik.com/a_1.htm"


class TestIsLoginUrl:
    """Tests for is_login_url()."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.freepik.com/log-in?client_id=freepik",
            "https://www.freepik.com/login",
            "https://id.freepik.com/v2/sign-in/",
            "https://www.freepik.com/login.htm",
            "https://id.freepik.com/v2/loginRedirect?x=1",
        ],
    )
    def test_login_pages(self, url: str) -> None:
        assert is_login_url(url)

    def test_redirect_away_from_target_to_login_prefix(self) -> None:
        target = "https://www.freepik.com/premium-video/sunset_123.htm"
        assert is_login_url("https://id.freepik.com/v2/loginRedirect?x=1", target)
        assert is_login_url("https://www.freepik.com/login.htm", target)

    def test_asset_slug_mentioning_login_is_not_login(self) -> None:
        target = "https://www.freepik.com/premium-photo/login-screen_1.htm"
        assert not is_login_url(target, target)
        assert not is_login_url(f"{target}/", target)

    def test_exact_login_segment_counts_even_on_target_path(self) -> None:
        target = "https://www.freepik.com/login"
        assert is_login_url(target, target)

    def test_query_is_ignored(self) -> None:
        assert not is_login_url("https://www.freepik.com/photo/a_1.htm?next=/login")


class TestAssetSlug:
    """Tests for asset_slug()."""

    def test_strips_htm(self) -> None:
        assert asset_slug("https://www.freepik.com/premium-photo/mountain-lake_15.htm") == "mountain-lake_15"

    def test_falls_back_to_domain(self) -> None:
        assert asset_slug("https://www.freepik.com/") == "www.freepik.com"
