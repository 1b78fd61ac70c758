"""Tests for stocklink.extraction.rules: CDN rule matching and loading."""

from __future__ import annotations

import json
import pathlib

import pydantic
import pytest

from stocklink.extraction import rules
from stocklink.extraction.categories import ASSET_CATEGORIES
from stocklink.extraction.rules import CdnRule, RuleBook


class TestDefaultRules:
    """Tests for the shipped rule book."""

    def test_every_category_has_a_rule(self, rule_book: RuleBook) -> None:
        for category in ASSET_CATEGORIES:
            assert isinstance(rule_book.rule_for(category), CdnRule)

    def test_shared_exclusions_folded_into_each_category(self, rule_book: RuleBook) -> None:
        for category in ASSET_CATEGORIES:
            assert "/download.gif" in rule_book.rule_for(category).exclusion_substrings

    def test_video_keeps_its_own_exclusion(self, rule_book: RuleBook) -> None:
        assert "/api/video/" in rule_book.rule_for("video").exclusion_substrings

    def test_cached(self) -> None:
        assert rules.get_default_rules() is rules.get_default_rules()


class TestMatching:
    """Tests for the RuleBook matching predicates."""

    def test_domain_matches_hostname(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("video")
        assert rule_book.matches_domain("https://videocdn.cdnpk.net/v/clip.mp4", rule)

    def test_domain_not_matched_in_query(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("video")
        assert not rule_book.matches_domain("https://example.com/?next=videocdn.cdnpk.net", rule)

    def test_extension_at_end_of_path(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("psd")
        assert rule_book.matches_extension("https://downloadscdn5.freepik.com/d/poster.zip?token=abc", rule)

    def test_extension_in_query_value(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("psd")
        assert rule_book.matches_extension("https://downloadscdn5.freepik.com/get?filename=poster.psd&sig=1", rule)

    def test_extension_prefix_does_not_match(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("psd")
        assert not rule_book.matches_extension("https://downloadscdn5.freepik.com/d/poster.zipper", rule)

    def test_hostname_never_counts_as_extension(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("icon")
        assert not rule_book.matches_extension("https://cdn-icons-png.flaticon.com/", rule)

    @pytest.mark.parametrize("category", ["icon", "unknown"])
    def test_icon_thumbnail_host_is_not_a_download_domain(self, rule_book: RuleBook, category: str) -> None:
        rule = rule_book.rule_for(category)
        assert not rule_book.matches_domain("https://cdn-icons-png.flaticon.com/512/3135/3135715.png", rule)
        assert rule_book.matches_domain("https://cdn-icons.flaticon.com/svg/3135/3135715.svg", rule)

    def test_tracking_pixel_excluded(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("photo")
        assert rule_book.is_excluded("https://www.freepik.com/download.gif?id=1", rule)

    def test_wallet_param_excluded_case_insensitively(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("photo")
        assert rule_book.is_excluded("https://downloadscdn5.freepik.com/a.jpg?walletId=42", rule)

    def test_clean_url_not_excluded(self, rule_book: RuleBook) -> None:
        rule = rule_book.rule_for("photo")
        assert not rule_book.is_excluded("https://downloadscdn5.freepik.com/a.jpg?token=x", rule)

    def test_download_marker_in_path(self, rule_book: RuleBook) -> None:
        assert rule_book.has_download_marker("https://www.freepik.com/download/abc")
        assert not rule_book.has_download_marker("https://www.freepik.com/photos?q=/download/")


class TestLoading:
    """Tests for load_rules() and build_rule_book()."""

    def test_override_merges_fields(self, tmp_path: pathlib.Path) -> None:
        override = tmp_path / "rules.json"
        override.write_text(json.dumps({"categories": {"video": {"candidate_domains": ["newcdn.example.net"]}}}))

        book = rules.load_rules(override)

        video = book.rule_for("video")
        assert video.candidate_domains == frozenset({"newcdn.example.net"})
        assert ".mp4" in video.candidate_extensions
        assert book.rule_for("photo") == rules.get_default_rules().rule_for("photo")

    def test_missing_override_raises(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            rules.load_rules(tmp_path / "absent.json")

    def test_non_object_override_raises(self, tmp_path: pathlib.Path) -> None:
        override = tmp_path / "rules.json"
        override.write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            rules.load_rules(override)

    def test_missing_category_rejected(self) -> None:
        raw = {"categories": {"photo": {"candidate_domains": ["x"], "candidate_extensions": [".jpg"]}}}
        with pytest.raises(pydantic.ValidationError, match="No CDN rule"):
            rules.build_rule_book(raw)

    def test_patterns_lowercased(self) -> None:
        rule = CdnRule(candidate_domains=["CDN.Example.COM"], candidate_extensions=[".ZIP"])
        assert rule.candidate_domains == frozenset({"cdn.example.com"})
        assert rule.candidate_extensions == frozenset({".zip"})
