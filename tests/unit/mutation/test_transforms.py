"""Tests for the masterlist content transforms."""

import pytest

from lomad.mutation.transforms import TRANSFORMS, replace_loot_version, rewrite_url


class TestReplaceLootVersion:
    def test_only_the_version_token_changes(self, masterlist_text):
        updated = replace_loot_version(masterlist_text, "0.15.0")

        before, _, after = masterlist_text.partition('version("LOOT", "0.14.0", <)')
        assert updated == before + 'version("LOOT", "0.15.0", <)' + after

    def test_only_first_token_is_replaced(self):
        content = (
            'a: version("LOOT", "0.9", <)\n'
            'b: version("LOOT", "0.9", <)\n'
        )

        updated = replace_loot_version(content, "0.10.1")

        assert updated == (
            'a: version("LOOT", "0.10.1", <)\n'
            'b: version("LOOT", "0.9", <)\n'
        )

    def test_content_without_token_is_returned_unchanged(self):
        content = "plugins: []\n"

        assert replace_loot_version(content, "1.0") == content

    def test_other_comparisons_are_left_alone(self):
        content = 'version("LOOT", "0.14.0", >=)'

        assert replace_loot_version(content, "0.15.0") == content

    @pytest.mark.parametrize("bad", ["", "v0.15", "0.15.0-beta", "0..1", '1"'])
    def test_invalid_version_is_rejected(self, bad):
        with pytest.raises(ValueError, match="Invalid version number"):
            replace_loot_version('version("LOOT", "0.14.0", <)', bad)


class TestRewriteUrl:
    def test_every_occurrence_is_replaced(self):
        content = "http://old.example/a and http://old.example/a again"

        updated = rewrite_url(content, ("http://old.example/a", "https://new.example/a"))

        assert updated == "https://new.example/a and https://new.example/a again"

    def test_empty_old_url_is_rejected(self):
        with pytest.raises(ValueError):
            rewrite_url("text", ("", "https://new.example"))


def test_transform_registry():
    assert TRANSFORMS["loot-version"] is replace_loot_version
    assert TRANSFORMS["rewrite-url"] is rewrite_url
