"""Tests for the core and rules update runs."""

import json
import os
from unittest.mock import Mock

import pytest

from manifestor.exceptions import NoReleaseDataError, NoRulesFoundError
from manifestor.manifest.files import dump_json
from manifestor.manifest.interfaces import ChannelManifest, Release
from manifestor.manifest.orchestrator import CoreUpdater, RulesUpdater

pytestmark = [pytest.mark.unit]

STABLE = {
    "version": "1.10.0",
    "tag": "v1.10.0",
    "downloads": {"linux": {"amd64": "https://example/core-linux-amd64.zip"}},
}
ALPHA = {
    "version": "1.11.0-alpha.2",
    "tag": "v1.11.0-alpha.2",
    "downloads": {"linux": {"arm64": "https://example/core-linux-arm64.zip"}},
}


def _manifest_for(release, channel):
    return ChannelManifest(
        version=release.tag_name.lstrip("v"),
        tag=release.tag_name,
        downloads={"linux": {"amd64": f"https://example/{channel}/{release.tag_name}"}},
    )


def _core_updater(config, stable=None, alpha=None, by_tag=None):
    source = Mock()
    source.get_latest_release.return_value = stable
    source.find_latest_prerelease.return_value = alpha
    source.get_release_by_tag.return_value = by_tag
    processor = Mock()
    processor.process.side_effect = _manifest_for
    return CoreUpdater(config, release_source=source, processor=processor), source, processor


def _write_previous(config, document):
    path = f"{config['STATIC_DIR']}/core_info.json"

    os.makedirs(config["STATIC_DIR"], exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(dump_json(document))
    return path


@pytest.mark.core_downloads
class TestCoreUpdater:
    def test_first_run_writes_both_channels(self, base_config, github_output):
        updater, _, processor = _core_updater(
            base_config,
            stable=Release(tag_name="v1.10.0"),
            alpha=Release(tag_name="v1.11.0-alpha.2", prerelease=True),
        )

        result = updater.run()

        assert result.written
        assert result.updated_channels == {"stable": "v1.10.0", "alpha": "v1.11.0-alpha.2"}
        data = json.loads(updater.manifest_path.read_text())
        assert data["stable"]["tag"] == "v1.10.0"
        assert data["alpha"]["tag"] == "v1.11.0-alpha.2"
        assert [c.args[1] for c in processor.process.call_args_list] == ["stable", "alpha"]
        assert github_output.read_text().splitlines() == [
            "do_stable=true",
            "stable_tag=v1.10.0",
            "do_alpha=true",
            "alpha_tag=v1.11.0-alpha.2",
            "update_json=true",
        ]

    def test_nothing_changed_leaves_file_untouched(self, base_config, github_output):
        path = _write_previous(
            base_config, {"updated_at": "2024-01-01", "stable": STABLE, "alpha": ALPHA}
        )
        before = open(path, "rb").read()
        updater, _, processor = _core_updater(
            base_config,
            stable=Release(tag_name=STABLE["tag"]),
            alpha=Release(tag_name=ALPHA["tag"], prerelease=True),
        )

        result = updater.run()

        assert not result.written
        assert open(path, "rb").read() == before
        processor.process.assert_not_called()
        assert github_output.read_text() == ""

    def test_only_changed_channel_is_recomputed(self, base_config):
        _write_previous(
            base_config, {"updated_at": "2024-01-01", "stable": STABLE, "alpha": ALPHA}
        )
        updater, _, processor = _core_updater(
            base_config,
            stable=Release(tag_name=STABLE["tag"]),
            alpha=Release(tag_name="v1.11.0-alpha.3", prerelease=True),
        )

        result = updater.run()

        assert result.updated_channels == {"alpha": "v1.11.0-alpha.3"}
        processor.process.assert_called_once()
        data = json.loads(updater.manifest_path.read_text())
        assert dump_json(data["stable"]) == dump_json(STABLE)
        assert data["alpha"]["tag"] == "v1.11.0-alpha.3"
        assert data["updated_at"] != "2024-01-01"

    def test_empty_alpha_is_rebuilt_from_previous_tag(self, base_config):
        empty_alpha = dict(ALPHA, downloads={})
        _write_previous(
            base_config, {"updated_at": "x", "stable": STABLE, "alpha": empty_alpha}
        )
        updater, source, _ = _core_updater(
            base_config,
            stable=Release(tag_name=STABLE["tag"]),
            alpha=None,
            by_tag=Release(tag_name=ALPHA["tag"], prerelease=True),
        )

        result = updater.run()

        source.get_release_by_tag.assert_called_once_with(ALPHA["tag"])
        assert result.updated_channels == {"alpha": ALPHA["tag"]}

    def test_missing_prerelease_keeps_populated_alpha(self, base_config):
        _write_previous(base_config, {"updated_at": "x", "stable": STABLE, "alpha": ALPHA})
        updater, _, processor = _core_updater(
            base_config,
            stable=Release(tag_name=STABLE["tag"]),
            alpha=None,
            by_tag=Release(tag_name=ALPHA["tag"], prerelease=True),
        )

        result = updater.run()

        assert not result.written
        processor.process.assert_not_called()

    def test_one_channel_unavailable_is_not_fatal(self, base_config):
        _write_previous(base_config, {"updated_at": "x", "stable": STABLE, "alpha": ALPHA})
        updater, _, _ = _core_updater(
            base_config, stable=Release(tag_name="v1.10.1"), alpha=None
        )

        result = updater.run()

        data = json.loads(updater.manifest_path.read_text())
        assert result.updated_channels == {"stable": "v1.10.1"}
        assert data["alpha"] == ALPHA

    def test_no_release_metadata_is_fatal(self, base_config, github_output):
        path = _write_previous(
            base_config, {"updated_at": "x", "stable": STABLE, "alpha": ALPHA}
        )
        before = open(path, "rb").read()
        updater, _, _ = _core_updater(base_config, stable=None, alpha=None)

        with pytest.raises(NoReleaseDataError):
            updater.run()

        assert open(path, "rb").read() == before
        assert github_output.read_text() == ""


class FakeTreeSource:
    def __init__(self, version, paths):
        self.version = version
        self.paths = paths
        self.path_calls = 0

    def get_version(self):
        return self.version

    def get_paths(self):
        self.path_calls += 1
        return self.paths


TREE_PATHS = [
    "geo/geoip/cn.srs",
    "geo/geoip/cn.json",
    "geo/geosite/google.srs",
    "geo-lite/geoip/cn.srs",
    "geo-lite/geosite/cn.srs",
]


@pytest.mark.rules
class TestRulesUpdater:
    def test_first_run_writes_indices_and_marker(self, base_config, github_output):
        updater = RulesUpdater(base_config, tree_source=FakeTreeSource("20240101000000", TREE_PATHS))

        result = updater.run()

        assert sorted(result.updated_scopes) == ["full", "lite"]
        assert result.rule_counts == {"lite": 1, "full": 2}
        full = json.loads(updater.index_path("full").read_text())
        assert full == {
            "version": "20240101000000",
            "baseUrl": "https://cdn.jsdelivr.net/gh/MetaCubeX/meta-rules-dat@sing",
            "rawBaseUrl": "https://raw.githubusercontent.com/MetaCubeX/meta-rules-dat/sing",
            "homogeneous": False,
            "rules": [
                {"name": "cn", "form": "all", "category": "address-rules"},
                {"name": "google", "form": "binary", "category": "domain-rules"},
            ],
        }
        lite = json.loads(updater.index_path("lite").read_text())
        assert lite["rules"] == [{"name": "cn", "form": "binary", "category": "all"}]
        assert updater.version_path.read_text() == "20240101000000"
        assert github_output.read_text() == "update_json=true\n"

    def test_unchanged_version_skips_tree_fetch(self, base_config):
        source = FakeTreeSource("20240101000000", TREE_PATHS)
        RulesUpdater(base_config, tree_source=source).run()
        files = {
            scope: RulesUpdater(base_config).index_path(scope).read_bytes()
            for scope in ("lite", "full")
        }

        source.path_calls = 0
        result = RulesUpdater(base_config, tree_source=source).run()

        assert not result.written
        assert source.path_calls == 0
        for scope, content in files.items():
            assert RulesUpdater(base_config).index_path(scope).read_bytes() == content

    def test_missing_scope_index_is_rebuilt_alone(self, base_config):
        source = FakeTreeSource("20240101000000", TREE_PATHS)
        updater = RulesUpdater(base_config, tree_source=source)
        updater.run()
        full_before = updater.index_path("full").read_bytes()
        updater.index_path("lite").unlink()

        result = updater.run()

        assert result.updated_scopes == ["lite"]
        assert updater.index_path("lite").exists()
        assert updater.index_path("full").read_bytes() == full_before

    def test_version_unavailable_keeps_previous_state(self, base_config, github_output):
        updater = RulesUpdater(base_config, tree_source=FakeTreeSource(None, TREE_PATHS))

        result = updater.run()

        assert not result.written
        assert not updater.rules_dir.exists()
        assert github_output.read_text() == ""

    def test_tree_unavailable_keeps_previous_state(self, base_config):
        updater = RulesUpdater(base_config, tree_source=FakeTreeSource("v2", None))

        result = updater.run()

        assert not result.written
        assert not updater.version_path.exists()

    def test_no_rules_in_any_scope_is_fatal(self, base_config):
        updater = RulesUpdater(
            base_config, tree_source=FakeTreeSource("v2", ["README.md", "geo/x.txt"])
        )

        with pytest.raises(NoRulesFoundError):
            updater.run()

        assert not updater.rules_dir.exists()

    def test_one_empty_scope_is_not_fatal(self, base_config):
        updater = RulesUpdater(
            base_config, tree_source=FakeTreeSource("v3", ["geo/geoip/cn.srs"])
        )

        result = updater.run()

        assert result.rule_counts == {"lite": 0, "full": 1}
        assert json.loads(updater.index_path("lite").read_text())["rules"] == []
