"""Tests for the startup invalidation check."""

import orjson
import pytest

from good_render import ConfigurationError, InvalidationLedger, TemplateStore

OLD = 1_600_000_000
NEW = 1_700_000_000


@pytest.fixture
def store(templates_dir, write_template):
    write_template("hello", "Hello", mtime=NEW)
    write_template("emails/welcome", "Welcome", mtime=NEW)
    return TemplateStore(templates_dir)


@pytest.fixture
def cache_root(tmp_path):
    root = tmp_path / "cache" / "artifacts"
    (root / "emails").mkdir(parents=True)
    (root / "hello.json").write_text("{}")
    (root / "emails" / "welcome.json").write_text("{}")
    return root


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "cache" / "map.json"


@pytest.fixture
def ledger(ledger_path, cache_root, store):
    return InvalidationLedger(ledger_path, cache_root, store)


def write_map(path, mapping):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(orjson.dumps(mapping))


class TestStaleness:
    def test_newer_template_drops_whole_cache(self, ledger, ledger_path, cache_root):
        write_map(ledger_path, {"hello": OLD, "emails/welcome": NEW})
        result = ledger.check()
        assert result.stale and result.dropped
        assert result.changed == ["hello"]
        assert not cache_root.exists()

    def test_unchanged_templates_keep_cache(self, ledger, ledger_path, cache_root):
        write_map(ledger_path, {"hello": NEW, "emails/welcome": NEW})
        result = ledger.check()
        assert not result.stale
        assert (cache_root / "hello.json").is_file()
        assert (cache_root / "emails" / "welcome.json").is_file()

    def test_older_live_timestamp_is_not_stale(self, ledger, ledger_path, cache_root):
        write_map(ledger_path, {"hello": NEW + 100})
        assert not ledger.check().stale
        assert cache_root.exists()

    def test_added_template_is_not_stale(self, ledger, ledger_path, cache_root):
        write_map(ledger_path, {"hello": NEW})
        result = ledger.check()
        assert not result.stale
        assert result.added == ["emails/welcome"]
        assert cache_root.exists()

    def test_deleted_template_is_not_stale(self, ledger, ledger_path, cache_root):
        write_map(ledger_path, {"hello": NEW, "emails/welcome": NEW, "gone": OLD})
        result = ledger.check()
        assert not result.stale
        assert result.removed == ["gone"]
        assert cache_root.exists()

    def test_stale_with_missing_cache_dir(self, ledger, ledger_path, cache_root):
        import shutil

        shutil.rmtree(cache_root)
        write_map(ledger_path, {"hello": OLD})
        result = ledger.check()
        assert result.stale
        assert not result.dropped


class TestPersistence:
    def test_missing_ledger_is_empty(self, ledger, cache_root):
        assert ledger.load() == {}
        result = ledger.check()
        assert not result.stale
        assert cache_root.exists()

    @pytest.mark.parametrize("payload", [b"{not json", b"[1, 2]", b'"text"'])
    def test_corrupt_ledger_is_empty(self, ledger, ledger_path, cache_root, payload):
        ledger_path.parent.mkdir(parents=True, exist_ok=True)
        ledger_path.write_bytes(payload)
        assert ledger.load() == {}
        assert not ledger.check().stale
        assert cache_root.exists()

    def test_bad_timestamps_skipped(self, ledger, ledger_path):
        write_map(ledger_path, {"hello": "yesterday", "emails/welcome": OLD, "x": True})
        assert ledger.load() == {"emails/welcome": OLD}

    def test_fresh_map_written_pretty(self, ledger, ledger_path):
        write_map(ledger_path, {"hello": OLD, "gone": OLD})
        ledger.check()
        text = ledger_path.read_text()
        assert orjson.loads(text) == {"emails/welcome": NEW, "hello": NEW}
        assert "\n  " in text

    def test_second_check_after_drop_is_clean(self, ledger, ledger_path):
        write_map(ledger_path, {"hello": OLD})
        assert ledger.check().dropped
        assert not ledger.check().stale


class TestConfigurationGuard:
    def test_ledger_inside_cache_dir_fails_before_deleting(self, cache_root, store):
        ledger_path = cache_root / "map.json"
        write_map(ledger_path, {"hello": OLD})
        ledger = InvalidationLedger(ledger_path, cache_root, store)
        with pytest.raises(ConfigurationError):
            ledger.check()
        assert (cache_root / "hello.json").is_file()
        assert orjson.loads(ledger_path.read_bytes()) == {"hello": OLD}

    def test_ledger_nested_deeper_inside_cache_dir(self, cache_root, store):
        ledger = InvalidationLedger(cache_root / "meta" / "map.json", cache_root, store)
        with pytest.raises(ConfigurationError):
            ledger.validate()

    def test_sibling_with_common_prefix_is_allowed(self, tmp_path, store):
        cache_root = tmp_path / "cache"
        ledger = InvalidationLedger(tmp_path / "cache-map" / "map.json", cache_root, store)
        ledger.validate()
