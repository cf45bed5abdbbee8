"""Tests for PartialRegistry ordering, idempotence and folder loading."""

import pytest

from good_render import (
    AddResult,
    InvalidArgumentError,
    PartialRegistry,
    TemplateNotFoundError,
    TemplateStore,
)
from good_render.partials import SortedMap


@pytest.fixture
def store(templates_dir, write_template):
    write_template("partials/zeta", "Z")
    write_template("partials/alpha", "A")
    write_template("partials/nested/mid", "M")
    write_template("layout/header", "<h1>{{ title }}</h1>")
    return TemplateStore(templates_dir)


@pytest.fixture
def registry(store):
    return PartialRegistry(store)


class TestAdd:
    def test_add_inserts_source(self, registry):
        assert registry.add("layout/header") is AddResult.INSERTED
        assert registry.all()["layout/header"] == "<h1>{{ title }}</h1>"

    def test_add_duplicate_is_noop(self, registry):
        registry.add("layout/header")
        result = registry.add("layout/header")
        assert result is AddResult.ALREADY_PRESENT
        assert not result
        assert len(registry) == 1

    def test_entries_sorted_by_name(self, registry):
        for name in ("partials/zeta", "layout/header", "partials/alpha"):
            registry.add(name)
        assert list(registry.all()) == ["layout/header", "partials/alpha", "partials/zeta"]

    @pytest.mark.parametrize("name", ["", None])
    def test_add_empty_name(self, registry, name):
        with pytest.raises(InvalidArgumentError):
            registry.add(name)
        assert len(registry) == 0

    def test_add_missing_template(self, registry):
        with pytest.raises(TemplateNotFoundError):
            registry.add("layout/missing")
        assert len(registry) == 0

    @pytest.mark.parametrize("alias", ["/layout/header", "layout/header/", "layout\\header"])
    def test_add_same_template_under_alias(self, registry, alias):
        assert registry.add("layout/header") is AddResult.INSERTED
        assert registry.add(alias) is AddResult.ALREADY_PRESENT
        assert list(registry.all()) == ["layout/header"]

    def test_add_slash_only_name(self, registry):
        with pytest.raises(InvalidArgumentError):
            registry.add("/")
        assert len(registry) == 0


class TestAddAll:
    def test_add_all_folder(self, registry, store):
        inserted = registry.add_all("partials")
        assert sorted(inserted) == ["partials/alpha", "partials/nested/mid", "partials/zeta"]
        assert len(registry) == 3
        for name, source in registry.all().items():
            assert source == store.resolve(name)

    def test_add_all_ignores_existing(self, registry):
        registry.add("partials/alpha")
        inserted = registry.add_all("partials")
        assert "partials/alpha" not in inserted
        assert len(registry) == 3

    def test_add_all_skips_non_template_files(self, registry, write_template):
        write_template("partials/readme", "docs", extension="md")
        registry.add_all("partials")
        assert "partials/readme.md" not in registry
        assert len(registry) == 3

    @pytest.mark.parametrize("folder", ["", None])
    def test_add_all_empty_folder_name(self, registry, folder):
        with pytest.raises(InvalidArgumentError):
            registry.add_all(folder)

    def test_add_all_missing_folder(self, registry):
        with pytest.raises(TemplateNotFoundError):
            registry.add_all("components")


class TestRemoveAndClear:
    def test_remove_present(self, registry):
        registry.add("layout/header")
        registry.add("partials/alpha")
        assert registry.remove("layout/header") is True
        assert len(registry) == 1
        assert "layout/header" not in registry

    def test_remove_by_alias(self, registry):
        registry.add("partials/alpha")
        assert registry.remove("/partials/alpha/") is True
        assert len(registry) == 0

    def test_remove_absent(self, registry):
        registry.add("partials/alpha")
        assert registry.remove("layout/header") is False
        assert len(registry) == 1

    def test_clear(self, registry):
        registry.add_all("partials")
        registry.clear()
        assert len(registry) == 0
        assert dict(registry.all()) == {}


class TestViews:
    def test_all_is_live(self, registry):
        view = registry.all()
        assert len(view) == 0
        registry.add("partials/alpha")
        assert list(view) == ["partials/alpha"]

    def test_all_is_read_only(self, registry):
        registry.add("partials/alpha")
        with pytest.raises(TypeError):
            registry.all()["partials/alpha"] = "changed"

    def test_snapshot_is_detached(self, registry):
        registry.add("partials/alpha")
        snapshot = registry.snapshot()
        registry.add("partials/zeta")
        assert list(snapshot) == ["partials/alpha"]


class TestSortedMap:
    def test_insert_and_pop_keep_order(self):
        entries = SortedMap()
        for key in ("b", "d", "a", "c"):
            assert entries.insert(key, key.upper())
        assert entries.keys() == ["a", "b", "c", "d"]
        assert not entries.insert("a", "other")
        assert entries.get("a") == "A"
        assert entries.pop("c")
        assert not entries.pop("c")
        assert entries.items() == [("a", "A"), ("b", "B"), ("d", "D")]
