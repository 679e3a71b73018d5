"""Tests for UI translations."""

from __future__ import annotations

import pytest

from ibexporter import i18n
from ibexporter.i18n import DEFAULT_LANGUAGE, LANGUAGES, catalog, set_language, t


@pytest.fixture(autouse=True)
def restore_language():
    yield
    set_language(DEFAULT_LANGUAGE)


class TestTranslate:
    def test_placeholders(self) -> None:
        assert t("item.saving", percent=40) == "saving 40%"

    def test_unknown_key_returned(self) -> None:
        assert t("no.such.key") == "no.such.key"

    def test_missing_placeholder_keeps_template(self) -> None:
        assert t("item.saving", other=1) == "saving {percent}%"

    def test_switch_language(self) -> None:
        assert set_language("zh_CN") == "zh_CN"
        assert t("item.export") == catalog("zh_CN")["item.export"]

    def test_unknown_language_selects_default(self) -> None:
        set_language("zh_CN")
        assert set_language("xx_XX") == DEFAULT_LANGUAGE
        assert t("item.export") == "Export"

    def test_falls_back_to_default_catalog(self, monkeypatch) -> None:
        set_language("zh_CN")
        monkeypatch.setattr(i18n, "catalog", lambda lang: {} if lang == "zh_CN" else {"k": "v"})
        assert t("k") == "v"


class TestCatalogs:
    @pytest.mark.parametrize("lang", LANGUAGES)
    def test_same_keys_as_default(self, lang: str) -> None:
        assert catalog(lang).keys() == catalog(DEFAULT_LANGUAGE).keys()
