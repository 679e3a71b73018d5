"""UI translations — JSON catalogs beside this module, one per language code."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_LANGUAGE = "en_US"
LANGUAGES = ("en_US", "zh_CN")

_active = DEFAULT_LANGUAGE


@lru_cache(maxsize=None)
def catalog(lang: str) -> dict[str, str]:
    """Messages of *lang*; empty when the catalog is missing or unreadable."""
    path = Path(__file__).with_name(f"{lang}.json")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"No usable {lang} catalog: {e}")
        return {}


def set_language(lang: str) -> str:
    """Activate *lang* (the default for unknown codes); return the active code."""
    global _active
    if lang not in LANGUAGES:
        logger.warning(f"Unsupported language {lang!r}, using {DEFAULT_LANGUAGE}")
        lang = DEFAULT_LANGUAGE
    _active = lang
    return lang


def t(key: str, **kwargs: Any) -> str:
    """
    Look *key* up in the active catalog, then in the default one.

    Unknown keys come back unchanged.  ``{name}`` placeholders are filled
    from *kwargs*; a template whose placeholders are not all given is
    returned as is::

        t("item.saving", percent=40)   # "saving 40%"
    """
    text = catalog(_active).get(key)
    if text is None:
        text = catalog(DEFAULT_LANGUAGE).get(key, key)
    if not kwargs:
        return text
    try:
        return text.format(**kwargs)
    except (KeyError, IndexError):
        return text
