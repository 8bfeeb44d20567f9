# pricesync/normalizers/attributes.py

"""Attribute extraction from free-text listing titles.

Storage is found with a regex, color and condition with closed keyword
lists read from ``vocabulary.json`` so new regions can add words without
code changes.  Keyword search is case-sensitive substring containment
and the first keyword in vocabulary order wins.  Nothing found means
``None``; nothing is guessed.
"""

import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from pricesync.config.settings import Settings

logger = logging.getLogger("pricesync.normalizers")


@dataclass(frozen=True)
class Vocabulary:
    """Closed word lists used for attribute extraction."""

    storage_pattern: re.Pattern[str]
    conditions: tuple[str, ...]
    colors: tuple[str, ...]


def load_vocabulary(path: Path | None = None) -> Vocabulary:
    """Read a vocabulary file into a :class:`Vocabulary`."""
    vocab_path = path or Settings.VOCABULARY_PATH
    with open(vocab_path, encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)
    vocabulary = Vocabulary(
        storage_pattern=re.compile(
            str(data.get("storage_pattern", r"\d+\s?(?:GB|TB|MB)"))
        ),
        conditions=tuple(str(w) for w in data.get("conditions", [])),
        colors=tuple(str(w) for w in data.get("colors", [])),
    )
    logger.debug(
        "Loaded vocabulary from %s: %d conditions, %d colors",
        vocab_path,
        len(vocabulary.conditions),
        len(vocabulary.colors),
    )
    return vocabulary


@lru_cache(maxsize=1)
def default_vocabulary() -> Vocabulary:
    """The vocabulary shipped with the package, loaded once."""
    return load_vocabulary()


def extract_storage(
    text: str | None, vocabulary: Vocabulary | None = None,
) -> str | None:
    """Return the first storage token such as ``128GB`` in ``text``."""
    if not text:
        return None
    vocab = vocabulary or default_vocabulary()
    match = vocab.storage_pattern.search(text)
    return match.group(0).replace(" ", "") if match else None


def extract_keyword(
    text: str | None, keywords: tuple[str, ...],
) -> str | None:
    """Return the first keyword (in list order) contained in ``text``."""
    if not text:
        return None
    for keyword in keywords:
        if keyword in text:
            return keyword
    return None


def extract_condition(
    text: str | None, vocabulary: Vocabulary | None = None,
) -> str | None:
    vocab = vocabulary or default_vocabulary()
    return extract_keyword(text, vocab.conditions)


def extract_color(
    text: str | None, vocabulary: Vocabulary | None = None,
) -> str | None:
    vocab = vocabulary or default_vocabulary()
    return extract_keyword(text, vocab.colors)
