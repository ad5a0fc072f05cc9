"""Word-suggestion service client with a deterministic local fallback."""

import re
from typing import Any

import requests
from loguru import logger

from qda_workbench.config import SYNONYM_API_URL, SYNONYM_TIMEOUT

_TERM_ALTERNATIVES: dict[str, list[str]] = {
    "text": ["document", "content", "writing", "passage", "material"],
    "search": ["find", "locate", "discover", "query", "lookup"],
    "tag": ["label", "mark", "category", "classify", "annotate"],
    "sample": ["example", "specimen", "instance", "case", "illustration"],
}

_GENERIC_FALLBACK = ["sample", "text", "right", "click", "part", "tags", "overlapping"]

MAX_FALLBACK_WORDS = 5


def generate_fallback_synonyms(term: str, text: str) -> list[str]:
    """Suggest related words from the document's own vocabulary.

    Picks up to five distinct words longer than three characters, other than
    the term. When the document offers fewer than two, a built-in list is
    used instead, so the result is never empty.
    """
    lowered = term.lower()
    words = re.sub(r"[^\w\s]", "", text.lower()).split()
    unique = [w for w in dict.fromkeys(words) if len(w) > 3 and w != lowered][:MAX_FALLBACK_WORDS]
    if len(unique) >= 2:
        return unique
    if lowered in _TERM_ALTERNATIVES:
        return list(_TERM_ALTERNATIVES[lowered])
    return [w for w in _GENERIC_FALLBACK if w != lowered][:MAX_FALLBACK_WORDS]


class SynonymClient:
    """Client for the external word-suggestion endpoint.

    The endpoint takes ``{"word": ...}`` and answers ``{"synonyms": [...]}``.
    Any failure falls back to ``generate_fallback_synonyms``.
    """

    def __init__(self, url: str = SYNONYM_API_URL, *, timeout: float = SYNONYM_TIMEOUT) -> None:
        self.url = url
        self.timeout = timeout
        self.sess = requests.Session()

    def _request(self, word: str) -> list[str]:
        r = self.sess.post(self.url, json={"word": word}, timeout=self.timeout)
        r.raise_for_status()
        data: Any = r.json()
        if not isinstance(data, dict):
            return []
        return [str(s) for s in data.get("synonyms") or []]

    def fetch(self, word: str, *, context: str = "") -> list[str]:
        """Return candidate synonyms for word.

        Args:
            word: The word to look up.
            context: Document text used to derive fallback suggestions.
        """
        try:
            synonyms = self._request(word)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Synonym lookup for {!r} failed, using fallback: {}", word, e)
            return generate_fallback_synonyms(word, context)
        if not synonyms:
            logger.debug("Synonym service returned nothing for {!r}", word)
            return generate_fallback_synonyms(word, context)
        return synonyms
