"""Plain substring occurrence indexer with sentence/paragraph expansion."""

from loguru import logger

from qda_workbench.config import INDEX_SAFETY_LIMIT
from qda_workbench.models.project import Expansion, Span

_SENTENCE_END = "."
_PARAGRAPH_BREAK = "\n\n"


def _fold(text: str) -> tuple[str, list[int]]:
    """Lower-case text one character at a time.

    Returns:
        Tuple of (lowered text, source index of every lowered character
        followed by ``len(text)``).
    """
    pieces = [ch.lower() for ch in text]
    owners = [i for i, piece in enumerate(pieces) for _ in piece]
    owners.append(len(text))
    return "".join(pieces), owners


def expand_span(content: str, start: int, end: int, expansion: Expansion) -> Span:
    """Grow a raw match span to its enclosing sentence or paragraph.

    Args:
        content: Full file content.
        start: Raw match start.
        end: Raw match end (exclusive).
        expansion: Which enclosing unit to grow to.

    Returns:
        The expanded span. NONE returns the span unchanged.
    """
    if expansion == Expansion.NONE:
        return Span(start, end)

    if expansion == Expansion.SENTENCE:
        prev = content.rfind(_SENTENCE_END, 0, start)
        new_start = prev + 1 if prev != -1 else 0
        nxt = content.find(_SENTENCE_END, end)
        new_end = nxt if nxt != -1 else len(content)
        if new_start < new_end and content[new_start] == " ":
            new_start += 1
        if new_start < new_end and content[new_end - 1] == " ":
            new_end -= 1
        return Span(new_start, new_end)

    prev = content.rfind(_PARAGRAPH_BREAK, 0, start)
    new_start = prev + len(_PARAGRAPH_BREAK) if prev != -1 else 0
    nxt = content.find(_PARAGRAPH_BREAK, end)
    new_end = nxt if nxt != -1 else len(content)
    return Span(new_start, max(new_start, new_end))


def index(
    term: str,
    content: str,
    expansion: Expansion = Expansion.NONE,
    *,
    limit: int = INDEX_SAFETY_LIMIT,
) -> list[Span]:
    """Find every case-insensitive occurrence of term in content.

    Results are in position order and are not deduplicated; two raw matches
    in the same sentence yield two identical spans under SENTENCE expansion.
    At most ``limit`` matches are returned, extra ones are dropped silently.

    Args:
        term: Non-empty search term.
        content: Text to scan.
        expansion: Expansion policy applied to each raw match.
        limit: Safety cap on the number of matches.

    Returns:
        List of spans, possibly empty.
    """
    if not term:
        msg = "Cannot index an empty term"
        raise ValueError(msg)

    needle, _ = _fold(term)
    haystack, owners = _fold(content)
    spans: list[Span] = []
    pos = haystack.find(needle)
    while pos != -1:
        end = pos + len(needle)
        # Skip hits that start or end inside the lowering of a single character.
        if (pos == 0 or owners[pos - 1] != owners[pos]) and owners[end - 1] != owners[end]:
            if len(spans) >= limit:
                logger.debug("Index of {!r} truncated at {} matches", term, limit)
                break
            spans.append(expand_span(content, owners[pos], owners[end], expansion))
        pos = haystack.find(needle, pos + 1)
    return spans
