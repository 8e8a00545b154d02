"""Keyword classification of fetched status documents.

Extraction never raises and never returns ERROR -- a missing region or an
unparseable page degrades to the no-mention verdict or OPEN. ERROR is
reserved for fetch failures.
"""

import logging
import re
from typing import Callable, Dict, Iterable, List, Optional

from bs4 import BeautifulSoup

from .sources import (
    DEFAULT_CONTEXT_WINDOW,
    ExtractionStrategy,
    SourceDescriptor,
    Verdict,
)

logger = logging.getLogger(__name__)

# Keyword families, checked in this order (closure outranks delay)
CLOSURE_KEYWORDS = ("closed", "closure")
DELAY_KEYWORDS = ("delay", "delayed", "two-hour", "2-hour")

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Case-fold and collapse whitespace so keywords match across line breaks."""
    return _WHITESPACE.sub(" ", text or "").casefold().strip()


def classify_keywords(scope: str) -> Verdict:
    """Apply the keyword families to already-normalized text."""
    if any(k in scope for k in CLOSURE_KEYWORDS):
        return Verdict.CLOSED
    if any(k in scope for k in DELAY_KEYWORDS):
        return Verdict.DELAYED
    return Verdict.OPEN


def _mention_windows(text: str, aliases: List[str], window: int) -> Iterable[str]:
    for alias in aliases:
        start = text.find(alias)
        while start != -1:
            end = start + len(alias)
            yield text[end:end + window]
            start = text.find(alias, end)


def classify(
    text: str,
    aliases: Iterable[str],
    window: Optional[int] = None,
    require_mention: bool = True,
    no_mention: Verdict = Verdict.OPEN,
) -> Verdict:
    """Classify document text for one entity.

    Args:
        text: Raw document text (any case)
        aliases: Equivalent names of the entity
        window: Characters inspected after each alias occurrence, or None to
            inspect the whole text once any alias appears
        require_mention: If False, keywords count without an alias match
        no_mention: Verdict when no alias appears in the text

    Returns:
        CLOSED, DELAYED or OPEN (or no_mention)
    """
    normalized = normalize(text)
    names = [normalize(a) for a in aliases if a and a.strip()]
    mentioned = any(n in normalized for n in names)

    if not require_mention:
        if window is None or not mentioned:
            return classify_keywords(normalized)
    elif not mentioned:
        return no_mention

    if window is None:
        return classify_keywords(normalized)

    verdicts = [classify_keywords(scope) for scope in _mention_windows(normalized, names, window)]
    if Verdict.CLOSED in verdicts:
        return Verdict.CLOSED
    if Verdict.DELAYED in verdicts:
        return Verdict.DELAYED
    return Verdict.OPEN


def document_text(soup: BeautifulSoup) -> str:
    """Visible text of the page body (whole document if there is no body)."""
    root = soup.body or soup
    return root.get_text(" ")


def select_text(soup: BeautifulSoup, selector: str) -> str:
    """Joined text of every element matching a CSS selector."""
    return " ".join(el.get_text(" ") for el in soup.select(selector))


def parse(document: str) -> BeautifulSoup:
    return BeautifulSoup(document or "", "lxml")


# --- Strategies: (document, descriptor, aliases, no_mention) -> Verdict ---

def extract_document(document: str, source: SourceDescriptor, aliases: List[str],
                     no_mention: Verdict = Verdict.OPEN) -> Verdict:
    text = document_text(parse(document))
    return classify(text, aliases, source.context_window, source.require_mention, no_mention)


def extract_windowed(document: str, source: SourceDescriptor, aliases: List[str],
                     no_mention: Verdict = Verdict.OPEN) -> Verdict:
    text = document_text(parse(document))
    window = source.context_window or DEFAULT_CONTEXT_WINDOW
    return classify(text, aliases, window, source.require_mention, no_mention)


def extract_selector(document: str, source: SourceDescriptor, aliases: List[str],
                     no_mention: Verdict = Verdict.OPEN) -> Verdict:
    soup = parse(document)
    region = select_text(soup, source.selector) if source.selector else ""
    if region.strip():
        return classify(region, aliases, source.context_window, source.require_mention, no_mention)

    # Region missing: the whole page only counts where it names the entity
    logger.debug(f"{source.name}: no match for {source.selector!r}, scanning whole document")
    window = source.context_window or DEFAULT_CONTEXT_WINDOW
    return classify(document_text(soup), aliases, window, True, no_mention)


EXTRACTORS: Dict[ExtractionStrategy, Callable[..., Verdict]] = {
    ExtractionStrategy.SELECTOR: extract_selector,
    ExtractionStrategy.WINDOWED: extract_windowed,
    ExtractionStrategy.DOCUMENT: extract_document,
}


def extract(document: str, source: SourceDescriptor, aliases: List[str],
            no_mention: Verdict = Verdict.OPEN) -> Verdict:
    """Classify a fetched document using the source's extraction strategy."""
    return EXTRACTORS[source.strategy](document, source, aliases, no_mention)
