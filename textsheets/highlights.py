"""
Span geometry and highlight helpers shared by the engine and its host.
"""

from typing import Callable, Iterable, List, Optional

from .document import TextDocument
from .models import Highlight, Span


def is_degenerate(span: Span) -> bool:
    return span[0] == span[1]


def do_spans_overlap(a: Span, b: Span) -> bool:
    """True if the spans share at least one position (touching counts)"""
    return a[0] <= b[1] and b[0] <= a[1]


def span_union(spans: Iterable[Span]) -> Optional[Span]:
    """Smallest span covering all given spans, or None if there are none"""
    from_ = to = None
    for value_from, value_to in spans:
        if from_ is None or value_from < from_:
            from_ = value_from
        if to is None or value_to > to:
            to = value_to
    if from_ is None:
        return None
    return (from_, to)


def sort_highlights(highlights: Iterable[Highlight]) -> List[Highlight]:
    """Sort by span start; ties keep their input order"""
    return sorted(highlights, key=lambda highlight: highlight.span[0])


def get_text_for_highlight(document: TextDocument, highlight: Highlight) -> str:
    return document.substring(highlight.span[0], highlight.span[1])


def hover_highlights(highlights: Iterable[Highlight], selection: Span) -> List[Highlight]:
    """Highlights touched by the editor selection, for hover decorations"""
    return [h for h in highlights if do_spans_overlap(h.span, selection)]


def remap_highlights(
    highlights: Iterable[Highlight],
    change_mapper: Callable[[int], int],
) -> List[Highlight]:
    """
    Move highlights across a text edit without re-running the pipeline.

    Both span endpoints are mapped independently; highlights whose span
    collapses to zero width are dropped. This is an approximation for the
    interval between an edit and the next full evaluation.

    Args:
        highlights: Highlights computed against the text before the edit
        change_mapper: Maps an old offset to its new offset (a ChangeSet works)

    Returns:
        list: The surviving highlights with remapped spans
    """
    remapped = []
    for highlight in highlights:
        from_ = change_mapper(highlight.span[0])
        to = change_mapper(highlight.span[1])
        if from_ == to:
            continue
        if (from_, to) == tuple(highlight.span):
            remapped.append(highlight)
        else:
            remapped.append(highlight.model_copy(update={"span": (from_, to)}))
    return remapped
