"""
TextSheets Document Accessor - read-only view over a document's text.
Handles substring extraction, line lookup and position mapping across edits.
"""

from bisect import bisect_right
from typing import List, NamedTuple, Optional, Sequence, Tuple


class SpanRangeError(IndexError):
    """Raised when a span or offset falls outside the document"""
    pass


class Line(NamedTuple):
    number: int  # 1-based
    from_: int
    to: int  # excludes the terminating newline


class TextDocument:
    """
    Read-only accessor over one document's text.

    The host hands the core a fresh accessor after every edit, so the line
    index built here never outlives the text it was computed from.
    """

    def __init__(self, id: str, text: str = "", name: Optional[str] = None):
        self.id = id
        self.name = name if name is not None else id
        self._text = text
        self._line_starts: Optional[List[int]] = None

    def __repr__(self):
        return f"TextDocument(id={self.id!r}, name={self.name!r}, length={len(self._text)})"

    @property
    def length(self) -> int:
        return len(self._text)

    def full_text(self) -> str:
        return self._text

    def substring(self, from_: int, to: Optional[int] = None) -> str:
        """
        Extract the text between two offsets.

        Args:
            from_ (int): Start offset
            to (int): End offset, defaults to the end of the document

        Returns:
            str: The text in [from_, to)

        Raises:
            SpanRangeError: If the range is reversed or outside the document
        """
        if to is None:
            to = len(self._text)
        if from_ < 0 or to > len(self._text) or from_ > to:
            raise SpanRangeError(
                f"Invalid range [{from_}, {to}] for document of length {len(self._text)}"
            )
        return self._text[from_:to]

    def line_at(self, offset: int) -> Line:
        """Return the line containing the given offset"""
        if offset < 0 or offset > len(self._text):
            raise SpanRangeError(
                f"Invalid offset {offset} for document of length {len(self._text)}"
            )
        starts = self._get_line_starts()
        index = bisect_right(starts, offset) - 1
        return self._line_from_index(index)

    def lines(self) -> List[Line]:
        """Return every line of the document, in order"""
        return [self._line_from_index(i) for i in range(len(self._get_line_starts()))]

    def _get_line_starts(self) -> List[int]:
        if self._line_starts is None:
            starts = [0]
            for i, ch in enumerate(self._text):
                if ch == "\n":
                    starts.append(i + 1)
            self._line_starts = starts
        return self._line_starts

    def _line_from_index(self, index: int) -> Line:
        starts = self._get_line_starts()
        start = starts[index]
        if index + 1 < len(starts):
            end = starts[index + 1] - 1
        else:
            end = len(self._text)
        return Line(number=index + 1, from_=start, to=end)


# =============================================================================
# POSITION MAPPING
# =============================================================================

class Change(NamedTuple):
    from_: int
    to: int
    insert: str = ""


class ChangeSet:
    """
    Describes one edit as ordered, non-overlapping replacements expressed in
    the coordinates of the text before the edit.

    Instances are callable so they can be passed wherever a change mapper
    (old offset -> new offset) is expected.
    """

    def __init__(self, changes: Sequence[Tuple[int, int, str]] = ()):
        ordered = sorted((Change(*change) for change in changes), key=lambda c: c.from_)
        previous_end = None
        for change in ordered:
            if change.from_ < 0 or change.from_ > change.to:
                raise ValueError(f"Invalid change range [{change.from_}, {change.to}]")
            if previous_end is not None and change.from_ < previous_end:
                raise ValueError("Changes in a ChangeSet must not overlap")
            previous_end = change.to
        self.changes: List[Change] = ordered

    @classmethod
    def insert(cls, pos: int, text: str) -> "ChangeSet":
        return cls([(pos, pos, text)])

    @classmethod
    def delete(cls, from_: int, to: int) -> "ChangeSet":
        return cls([(from_, to, "")])

    @classmethod
    def replace(cls, from_: int, to: int, text: str) -> "ChangeSet":
        return cls([(from_, to, text)])

    def __call__(self, pos: int) -> int:
        return self.map_pos(pos)

    def map_pos(self, pos: int, assoc: int = -1) -> int:
        """
        Map an offset in the old text to the corresponding offset in the new text.

        A position inside a replaced range is moved to the start of the
        replacement (assoc < 0) or to its end (assoc > 0). A position that
        touches a pure insertion stays before it unless assoc > 0.
        """
        delta = 0
        for change in self.changes:
            if pos < change.from_:
                break
            inserted = len(change.insert)
            if pos > change.to:
                delta += inserted - (change.to - change.from_)
                continue
            if pos == change.to and change.to > change.from_:
                return change.from_ + delta + inserted
            return change.from_ + delta + (inserted if assoc > 0 else 0)
        return pos + delta

    def apply(self, text: str) -> str:
        """Apply the changes to the old text and return the new text"""
        parts = []
        cursor = 0
        for change in self.changes:
            if change.to > len(text):
                raise SpanRangeError(
                    f"Change [{change.from_}, {change.to}] exceeds text of length {len(text)}"
                )
            parts.append(text[cursor:change.from_])
            parts.append(change.insert)
            cursor = change.to
        parts.append(text[cursor:])
        return "".join(parts)
