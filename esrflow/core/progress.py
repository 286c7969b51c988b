"""
Progress inference for upscaler runs.

Two strategies normalize progress to [0, 1]:
- PercentProgress: single image, parsed from stderr lines such as ``53.23%``.
- FileCountProgress: directory input, one step per output file created.

Lines that are not percentages are kept in a DiagnosticBuffer so a failed run
can report the tail of the executable's output.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from pathlib import Path
from typing import Iterable, Optional, Set

logger = logging.getLogger(__name__)

DIAGNOSTIC_CAPACITY = 16

_PERCENT_RE = re.compile(r"^\d+(?:\.\d+)?%$")


def parse_percent_line(line: str) -> Optional[float]:
    """Return the fraction for a percentage line, or None for any other text.

    Malformed or signed percentages (``abc%``, ``1.2.3%``, ``-5.00%``) are treated
    as plain text. Values above 100% are capped at 1.0.
    """
    text = line.strip()
    if not text.endswith("%"):
        return None
    if not _PERCENT_RE.match(text):
        logger.debug("Ignoring unparsable progress line: %r", text)
        return None
    return min(1.0, float(text[:-1]) * 0.01)


class DiagnosticBuffer:
    """Bounded buffer of the most recent non-progress lines (oldest evicted)."""

    def __init__(self, capacity: int = DIAGNOSTIC_CAPACITY):
        self._lines: deque[str] = deque(maxlen=capacity)

    def append(self, line: str) -> None:
        self._lines.append(line)

    def __len__(self) -> int:
        return len(self._lines)

    def text(self) -> str:
        """Buffered lines joined oldest first."""
        return "\n".join(self._lines)


class PercentProgress:
    """Single-input strategy: the executable reports cumulative progress."""

    def __init__(self):
        self.last: Optional[float] = None

    def feed(self, line: str) -> Optional[float]:
        value = parse_percent_line(line)
        if value is not None:
            self.last = value
        return value


class FileCountProgress:
    """Directory strategy: each new output file adds 1/total.

    Files that already existed when the run started, and files reported more than
    once, are not counted. Must only be fed from one thread.
    """

    def __init__(self, total: int, existing: Iterable[str] = ()):
        self.total = total
        self.created = 0
        self._seen: Set[str] = {Path(p).name for p in existing}

    def feed(self, path: str) -> Optional[float]:
        name = Path(path).name
        if name in self._seen or self.total <= 0:
            return None
        self._seen.add(name)
        self.created += 1
        return min(1.0, self.created / self.total)


def count_input_files(directory: Path) -> int:
    """Count top-level files in the input directory (not recursive)."""
    return sum(1 for p in Path(directory).iterdir() if p.is_file())
