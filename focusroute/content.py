#!/usr/bin/env python3
"""
focusroute.content — Content Resolver

Turns a fragment id (a path relative to the docs root) into text:
full content for HOT blocks, a bounded header for WARM blocks.
Missing, unreadable or out-of-root ids raise ContentNotFound.
"""

from pathlib import Path

from focusroute.errors import ContentNotFound

WARM_HEADER_LINES = 25
TRUNCATION_MARKER = "\n\n... [WARM: Content truncated, mention to expand] ..."


class ContentResolver:
    """Reads fragment text from a docs root."""

    def __init__(self, docs_root: Path):
        self.docs_root = Path(docs_root).resolve()

    def _path_for(self, fragment_id: str) -> Path:
        full_path = (self.docs_root / fragment_id).resolve()
        if not full_path.is_relative_to(self.docs_root):
            raise ContentNotFound(fragment_id, "outside docs root")
        if not full_path.is_file():
            raise ContentNotFound(fragment_id)
        return full_path

    def full_content(self, fragment_id: str) -> str:
        """Entire fragment text for HOT injection."""
        path = self._path_for(fragment_id)
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ContentNotFound(fragment_id, str(e)) from e

    def header(self, fragment_id: str, max_lines: int = WARM_HEADER_LINES) -> str:
        """First max_lines lines, with a marker when anything was cut."""
        lines = self.full_content(fragment_id).split('\n')
        header = '\n'.join(lines[:max_lines])
        if len(lines) > max_lines:
            header += TRUNCATION_MARKER
        return header
