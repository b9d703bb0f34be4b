"""
Text normalization for extracted document text.

Whitespace canonicalization only: line endings, horizontal whitespace,
blank-line runs and page-break artifacts. No characters that carry
meaning are dropped.
"""
import re

import structlog

logger = structlog.get_logger(__name__)

# Non-breaking and other exotic spaces produced by PDF/OCR engines
_EXOTIC_SPACES = re.compile(r"[\u00a0\u2000-\u200b\u202f\u205f\u3000]")
_HORIZONTAL_WS = re.compile(r"[ \t\f\v]+")
_TAB_RUN = re.compile(r"[ ]*\t[ \t]*")
_SPACE_COLUMN_GAP = re.compile(r" {2,}")
_BLANK_RUN = re.compile(r"\n{3,}")

# "Page 3", "Page 3 of 10", "- 3 -", "3 / 10" on a line of their own
PAGE_ARTIFACT_PATTERNS = [
    re.compile(r"^\s*page\s+\d+(\s*(of|/)\s*\d+)?\s*$", re.IGNORECASE),
    re.compile(r"^\s*[-\u2013\u2014]+\s*\d+\s*[-\u2013\u2014]+\s*$"),
    re.compile(r"^\s*\d+\s*/\s*\d+\s*$"),
]


def unify_line_endings(text: str) -> str:
    """Convert \\r\\n and bare \\r to \\n."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def is_page_artifact(line: str) -> bool:
    """Check whether a line is a page-break artifact (page number, form feed)."""
    return any(pattern.match(line) for pattern in PAGE_ARTIFACT_PATTERNS)


def _strip_page_breaks(text: str) -> str:
    # A form feed marks a page boundary; keep the boundary as a line break
    text = text.replace("\f", "\n")
    return "\n".join(line for line in text.split("\n") if not is_page_artifact(line))


def normalize_text(text: str, preserve_columns: bool = False) -> str:
    """
    Canonicalize whitespace in raw extracted text.

    Args:
        text: Raw text from PDF extraction, OCR or a delimited export.
        preserve_columns: Keep column gaps for the row tokenizer. Tabs are
            kept as a single tab and runs of two or more spaces become exactly
            two spaces; single spaces are untouched.

    Returns:
        Normalized text: unified line endings, collapsed horizontal
        whitespace, at most one blank line between blocks, trimmed.
    """
    if not text:
        return ""

    text = unify_line_endings(text)
    text = _strip_page_breaks(text)
    text = _EXOTIC_SPACES.sub(" ", text)

    lines = []
    for line in text.split("\n"):
        if preserve_columns:
            line = line.replace("\v", " ")
            line = _TAB_RUN.sub("\t", line)
            line = _SPACE_COLUMN_GAP.sub("  ", line)
        else:
            line = _HORIZONTAL_WS.sub(" ", line)
        lines.append(line.strip())

    normalized = _BLANK_RUN.sub("\n\n", "\n".join(lines)).strip()

    logger.debug(
        "Text normalized",
        input_chars=len(text),
        output_chars=len(normalized),
        preserve_columns=preserve_columns,
    )
    return normalized


def normalize_lines(text: str) -> list[str]:
    """Normalize text keeping column gaps and split it into lines."""
    normalized = normalize_text(text, preserve_columns=True)
    return normalized.split("\n") if normalized else []


def collapse_whitespace(value: str) -> str:
    """Collapse all whitespace in a single cell/label to single spaces."""
    return _HORIZONTAL_WS.sub(" ", _EXOTIC_SPACES.sub(" ", value or "")).strip()
