"""Markdown subset to display markup.

Handles only what generated notes use: pipe tables, ``#``..``###``
headings, ``**bold**``, ``*italic*`` and ``- `` list items. It is a line
scanner with two states (normal, in-table), not a Markdown engine: list
items are not wrapped in ``<ul>`` and emphasis does not nest.
"""

import html
import re

TABLE_ROW = re.compile(r"^\|(.+)\|$")
# At least one dash, so an all-blank row (as added by hand) is kept.
TABLE_SEPARATOR = re.compile(r"^\|[:| ]*-[-:| ]*\|$")
BOLD = re.compile(r"\*\*(.*?)\*\*")
ITALIC = re.compile(r"\*(.*?)\*")

TABLE_OPEN = '<table style="border-collapse: collapse; width: 100%; margin-bottom: 16px; font-size: 12px;">'
TABLE_CLOSE = "</table>"
CELL_STYLE = "border: 1px solid #ddd; padding: 8px;"
LINE_BREAK = "<br>"

HEADING_PREFIXES = (("### ", "h3"), ("## ", "h2"), ("# ", "h1"))
LIST_PREFIX = "- "


def render_inline(text: str) -> str:
    """Escape HTML, then apply bold before italic."""
    escaped = html.escape(text, quote=False)
    escaped = BOLD.sub(r"<strong>\1</strong>", escaped)
    return ITALIC.sub(r"<em>\1</em>", escaped)


def render_table_row(content: str) -> str:
    cells = [cell.strip() for cell in content.split("|")]
    rendered = "".join(f'<td style="{CELL_STYLE}">{render_inline(cell)}</td>' for cell in cells)
    return f"<tr>{rendered}</tr>"


def render_line(line: str) -> str:
    """Render one non-table line, without its trailing break."""
    for prefix, tag in HEADING_PREFIXES:
        if line.startswith(prefix):
            return f"<{tag}>{render_inline(line[len(prefix):])}</{tag}>"
    if line.startswith(LIST_PREFIX):
        return f"<li>{render_inline(line[len(LIST_PREFIX):])}</li>"
    return render_inline(line)


def to_display_markup(text: str) -> str:
    """Convert the Markdown subset to markup.

    Contiguous table rows share one ``<table>``; separator rows are
    dropped wherever they appear. Every other line, the last one included,
    is followed by a ``<br>``. Table rows are not.
    """
    parts = []
    in_table = False

    for line in text.split("\n"):
        candidate = line.strip()
        if TABLE_SEPARATOR.match(candidate):
            continue

        row = TABLE_ROW.match(candidate)
        if row:
            if not in_table:
                parts.append(TABLE_OPEN)
                in_table = True
            parts.append(render_table_row(row.group(1)))
            continue

        if in_table:
            parts.append(TABLE_CLOSE)
            in_table = False
        parts.append(render_line(line) + LINE_BREAK)

    if in_table:
        parts.append(TABLE_CLOSE)

    return "".join(parts)
