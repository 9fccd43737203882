"""Template flattening: .docx and plain-text templates to line-oriented text.

Body paragraphs become lines and each table row becomes one line with cells joined by
`` | ``. Header and footer content is ignored.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from zipfile import BadZipFile

from docx import Document
from docx.document import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph

from coafill.templates.models import Template
from coafill.utils.errors import TemplateError

CELL_SEPARATOR = " | "
TEXT_SUFFIXES = frozenset({".txt", ".md", ".html", ".htm"})


def flatten_docx(document: DocxDocument) -> str:
    """Flatten body paragraphs and tables in document order."""

    return "\n".join(_iter_lines(document))


def load_template(path: Path, template_id: str | None = None) -> Template:
    """Read a template file into flattened text."""

    suffix = path.suffix.lower()
    if suffix == ".docx":
        try:
            document = Document(str(path))
        except (PackageNotFoundError, BadZipFile, KeyError, ValueError) as exc:
            raise TemplateError(f"Cannot open docx template: {path}", path=path) from exc
        content = flatten_docx(document)
    elif suffix in TEXT_SUFFIXES:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise TemplateError(f"Cannot read template: {path}", path=path) from exc
    else:
        raise TemplateError(f"Unsupported template format '{suffix or path.name}'", path=path)

    return Template(template_id=template_id or path.stem, content=content, name=path.name)


def _iter_lines(document: DocxDocument) -> Iterator[str]:
    body = document.element.body
    for child in body.iterchildren():
        if child.tag == qn("w:p"):
            yield Paragraph(child, document).text
        elif child.tag == qn("w:tbl"):
            yield from _iter_table_rows(Table(child, document))


def _iter_table_rows(table: Table) -> Iterator[str]:
    for row in table.rows:
        cells: list[str] = []
        seen: set[int] = set()
        for cell in row.cells:
            # Merged cells repeat the same underlying element.
            if id(cell._tc) in seen:
                continue
            seen.add(id(cell._tc))
            cells.append(" ".join(p.text.strip() for p in cell.paragraphs if p.text.strip()))
        yield CELL_SEPARATOR.join(cells)
