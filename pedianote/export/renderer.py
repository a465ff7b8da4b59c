"""Export renderer: lab table substitution, export documents and clipboard text."""

import html
from enum import Enum
from typing import List, Optional, Sequence
from urllib.parse import quote
from pydantic import BaseModel

from ..results.models import TABLE_PLACEHOLDER, AnalysisResult, IcdCode, LabItem
from .markup import to_display_markup

NO_EXAMS_MARKER = "*Nenhum exame registrado.*"
LAB_TABLE_HEADER = ("Exame", "Resultado", "Unidade", "Ref. Pediátrica", "Status")
MISSING_PLACEHOLDER_WARNING = f"Aviso: Tag {TABLE_PLACEHOLDER} removida."

WORD_MIME_TYPE = "application/vnd.ms-word"

DOCUMENT_STYLE = """
    body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; padding: 40px; line-height: 1.6; color: #333; }
    h1 { color: #be185d; font-size: 24px; margin-bottom: 20px; border-bottom: 2px solid #fbcfe8; padding-bottom: 10px; margin-top: 30px; }
    h2 { color: #db2777; font-size: 20px; margin-top: 20px; margin-bottom: 10px; }
    li { margin-bottom: 5px; }
    strong { color: #000; }
    table { width: 100%; border-collapse: collapse; margin: 15px 0; font-size: 12px; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
    th { background-color: #f2f2f2; }
    @media print {
        @page { margin: 2cm; }
        body { -webkit-print-color-adjust: exact; }
    }
"""


class ExportSection(str, Enum):
    FULL = "FULL"
    NOTE = "NOTE"
    LABS = "LABS"
    ICD = "ICD"
    INSTRUCTIONS = "INSTRUCTIONS"


class ExportFormat(str, Enum):
    WORD = "word"
    PDF = "pdf"
    PRINT = "print"


class ExportDocument(BaseModel):
    title: str
    body_markup: str


def render_lab_table(items: Sequence[LabItem]) -> str:
    """Render lab rows as a Markdown table, or the no-exams marker."""
    if not items:
        return NO_EXAMS_MARKER

    lines = [
        "| " + " | ".join(LAB_TABLE_HEADER) + " |",
        "|" + "---|" * len(LAB_TABLE_HEADER),
    ]
    for item in items:
        lines.append(f"| {item.name} | {item.result} | {item.unit} | {item.reference} | {item.status} |")
    return "\n".join(lines)


def render_full_note(note: str, items: Sequence[LabItem]) -> str:
    """Substitute the first placeholder with the lab table.

    A note without the placeholder is returned unchanged; callers surface
    ``missing_placeholder_warning`` instead of appending the table.
    """
    if TABLE_PLACEHOLDER not in note:
        return note
    return note.replace(TABLE_PLACEHOLDER, render_lab_table(items), 1)


def missing_placeholder_warning(result: Optional[AnalysisResult]) -> Optional[str]:
    if result is None or not result.lab_results:
        return None
    if TABLE_PLACEHOLDER in result.clinical_note:
        return None
    return MISSING_PLACEHOLDER_WARNING


def render_icd_list(codes: Sequence[IcdCode]) -> str:
    items = "".join(
        f"<li><strong>{html.escape(code.code)}</strong>: {html.escape(code.description)}</li>"
        for code in codes
    )
    return f"<ul>{items}</ul>"


def build_export_document(section: ExportSection, result: AnalysisResult) -> ExportDocument:
    """Build the title and body markup for one export section."""
    full_note = render_full_note(result.clinical_note, result.lab_results)

    if section is ExportSection.FULL:
        body = "".join([
            "<h1>Nota Clínica</h1>",
            to_display_markup(full_note),
            "<h1>Códigos CID-10</h1>",
            render_icd_list(result.icd10),
            "<h1>Instruções para o Paciente</h1>",
            to_display_markup(result.patient_instructions),
        ])
        return ExportDocument(title="Prontuário Completo", body_markup=body)

    if section is ExportSection.NOTE:
        body = "<h1>Nota Clínica</h1>" + to_display_markup(full_note)
        return ExportDocument(title="Nota Clínica", body_markup=body)

    if section is ExportSection.LABS:
        body = "<h1>Exames Laboratoriais</h1>" + to_display_markup(render_lab_table(result.lab_results))
        return ExportDocument(title="Resultados de Exames", body_markup=body)

    if section is ExportSection.ICD:
        body = "<h1>Códigos CID-10</h1>" + render_icd_list(result.icd10)
        return ExportDocument(title="Relatório de Codificação (CID-10)", body_markup=body)

    if section is ExportSection.INSTRUCTIONS:
        body = "<h1>Instruções de Cuidado</h1>" + to_display_markup(result.patient_instructions)
        return ExportDocument(title="Instruções ao Paciente", body_markup=body)

    raise ValueError(f"Unknown export section: {section}")


def wrap_html(document: ExportDocument, print_delay_ms: Optional[int] = None) -> str:
    """Wrap a document into a self-contained HTML page.

    With ``print_delay_ms`` the page opens the print dialog once it has
    loaded and the delay has passed, so layout settles before printing.
    """
    script = ""
    if print_delay_ms is not None:
        script = (
            "<script>window.addEventListener('load', function () "
            f"{{ window.focus(); setTimeout(function () {{ window.print(); }}, {int(print_delay_ms)}); }});"
            "</script>"
        )

    return (
        "<html xmlns:o='urn:schemas-microsoft-com:office:office' "
        "xmlns:w='urn:schemas-microsoft-com:office:word' "
        "xmlns='http://www.w3.org/TR/REC-html40'>"
        "<head>"
        "<meta charset='utf-8'>"
        f"<title>{html.escape(document.title)}</title>"
        f"<style>{DOCUMENT_STYLE}</style>"
        "</head>"
        f"<body>{document.body_markup}{script}</body>"
        "</html>"
    )


def export_filename(document: ExportDocument) -> str:
    return document.title.lower().replace(" ", "_") + ".doc"


def content_disposition(filename: str) -> str:
    """Attachment header that survives non-ASCII titles."""
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def clipboard_text(section: ExportSection, result: AnalysisResult) -> str:
    """Plain text copied for a section; the note gets its table substituted."""
    if section is ExportSection.NOTE:
        return render_full_note(result.clinical_note, result.lab_results)
    if section is ExportSection.LABS:
        return render_lab_table(result.lab_results)
    if section is ExportSection.ICD:
        return "\n".join(f"{code.code}: {code.description}" for code in result.icd10)
    if section is ExportSection.INSTRUCTIONS:
        return result.patient_instructions
    if section is ExportSection.FULL:
        parts: List[str] = [
            clipboard_text(ExportSection.NOTE, result),
            clipboard_text(ExportSection.ICD, result),
            clipboard_text(ExportSection.INSTRUCTIONS, result),
        ]
        return "\n\n".join(parts)
    raise ValueError(f"Unknown export section: {section}")
