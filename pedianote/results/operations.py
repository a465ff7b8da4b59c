"""Pure transformations of the Result Model.

Every function returns a new AnalysisResult and leaves its inputs alone,
so callers can swap the encounter's result in a single assignment.
"""

from typing import Optional, Sequence

from .models import (
    TABLE_PLACEHOLDER,
    AnalysisResult,
    IcdCode,
    LabField,
    LabItem,
    ResultField,
)

PLACEHOLDER_NOTE = (
    "# Nota em construção\n"
    "Os exames foram processados. Clique em 'Gerar' para a nota completa.\n\n"
    f"{TABLE_PLACEHOLDER}"
)
PLACEHOLDER_INSTRUCTIONS = "Instruções serão geradas com a nota completa."


class ResultIndexError(IndexError):
    """Raised when a row index does not exist in the targeted sequence."""

    def __init__(self, sequence: str, index: int, size: int):
        self.sequence = sequence
        self.index = index
        self.size = size
        super().__init__(f"{sequence} index {index} out of range (size {size})")


def _check_index(sequence: str, index: int, size: int) -> None:
    # Negative indexes would silently address rows from the end.
    if index < 0 or index >= size:
        raise ResultIndexError(sequence, index, size)


def apply_generation(existing: Optional[AnalysisResult], fresh: AnalysisResult) -> AnalysisResult:
    """Merge a full generation response into the current result.

    Lab rows already on the encounter come first, followed by the rows of
    the fresh response. Everything else is taken from the fresh response.
    """
    if existing is None or not existing.lab_results:
        return fresh
    return fresh.model_copy(
        update={"lab_results": [*existing.lab_results, *fresh.lab_results]}
    )


def apply_lab_extraction(
    existing: Optional[AnalysisResult],
    new_items: Sequence[LabItem]
) -> AnalysisResult:
    """Add extracted lab rows, creating a placeholder result when needed."""
    if existing is None:
        return AnalysisResult(
            clinical_note=PLACEHOLDER_NOTE,
            lab_results=list(new_items),
            icd10=[],
            patient_instructions=PLACEHOLDER_INSTRUCTIONS
        )
    return existing.model_copy(
        update={"lab_results": [*existing.lab_results, *new_items]}
    )


def update_field(result: AnalysisResult, field: ResultField, value: str) -> AnalysisResult:
    if field is ResultField.CLINICAL_NOTE:
        return result.model_copy(update={"clinical_note": value})
    if field is ResultField.PATIENT_INSTRUCTIONS:
        return result.model_copy(update={"patient_instructions": value})
    raise ValueError(f"Unsupported field: {field}")


def update_lab_cell(result: AnalysisResult, index: int, field: LabField, value: str) -> AnalysisResult:
    _check_index("labResults", index, len(result.lab_results))
    labs = list(result.lab_results)
    labs[index] = labs[index].model_copy(update={field.value: value})
    return result.model_copy(update={"lab_results": labs})


def delete_lab(result: AnalysisResult, index: int) -> AnalysisResult:
    _check_index("labResults", index, len(result.lab_results))
    labs = [item for i, item in enumerate(result.lab_results) if i != index]
    return result.model_copy(update={"lab_results": labs})


def add_lab(result: AnalysisResult) -> AnalysisResult:
    empty = LabItem(name="", result="", unit="", reference="", status="")
    return result.model_copy(update={"lab_results": [*result.lab_results, empty]})


def add_icd(result: AnalysisResult, code: str, description: str) -> AnalysisResult:
    """Append an ICD code; blank code or description leaves the result as is."""
    code = code.strip()
    description = description.strip()
    if not code or not description:
        return result
    item = IcdCode(code=code.upper(), description=description)
    return result.model_copy(update={"icd10": [*result.icd10, item]})


def remove_icd(result: AnalysisResult, index: int) -> AnalysisResult:
    _check_index("icd10", index, len(result.icd10))
    codes = [item for i, item in enumerate(result.icd10) if i != index]
    return result.model_copy(update={"icd10": codes})
