# pedianote/agents/tools_agent/prompts.py

from typing import Optional

from ...results.models import TABLE_PLACEHOLDER

QUESTION_SYSTEM_PROMPT = (
    "Você é um especialista sênior em Pediatria no Brasil. Responda perguntas clínicas "
    "de forma objetiva, citando condutas e doses quando pertinente, em português do Brasil."
)

DEFAULT_IMAGE_ANALYSIS_PROMPT = "Analise esta imagem médica no contexto pediátrico."

SPOKEN_TABLE_NOTICE = "Tabela de exames disponíveis no prontuário."


def build_speech_text(text: str, max_chars: int) -> str:
    """Replace the table placeholder with a spoken notice and truncate."""
    spoken = text.replace(TABLE_PLACEHOLDER, SPOKEN_TABLE_NOTICE, 1)
    return spoken[:max_chars]


def build_image_analysis_prompt(prompt: Optional[str]) -> str:
    if prompt and prompt.strip():
        return prompt
    return DEFAULT_IMAGE_ANALYSIS_PROMPT
