# pedianote/agents/note_agent/prompts.py

from pydantic import BaseModel

from ...encounters.models import ConsultationType, PatientInfo

OUTPUT_LANGUAGE = "pt-BR"

NOTE_TEMPERATURE = 0.2
LAB_TEMPERATURE = 0.1

TEMPLATE_SOAP = """
# Subjetivo
- Queixa principal e história da doença atual.
- Histórico médico pregresso relevante.

# Objetivo
## Sinais Vitais
- Sinais vitais.

## Exame Físico
- Exame físico detalhado.

## Exames Laboratoriais
- (INSERIR TABELA DE LABORATÓRIO AQUI)

# Avaliação
- Diagnósticos e hipóteses.

# Plano
- Conduta, prescrições e orientações.
"""

TEMPLATE_PEDIATRIC = """
# Informações do paciente
## Nome
- Nome do paciente.
## Idade
- Idade do paciente.
## Escola
- Série ou grau escolar, se mencionado
## Outras informações relevantes
- Escreva qualquer informação sociocultural adicional relevante sobre o paciente, incluindo histórico familiar e social.

# Histórico do paciente
## Alergias
- Descreva as alergias do paciente, se mencionadas.
## Medicações
- Liste as medicações que o paciente toma, incluindo dosagens e horários, se mencionados.
## Vacinas
- Liste as vacinas que o paciente tomou, se mencionadas
## Condições médicas
- Descreva o histórico de condições médicas e doenças do paciente, incluindo a data de início e informações sobre tratamento e controle. Liste cada condição em um novo item da lista.
## Hábitos
- Descreva os hábitos do paciente, como tabagismo, consumo de álcool e atividade física.
## Desenvolvimento
- Desenvolvimento neuropsicomotor da criança, incluindo marcos motores, de linguagem e cognitivos, se mencionados
- Inclua informações sobre o desenvolvimento puberal, se mencionado (ex: Tanner)
## Alimentação
- Informações sobre a alimentação da criança, como aleitamento materno, introdução alimentar, tipo de dieta, etc, se mencionado

# Subjetivo
## Queixa principal
- A principal queixa do paciente e/ou seus responsáveis.
## História da doença atual
- Detalhes sobre o desenvolvimento da doença atual.

# Objetivo
## Exames Laboratoriais
- (INSERIR TABELA DE LABORATÓRIO AQUI)

## Sinais vitais e dados antropométricos
- Peso, Altura, IMC, etc.

## Exame Físico
- Descrição do exame físico.

# Avaliação
## Avaliação
- Avaliação do médico sobre o caso e diagnósticos.

# Planos
## Medicações prescritas
- Medicações prescritas.
## Vacinas solicitadas
- Vacinas prescritas ou recomendadas.
## Exames solicitados
- Exames solicitados.
## Acompanhamento
- Retorno.
## Encaminhamento
- Encaminhamentos.
## Orientações
- Orientações gerais.
## Atestados
- Atestados emitidos.
"""

TEMPLATE_NEURO = """
# Informações do paciente
## Nome
- Nome.
## Idade
- Idade detalhada.
## Ocupação/Ambiente escolar
- Escola/Série.
## Outras informações relevantes
- Dinâmica familiar e social.

# Histórico do paciente
## Doenças pré-natais
- Gestação e parto.
## Doenças peri-natais
- Período neonatal.
## Alergias
- Alergias.
## Medicações
- Medicações em uso.
## Condições médicas
- Histórico de doenças.
## Cirurgias
- Procedimentos prévios.
## Desenvolvimento neuropsicomotor
- Marcos motores, fala, cognitivo, social.
## Hábitos
- Sono, tela, alimentação.

# Subjetivo
## Queixa principal
- Motivo da consulta.
## História da doença atual
- Sintomas, evolução, comportamento.

# Objetivo
## Exames Laboratoriais e Imagem
- (INSERIR TABELA DE LABORATÓRIO AQUI)
- Resultados de exames de imagem ou EEG (texto).

## Exame Físico e Neurológico
- Descrição detalhada.
## Sinais vitais e dados antropométricos
- Sinais vitais.

# Avaliação
## Avaliação
- Hipóteses diagnósticas (ex: TDAH, TEA).

# Planos
## Medicações prescritas
- Prescrições.
## Exames solicitados
- Solicitações.
## Acompanhamento
- Retorno.
## Encaminhamento
- Terapias (Fono, T.O, Psicologia).
## Orientações
- Manejo comportamental, rotina.
## Atestados
- Atestados.
"""


class PromptPayload(BaseModel):
    """Outbound request for the AI gateway."""

    prompt: str
    temperature: float


def template_for(consultation_type: ConsultationType) -> str:
    if consultation_type is ConsultationType.SOAP:
        return TEMPLATE_SOAP
    if consultation_type is ConsultationType.PEDIATRIC:
        return TEMPLATE_PEDIATRIC
    if consultation_type is ConsultationType.NEURO:
        return TEMPLATE_NEURO
    raise ValueError(f"Unknown consultation type: {consultation_type}")


def build_prompt(
    transcript: str,
    exam_text: str,
    patient_info: PatientInfo,
    consultation_type: ConsultationType,
    temperature: float = NOTE_TEMPERATURE
) -> PromptPayload:
    prompt = f"""
Você é um especialista sênior em Pediatria e documentação clínica no Brasil.
Gere a nota clínica no formato JSON conforme o schema.
TIPO DE CONSULTA: {consultation_type.value}
ESTRUTURA: {template_for(consultation_type)}
PACIENTE: {patient_info.name}, {patient_info.age}
ENTRADA LAB: {exam_text}
TRANSCRICAO: {transcript}
Idiomas: {OUTPUT_LANGUAGE}.
"""
    return PromptPayload(prompt=prompt, temperature=temperature)


def build_lab_only_prompt(
    exam_text: str,
    patient_age: str,
    temperature: float = LAB_TEMPERATURE
) -> PromptPayload:
    prompt = f"""
Extraia dados laboratoriais do seguinte texto: "{exam_text}".
Idade do paciente: {patient_age}.
Use referências pediátricas brasileiras.
Retorne um JSON com o campo "results" contendo a lista de exames estruturados.
"""
    return PromptPayload(prompt=prompt, temperature=temperature)
