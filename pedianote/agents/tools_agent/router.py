"""Router for the clinician's auxiliary AI tools."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from loguru import logger

from ...core.dependencies import get_tools_agent_service
from ...core.exceptions import get_error_responses
from .models import (
    ImageAnalysisInput,
    ImageEditInput,
    ImageGenerationInput,
    ImageResult,
    QuestionInput,
    SpeechInput,
    TextAnswer,
)
from .service import SPEECH_SAMPLE_RATE, ToolsAgentService

router = APIRouter(
    prefix="/tools",
    tags=["Tools"],
    responses=get_error_responses()
)


@router.post(
    "/ask",
    response_model=TextAnswer,
    summary="Ask Medical Question",
    description="Free-form clinical question; deepReasoning selects the reasoning model"
)
async def ask(
    input_data: QuestionInput,
    service: ToolsAgentService = Depends(get_tools_agent_service)
) -> TextAnswer:
    text = await service.ask_medical_question(input_data.query, input_data.deep_reasoning)
    return TextAnswer(text=text)


@router.post("/images/generate", response_model=ImageResult, summary="Generate Educational Image")
async def generate_image(
    input_data: ImageGenerationInput,
    service: ToolsAgentService = Depends(get_tools_agent_service)
) -> ImageResult:
    logger.info(
        f"Image generation request ({input_data.image_size.value}, {input_data.aspect_ratio.value})"
    )
    data_url = await service.generate_educational_image(
        input_data.prompt,
        input_data.image_size,
        input_data.aspect_ratio
    )
    return ImageResult(data_url=data_url)


@router.post("/images/edit", response_model=ImageResult, summary="Edit Medical Image")
async def edit_image(
    input_data: ImageEditInput,
    service: ToolsAgentService = Depends(get_tools_agent_service)
) -> ImageResult:
    data_url = await service.edit_medical_image(input_data.image_base64, input_data.prompt)
    return ImageResult(data_url=data_url)


@router.post("/images/analyze", response_model=TextAnswer, summary="Analyze Medical Image")
async def analyze_image(
    input_data: ImageAnalysisInput,
    service: ToolsAgentService = Depends(get_tools_agent_service)
) -> TextAnswer:
    text = await service.analyze_medical_image(input_data.image_base64, input_data.prompt)
    return TextAnswer(text=text)


@router.post(
    "/speech",
    summary="Read Aloud",
    description="Raw 16-bit little-endian mono PCM at 24 kHz, without a container header",
    response_class=Response
)
async def speech(
    input_data: SpeechInput,
    service: ToolsAgentService = Depends(get_tools_agent_service)
) -> Response:
    audio = await service.generate_speech(input_data.text)
    return Response(
        content=audio,
        media_type=f"audio/L16;rate={SPEECH_SAMPLE_RATE};channels=1",
        headers={"X-Sample-Rate": str(SPEECH_SAMPLE_RATE)}
    )
