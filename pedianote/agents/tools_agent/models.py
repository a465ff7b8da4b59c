# pedianote/agents/tools_agent/models.py

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ImageSize(str, Enum):
    """Requested output resolution tier."""

    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    LANDSCAPE_WIDE = "16:9"
    PORTRAIT_TALL = "9:16"
    LANDSCAPE = "4:3"
    PORTRAIT = "3:4"


class _ToolModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionInput(_ToolModel):
    query: str = Field(..., min_length=1, max_length=20000)
    deep_reasoning: bool = Field(
        default=False,
        description="Use the slower reasoning model for a more careful answer"
    )


class TextAnswer(_ToolModel):
    text: str


class ImageGenerationInput(_ToolModel):
    prompt: str = Field(..., min_length=1, max_length=4000)
    image_size: ImageSize = ImageSize.SIZE_1K
    aspect_ratio: AspectRatio = AspectRatio.SQUARE


class ImageEditInput(_ToolModel):
    image_base64: str = Field(..., min_length=1, description="PNG image, base64 without data: prefix")
    prompt: str = Field(..., min_length=1, max_length=4000)


class ImageAnalysisInput(_ToolModel):
    image_base64: str = Field(..., min_length=1, description="PNG image, base64 without data: prefix")
    prompt: Optional[str] = Field(default=None, max_length=4000)


class ImageResult(_ToolModel):
    data_url: str = Field(..., description="data:image/png;base64,...")


class SpeechInput(_ToolModel):
    text: str = Field(..., min_length=1)
