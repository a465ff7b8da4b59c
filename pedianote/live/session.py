"""Live audio consultation relayed between a browser and the realtime model.

The browser sends binary WebSocket frames of 16 kHz mono PCM16 and may send
``{"type": "stop"}`` as text. The service answers with JSON frames:

    {"type": "status", "status": "connected"}
    {"type": "audio", "data": <base64 PCM16 24 kHz>, "start": <s>, "duration": <s>}
    {"type": "error", "message": ...}

``start`` is the offset from the session start at which the chunk should be
played; consecutive chunks are scheduled back to back.
"""

import asyncio
import base64
import json
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import WebSocket
from httpx import AsyncClient
from loguru import logger

from ..core.client import create_openai_client
from ..core.config import Config
from .audio import INPUT_SAMPLE_RATE, OUTPUT_SAMPLE_RATE, PlaybackScheduler, pcm16_duration, resample_pcm16

LIVE_INSTRUCTIONS = "Você é um assistente médico sênior útil e conciso. Responda em português."

AUDIO_DELTA_EVENTS = {"response.output_audio.delta", "response.audio.delta"}
ERROR_EVENT = "error"


def realtime_session_settings(config: Config) -> Dict[str, Any]:
    audio_format = {"type": "audio/pcm", "rate": OUTPUT_SAMPLE_RATE}
    return {
        "type": "realtime",
        "output_modalities": ["audio"],
        "instructions": LIVE_INSTRUCTIONS,
        "audio": {
            "input": {"format": audio_format, "turn_detection": {"type": "server_vad"}},
            "output": {"format": audio_format, "voice": config.tts_voice}
        }
    }


@asynccontextmanager
async def open_realtime_connection(config: Config, http_client: AsyncClient) -> AsyncIterator[Any]:
    """Open and configure a realtime connection.

    Raises:
        MissingApiKeyError: If no API key is configured
    """
    client = create_openai_client(config, http_client)
    async with client.realtime.connect(model=config.realtime_model) as connection:
        await connection.session.update(session=realtime_session_settings(config))
        logger.info(f"Realtime session opened on {config.realtime_model}")
        yield connection


class LiveAudioSession:
    """Relays one browser WebSocket to one realtime connection."""

    def __init__(
        self,
        websocket: WebSocket,
        connection: Any,
        clock: Callable[[], float] = time.monotonic
    ):
        self.websocket = websocket
        self.connection = connection
        self.clock = clock
        self.scheduler = PlaybackScheduler()
        self._started_at: Optional[float] = None
        self.frames_in = 0
        self.frames_out = 0

    def _elapsed(self) -> float:
        return self.clock() - self._started_at

    async def run(self) -> None:
        """Relay in both directions until either side ends the session."""
        self._started_at = self.clock()
        await self.websocket.send_json({"type": "status", "status": "connected"})

        upstream = asyncio.create_task(self._pump_microphone())
        downstream = asyncio.create_task(self._pump_model_audio())
        done, pending = await asyncio.wait(
            {upstream, downstream},
            return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error = task.exception()
            if error is not None:
                raise error

        logger.info(f"Live session ended ({self.frames_in} frames in, {self.frames_out} frames out)")

    async def _pump_microphone(self) -> None:
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

            chunk = message.get("bytes")
            if chunk:
                await self.send_microphone_chunk(chunk)
                continue

            text = message.get("text")
            if text and self._control_type(text) == "stop":
                return

    @staticmethod
    def _control_type(text: str) -> Optional[str]:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring unrecognized live control frame ({len(text)} chars)")
            return None
        return payload.get("type")

    async def send_microphone_chunk(self, chunk: bytes) -> None:
        audio = resample_pcm16(chunk, INPUT_SAMPLE_RATE, OUTPUT_SAMPLE_RATE)
        if not audio:
            return
        await self.connection.input_audio_buffer.append(audio=base64.b64encode(audio).decode("ascii"))
        self.frames_in += 1

    async def _pump_model_audio(self) -> None:
        async for event in self.connection:
            if event.type in AUDIO_DELTA_EVENTS:
                await self.forward_model_audio(base64.b64decode(event.delta))
            elif event.type == ERROR_EVENT:
                message = getattr(getattr(event, "error", None), "message", None) or "Erro na conexão"
                logger.error(f"Realtime session error: {message}")
                await self.websocket.send_json({"type": "error", "message": message})
                return

    async def forward_model_audio(self, pcm: bytes) -> None:
        duration = pcm16_duration(pcm, OUTPUT_SAMPLE_RATE)
        start = self.scheduler.schedule(self._elapsed(), duration)
        await self.websocket.send_json({
            "type": "audio",
            "data": base64.b64encode(pcm).decode("ascii"),
            "start": round(start, 4),
            "duration": round(duration, 4)
        })
        self.frames_out += 1
