"""PCM16 helpers and gap-free playback scheduling for the live session."""

import numpy as np

# Capture rate of the browser microphone and rate of the realtime model.
INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
SAMPLE_WIDTH = 2


def pcm16_duration(data: bytes, sample_rate: int) -> float:
    """Duration in seconds of mono 16-bit PCM; a trailing odd byte is ignored."""
    return (len(data) // SAMPLE_WIDTH) / sample_rate


def resample_pcm16(data: bytes, from_rate: int, to_rate: int) -> bytes:
    """Linear-interpolation resampling of mono 16-bit little-endian PCM."""
    if from_rate == to_rate or not data:
        return data

    samples = np.frombuffer(data[:len(data) - len(data) % SAMPLE_WIDTH], dtype="<i2")
    if samples.size == 0:
        return b""

    target_size = max(1, round(samples.size * to_rate / from_rate))
    source_positions = np.arange(samples.size)
    target_positions = np.linspace(0, samples.size - 1, target_size)
    resampled = np.interp(target_positions, source_positions, samples.astype(np.float64))
    return np.clip(np.round(resampled), -32768, 32767).astype("<i2").tobytes()


class PlaybackScheduler:
    """Queues audio chunks back to back on a single timeline.

    A chunk starts at the later of "now" and the end of the previous chunk,
    so chunks never overlap and, while they keep arriving, never leave gaps.
    """

    def __init__(self):
        self.next_start = 0.0

    def schedule(self, now: float, duration: float) -> float:
        start = max(now, self.next_start)
        self.next_start = start + duration
        return start

    def reset(self) -> None:
        self.next_start = 0.0
