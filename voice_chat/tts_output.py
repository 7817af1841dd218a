from __future__ import annotations

import asyncio
import io
import logging
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
import soundfile as sf

from . import audio_input
from .config import SpeechConfig
from .llm_client import OpenAIClientProvider

logger = logging.getLogger(__name__)


def select_voice(available: Sequence[str], preferred: Sequence[str]) -> Optional[str]:
    """
    Pick the first available voice whose name contains one of the preferred
    names (case-insensitive); fall back to the first available voice.
    """
    if not available:
        return None
    wanted = [p.lower() for p in preferred if p]
    for voice in available:
        name = voice.lower()
        if any(p in name for p in wanted):
            return voice
    return available[0]


async def synthesize(
    text: str,
    provider: OpenAIClientProvider,
    config: SpeechConfig,
    voice: str,
) -> Tuple[np.ndarray, int]:
    """
    Generate speech audio for the given text and decode it.

    Returns the samples and their sample rate.
    """
    client = await provider.get()
    kwargs = {
        "model": config.model,
        "voice": voice,
        "input": text,
        "response_format": "wav",
    }
    if config.instructions:
        kwargs["instructions"] = config.instructions

    resp = await client.audio.speech.create(**kwargs)
    audio, sample_rate = sf.read(io.BytesIO(resp.content), dtype="float32")
    return audio, sample_rate


class SpeechPlayback:
    """
    Speaks text on the local speakers via OpenAI TTS.

    speak() returns once the utterance finished playing or was cancelled and
    raises if synthesis or playback failed. Only one utterance plays at a
    time; starting a new one stops the current one.
    """

    def __init__(self, provider: OpenAIClientProvider, config: SpeechConfig) -> None:
        self._provider = provider
        self._config = config
        self._speaking = False

    @property
    def speaking(self) -> bool:
        return self._speaking

    @property
    def voice(self) -> Optional[str]:
        return select_voice(self._config.available_voices, self._config.preferred_voices)

    async def speak(self, text: str, on_start: Optional[Callable[[], None]] = None) -> None:
        if not text:
            return

        device = audio_input.require_sounddevice()
        if self._speaking:
            self.cancel()

        voice = self.voice
        if voice is None:
            raise RuntimeError("no speech voice available")

        audio, sample_rate = await synthesize(text, self._provider, self._config, voice)

        logger.debug("Speaking %d samples at %d Hz (voice=%s)", len(audio), sample_rate, voice)
        device.play(audio, sample_rate, device=self._config.output_device)
        self._speaking = True
        if on_start is not None:
            on_start()
        try:
            await asyncio.to_thread(device.wait)
        finally:
            self._speaking = False

    def cancel(self) -> None:
        if audio_input.sd is not None:
            audio_input.sd.stop()
        self._speaking = False
