from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import numpy as np

from .config import WhisperConfig
from .text_cleaning import clean_transcript

try:
    import whisper
except ImportError as e:  # pragma: no cover - import-time guard
    whisper = None  # type: ignore[assignment]
    _whisper_import_error: Optional[Exception] = e
else:
    _whisper_import_error = None

logger = logging.getLogger(__name__)


class WhisperSTT:
    """
    Async wrapper around a Whisper model.

    This class is unaware of microphones or file I/O: it takes a mono float32
    numpy array and returns a text transcription. The model is loaded on
    first use (or by preload()) on a worker thread; ``model_loading`` and
    ``busy`` expose what the model is doing so the front-end can show it.
    """

    def __init__(self, config: WhisperConfig) -> None:
        if whisper is None:
            raise ImportError(
                "openai-whisper not installed. Install with: pip install openai-whisper"
            ) from _whisper_import_error

        self._config = config
        self._model: Any = None
        self._load_lock = asyncio.Lock()
        self.model_loading = False
        self.busy = False

    @property
    def model_name(self) -> str:
        return self._config.model_name

    async def preload(self) -> None:
        async with self._load_lock:
            if self._model is not None:
                return
            self.model_loading = True
            logger.info("Loading Whisper model: %s", self.model_name)
            try:
                self._model = await asyncio.to_thread(whisper.load_model, self.model_name)
            finally:
                self.model_loading = False
            logger.info("Whisper loaded: %s", self.model_name)

    async def transcribe(self, audio: np.ndarray) -> str:
        """
        Run Whisper transcription on a mono float32 waveform.
        """
        await self.preload()
        self.busy = True
        try:
            logger.info("Transcribing...")
            result = await asyncio.to_thread(
                self._model.transcribe,
                audio.astype(np.float32),
                language=self._config.language,
                task="transcribe",
                fp16=False,
            )
        finally:
            self.busy = False
        text = clean_transcript(result.get("text") or "")
        logger.info("You said: %s", text)
        return text
