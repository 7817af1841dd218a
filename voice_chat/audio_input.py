from __future__ import annotations

import logging
import threading
from typing import List, Optional

import numpy as np

from .config import AudioConfig
from .errors import AudioDeviceError

try:
    import sounddevice as sd
except OSError as e:  # pragma: no cover - PortAudio missing on the host
    sd = None  # type: ignore[assignment]
    _sounddevice_error: Optional[Exception] = e
else:
    _sounddevice_error = None

logger = logging.getLogger(__name__)


def require_sounddevice():
    if sd is None:
        raise AudioDeviceError(
            "sounddevice could not load the PortAudio library"
        ) from _sounddevice_error
    return sd


class MicrophoneRecorder:
    """
    Variable-length recording: start() opens a background thread that keeps
    recording short chunks, stop() joins it and returns the whole clip.
    """

    def __init__(self, config: AudioConfig) -> None:
        self._config = config
        self._stop_event = threading.Event()
        self._chunks: List[np.ndarray] = []
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[Exception] = None

    @property
    def recording(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        if self._thread is not None:
            return
        require_sounddevice()
        self._stop_event.clear()
        self._chunks = []
        self._error = None
        self._thread = threading.Thread(
            target=self._record_loop, name="mic-recorder", daemon=True
        )
        self._thread.start()
        logger.info("Recording started.")

    def stop(self) -> np.ndarray:
        if self._thread is None:
            raise RuntimeError("recorder is not running")
        self._stop_event.set()
        self._thread.join()
        self._thread = None
        logger.info("Recording stopped.")

        if self._error is not None:
            raise AudioDeviceError(f"recording failed: {self._error}") from self._error
        if not self._chunks:
            return np.zeros(int(self._config.sample_rate * 0.1), dtype=np.float32)
        return np.concatenate(self._chunks)

    def _record_loop(self) -> None:
        n_samples = int(self._config.chunk_seconds * self._config.sample_rate)
        try:
            while not self._stop_event.is_set():
                chunk = sd.rec(
                    n_samples,
                    samplerate=self._config.sample_rate,
                    channels=self._config.channels,
                    dtype="float32",
                    device=self._config.input_device,
                    blocking=True,
                )
                self._chunks.append(np.squeeze(chunk).astype(np.float32))
        except Exception as e:
            logger.error("Microphone capture failed: %s", e)
            self._error = e
