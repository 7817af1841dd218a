import asyncio
import pathlib
import sys
from typing import List, Optional

import numpy as np
import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from voice_chat.pipeline import ConversationPipeline  # noqa: E402

SYSTEM_PROMPT = "You are a test assistant."


class StubCredentials:
    def __init__(self, api_key: str = "sk-test") -> None:
        self.api_key = api_key

    def __bool__(self) -> bool:
        return bool(self.api_key)

    def save(self, value: str) -> None:
        self.api_key = value


class StubChat:
    def __init__(self, reply: str = "Hi there.", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: List[list] = []

    async def complete(self, messages):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.reply


class StubTranscriber:
    def __init__(self, text: str = "Hello from the mic", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.busy = False
        self.model_loading = False
        self.calls: List[np.ndarray] = []

    async def transcribe(self, audio):
        self.calls.append(audio)
        if self.error is not None:
            raise self.error
        return self.text


class StubPlayback:
    """Plays until cancel() is called, so speaking state can be observed."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.spoken: List[str] = []
        self.cancel_calls = 0
        self._speaking = False
        self._done: Optional[asyncio.Event] = None

    @property
    def speaking(self) -> bool:
        return self._speaking

    async def speak(self, text, on_start=None):
        self.spoken.append(text)
        if self.error is not None:
            raise self.error
        self._done = asyncio.Event()
        self._speaking = True
        if on_start is not None:
            on_start()
        try:
            await self._done.wait()
        finally:
            self._speaking = False

    def finish(self) -> None:
        if self._done is not None:
            self._done.set()

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.finish()
        self._speaking = False


class StubRecorder:
    def __init__(self, samples: int = 16000) -> None:
        self.samples = samples
        self.recording = False
        self.starts = 0

    def start(self) -> None:
        self.starts += 1
        self.recording = True

    def stop(self):
        self.recording = False
        return np.zeros(self.samples, dtype=np.float32)


@pytest.fixture
def credentials():
    return StubCredentials()


@pytest.fixture
def chat():
    return StubChat()


@pytest.fixture
def transcriber():
    return StubTranscriber()


@pytest.fixture
def playback():
    return StubPlayback()


@pytest.fixture
def recorder():
    return StubRecorder()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def make_pipeline(chat, transcriber, playback, recorder, credentials, notices):
    def factory(**overrides):
        kwargs = dict(
            system_prompt=SYSTEM_PROMPT,
            chat=chat,
            transcriber=transcriber,
            playback=playback,
            recorder=recorder,
            credentials=credentials,
            notify=notices.append,
            min_recording_samples=8000,
        )
        kwargs.update(overrides)
        return ConversationPipeline(**kwargs)

    return factory
