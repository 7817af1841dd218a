from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Protocol, Sequence

import numpy as np

from .conversation import Conversation, Message, SessionState
from .errors import AudioDeviceError
from .text_cleaning import is_blank

logger = logging.getLogger(__name__)

COMPLETION_FAILURE_TEXT = "Error: Unable to get a response from the chat completion API."
TRANSCRIPTION_FAILURE_TEXT = "Error: Unable to transcribe audio."

MISSING_CREDENTIAL_NOTICE = "Please enter your OpenAI API key first."
BUSY_NOTICE = "Still working on the previous message."
RECORDING_UNAVAILABLE_NOTICE = "Recording is unavailable while the transcriber is busy."
RECORDING_TOO_SHORT_NOTICE = "Recording too short. Try again."
SPEECH_INPUT_UNAVAILABLE_NOTICE = "Speech input is unavailable: openai-whisper is not installed."


class AudioCapture(Protocol):
    @property
    def recording(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> np.ndarray: ...


class Transcriber(Protocol):
    busy: bool
    model_loading: bool

    async def transcribe(self, audio: np.ndarray) -> str: ...


class CompletionClient(Protocol):
    async def complete(self, messages: Sequence[Message]) -> str: ...


class Playback(Protocol):
    @property
    def speaking(self) -> bool: ...

    async def speak(self, text: str, on_start: Optional[Callable[[], None]] = None) -> None: ...

    def cancel(self) -> None: ...


class CredentialSource(Protocol):
    @property
    def api_key(self) -> str: ...


class ConversationPipeline:
    """
    Sequences one chat turn: capture or type → transcribe → complete → speak.

    Owns the Conversation and the session flags. Every failure of a remote
    or device collaborator becomes a fixed assistant message (or, for
    playback, a cleared speaking flag); nothing is retried and nothing
    escapes to the caller. Local validation problems (no key, busy) go to
    ``notify`` instead and leave the Conversation untouched.

    One turn at a time: the busy flag is a single slot taken before the
    first await and released in a finally block. Calls made while it is
    taken are refused, not queued.
    """

    def __init__(
        self,
        *,
        system_prompt: str,
        chat: CompletionClient,
        transcriber: Optional[Transcriber],
        playback: Playback,
        recorder: AudioCapture,
        credentials: CredentialSource,
        notify: Optional[Callable[[str], None]] = None,
        min_recording_samples: int = 0,
        speech_enabled: bool = True,
    ) -> None:
        self.conversation = Conversation(system_prompt)
        self.state = SessionState(speech_enabled=speech_enabled)
        self._chat = chat
        self._transcriber = transcriber
        self._playback = playback
        self._recorder = recorder
        self._credentials = credentials
        self._notify = notify or (lambda text: logger.warning("%s", text))
        self._min_recording_samples = min_recording_samples
        self._speech_task: Optional[asyncio.Task] = None
        self._utterance = 0

    # -- control state -------------------------------------------------

    def can_send(self) -> bool:
        return not (
            self.state.busy
            or self.state.recording
            or self._transcribing()
            or is_blank(self.state.input_text)
        )

    def can_record(self) -> bool:
        return not (
            self._transcriber is None
            or self.state.busy
            or self._transcriber.model_loading
            or self._transcriber.busy
        )

    def input_placeholder(self) -> str:
        if self._transcriber is not None and self._transcriber.model_loading:
            return "Loading model..."
        if self._transcribing():
            return "Transcribing..."
        return "Type your message"

    def _transcribing(self) -> bool:
        return self._transcriber is not None and self._transcriber.busy

    @contextmanager
    def _busy_slot(self) -> Iterator[None]:
        self.state.busy = True
        try:
            yield
        finally:
            self.state.busy = False

    # -- turn operations -----------------------------------------------

    async def submit_text(self, text: Optional[str] = None) -> Optional[Message]:
        """
        Send typed text (or the current input) and append the reply.

        Returns the assistant message that was appended, or None when nothing
        was sent.
        """
        text = self.state.input_text if text is None else text
        if is_blank(text):
            return None
        if self.state.busy:
            self._notify(BUSY_NOTICE)
            return None
        with self._busy_slot():
            return await self._send(text)

    async def submit_recording(self, audio: np.ndarray) -> Optional[Message]:
        if self._transcriber is None:
            self._notify(SPEECH_INPUT_UNAVAILABLE_NOTICE)
            return None
        if self.state.busy:
            self._notify(BUSY_NOTICE)
            return None
        with self._busy_slot():
            try:
                text = await self._transcriber.transcribe(audio)
            except Exception:
                logger.exception("Transcription error")
                return self.conversation.append_assistant(TRANSCRIPTION_FAILURE_TEXT)

            self.state.input_text = text
            if is_blank(text):
                logger.info("Empty transcription. Skipping.")
                return None
            return await self._send(text)

    async def _send(self, text: str) -> Optional[Message]:
        if not self._credentials.api_key:
            self._notify(MISSING_CREDENTIAL_NOTICE)
            return None

        self.conversation.append_user(text)
        self.state.input_text = ""

        try:
            reply = await self._chat.complete(self.conversation.messages)
        except Exception:
            logger.exception("Error communicating with the completion API")
            return self.conversation.append_assistant(COMPLETION_FAILURE_TEXT)

        message = self.conversation.append_assistant(reply)
        self._speak(reply)
        return message

    # -- recording -----------------------------------------------------

    def start_recording(self) -> bool:
        if self.state.recording:
            return True
        if self.state.busy:
            self._notify(BUSY_NOTICE)
            return False
        if self._transcriber is None:
            self._notify(SPEECH_INPUT_UNAVAILABLE_NOTICE)
            return False
        if not self.can_record():
            self._notify(RECORDING_UNAVAILABLE_NOTICE)
            return False
        try:
            self._recorder.start()
        except AudioDeviceError as e:
            logger.error("Microphone unavailable: %s", e)
            self._notify(str(e))
            return False
        self.state.recording = True
        return True

    async def finish_recording(self) -> Optional[Message]:
        if not self.state.recording:
            return None
        self.state.recording = False
        try:
            audio = self._recorder.stop()
        except Exception:
            logger.exception("Recording error")
            return self.conversation.append_assistant(TRANSCRIPTION_FAILURE_TEXT)

        if len(audio) < self._min_recording_samples:
            self._notify(RECORDING_TOO_SHORT_NOTICE)
            return None
        return await self.submit_recording(audio)

    # -- speech --------------------------------------------------------

    @property
    def speech_task(self) -> Optional[asyncio.Task]:
        return self._speech_task

    def toggle_speech_enabled(self) -> bool:
        was_enabled = self.state.speech_enabled
        self.state.speech_enabled = not was_enabled
        if was_enabled:
            self._stop_speech()
        return self.state.speech_enabled

    def replay(self, content: str) -> Optional[asyncio.Task]:
        return self._speak(content)

    def _speak(self, content: str) -> Optional[asyncio.Task]:
        if not self.state.speech_enabled or not content:
            return None
        self._stop_speech()
        self._utterance += 1
        self._speech_task = asyncio.get_running_loop().create_task(
            self._play(content, self._utterance)
        )
        return self._speech_task

    async def _play(self, content: str, utterance: int) -> None:
        def started() -> None:
            if utterance == self._utterance:
                self.state.speaking = True

        try:
            await self._playback.speak(content, on_start=started)
        except Exception:
            logger.warning("Speech playback failed", exc_info=True)
        finally:
            if utterance == self._utterance:
                self.state.speaking = False

    def _stop_speech(self) -> None:
        task = self._speech_task
        active = self.state.speaking or self._playback.speaking
        if task is not None and not task.done():
            task.cancel()
            active = True
        if active:
            self._playback.cancel()
        self._utterance += 1
        self.state.speaking = False

    def close(self) -> None:
        """Stop any speech in progress and release the microphone."""
        self._stop_speech()
        if self.state.recording:
            self.state.recording = False
            try:
                self._recorder.stop()
            except Exception:
                logger.warning("Recorder did not stop cleanly", exc_info=True)
