from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from dotenv import load_dotenv

PathLike = Union[str, Path]

# Name of the single persisted secret
API_KEY_NAME = "OPENAI_API_KEY"

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_CHAT_MODEL = "gpt-4o-mini"

TTS_MODEL = "gpt-4o-mini-tts"
# Voices offered by the OpenAI speech endpoint
TTS_VOICES = (
    "alloy",
    "ash",
    "ballad",
    "coral",
    "echo",
    "fable",
    "nova",
    "onyx",
    "sage",
    "shimmer",
    "verse",
)
TTS_PREFERRED_VOICES = ("nova", "shimmer")

SAMPLE_RATE = 16000          # Whisper-friendly
CHANNELS = 1                 # mic input channel
CHUNK_SECONDS = 0.2          # recording chunk size (stop checked after each chunk)
MIN_UTTERANCE_SECONDS = 0.5  # drop recordings shorter than this

WHISPER_MODEL_NAME = "base"

SYSTEM_PROMPT = """
You are a therapist. Speak like a real person in a conversation: empathetic,
relaxed and human. No bold text or bullet points. Keep your responses to 3-4
sentences. Imagine you're sitting across from someone in a calm space, just
listening and gently responding.

Here is a sample exchange to guide your tone and style:
User: I have been feeling really isolated lately.
Bot: I am here to listen. What's been going on?
User: Ever since moving for grad school I spend most nights alone. Everyone
seems to have their circles already.
Bot: It's a big transition. What do you miss most about your previous support
system?
User: Just having someone to share the small things with, you know?
Bot: That sounds really difficult. What small step do you think might help you
feel more connected?

Your replies are read aloud to the user, so keep them conversational, like you
are talking with a friend who needs support.
"""


@dataclass
class ChatConfig:
    """
    Configuration for the completion endpoint.
    """

    model: str = DEFAULT_CHAT_MODEL
    system_prompt: str = SYSTEM_PROMPT
    base_url: str = DEFAULT_BASE_URL


@dataclass
class SpeechConfig:
    model: str = TTS_MODEL
    available_voices: Tuple[str, ...] = TTS_VOICES
    preferred_voices: Tuple[str, ...] = TTS_PREFERRED_VOICES
    instructions: Optional[str] = "Speak calmly and warmly."
    output_device: Optional[int] = None  # None = system default speakers


@dataclass
class AudioConfig:
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS
    chunk_seconds: float = CHUNK_SECONDS
    min_utterance_seconds: float = MIN_UTTERANCE_SECONDS
    input_device: Optional[int] = None  # None = system default microphone

    @property
    def min_utterance_samples(self) -> int:
        return int(self.min_utterance_seconds * self.sample_rate)


@dataclass
class WhisperConfig:
    model_name: str = WHISPER_MODEL_NAME
    language: str = "en"


@dataclass
class AppConfig:
    env_file: Path = field(default_factory=lambda: Path.cwd() / ".env")
    chat: ChatConfig = field(default_factory=ChatConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    whisper: WhisperConfig = field(default_factory=WhisperConfig)
    speech_enabled: bool = True


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_voices(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    voices = tuple(v.strip() for v in raw.split(",") if v.strip())
    return voices or default


def load_config(env_file: Optional[PathLike] = None) -> AppConfig:
    """
    Load the .env file (if present) into the process environment and build
    the application config from VOICE_CHAT_* variables.
    """
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    load_dotenv(dotenv_path=env_path)

    chat = ChatConfig(
        model=os.getenv("VOICE_CHAT_MODEL", DEFAULT_CHAT_MODEL),
        system_prompt=os.getenv("VOICE_CHAT_SYSTEM_PROMPT", SYSTEM_PROMPT),
        base_url=os.getenv("VOICE_CHAT_BASE_URL", DEFAULT_BASE_URL),
    )
    speech = SpeechConfig(
        model=os.getenv("VOICE_CHAT_TTS_MODEL", TTS_MODEL),
        preferred_voices=_env_voices("VOICE_CHAT_TTS_VOICES", TTS_PREFERRED_VOICES),
        output_device=_env_int("VOICE_CHAT_OUTPUT_DEVICE"),
    )
    audio = AudioConfig(
        min_utterance_seconds=float(
            os.getenv("VOICE_CHAT_MIN_UTTERANCE_SECONDS", MIN_UTTERANCE_SECONDS)
        ),
        input_device=_env_int("VOICE_CHAT_INPUT_DEVICE"),
    )
    whisper = WhisperConfig(
        model_name=os.getenv("VOICE_CHAT_WHISPER_MODEL", WHISPER_MODEL_NAME),
    )
    return AppConfig(
        env_file=env_path,
        chat=chat,
        speech=speech,
        audio=audio,
        whisper=whisper,
    )
