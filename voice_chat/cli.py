from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .audio_input import MicrophoneRecorder
from .config import AppConfig, load_config
from .conversation import ASSISTANT, USER
from .credentials import CredentialStore
from .llm_client import ChatCompletionClient, OpenAIClientProvider
from .pipeline import ConversationPipeline
from .stt_whisper import WhisperSTT
from .tts_output import SpeechPlayback

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/quit", "/exit")

HELP_TEXT = """\
Type a message and press Enter to send it.
  /record        start recording; press Enter again when done speaking
  /speech        turn text-to-speech on or off
  /replay [N]    read the N-th assistant reply aloud again (default: last)
  /key [VALUE]   store your OpenAI API key (no value clears it)
  //text         send a message that starts with "/"
  /history       show the whole conversation
  /quit          leave"""

ReadLine = Callable[[str], Awaitable[str]]


async def read_line(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


class TerminalChat:
    """
    Terminal rendering of the chat page: prints new messages after every
    turn and maps slash commands onto pipeline operations.
    """

    def __init__(
        self,
        pipeline: ConversationPipeline,
        credentials: CredentialStore,
        read: ReadLine = read_line,
        write: Callable[[str], None] = print,
    ) -> None:
        self.pipeline = pipeline
        self.credentials = credentials
        self._read = read
        self._write = write
        self._rendered = 0

    def prompt(self) -> str:
        state = self.pipeline.state
        flags = []
        if state.speaking:
            flags.append("speaking")
        if not state.speech_enabled:
            flags.append("muted")
        suffix = f" ({', '.join(flags)})" if flags else ""
        return f"[{self.pipeline.input_placeholder()}]{suffix}> "

    def render_new(self) -> None:
        visible = self.pipeline.conversation.visible()
        for message in visible[self._rendered:]:
            label = "You" if message.role == USER else "Assistant"
            self._write(f"{label}: {message.content}")
        self._rendered = len(visible)

    def render_all(self) -> None:
        self._rendered = 0
        self.render_new()

    def assistant_replies(self) -> List[str]:
        return [
            m.content for m in self.pipeline.conversation.visible() if m.role == ASSISTANT
        ]

    async def handle(self, line: str) -> bool:
        """Run one input line. Returns False when the session should end."""
        command, _, arg = line.strip().partition(" ")
        arg = arg.strip()

        if command in EXIT_COMMANDS:
            return False
        if command == "/help":
            self._write(HELP_TEXT)
        elif command == "/record":
            await self._record()
        elif command == "/speech":
            enabled = self.pipeline.toggle_speech_enabled()
            self._write(f"Speech {'on' if enabled else 'off'}.")
        elif command == "/replay":
            self._replay(arg)
        elif command == "/key":
            self.credentials.save(arg)
            self._write("API key saved." if arg else "API key cleared.")
        elif command == "/history":
            self.render_all()
        elif line.startswith("//"):
            await self._send(line[1:])
        elif command.startswith("/"):
            self._write(f"Unknown command {command}. Type /help for the list.")
        else:
            await self._send(line)
        return True

    async def _send(self, line: str) -> None:
        self.pipeline.state.input_text = line
        await self.pipeline.submit_text()
        self.render_new()

    async def _record(self) -> None:
        if not self.pipeline.start_recording():
            return
        try:
            await self._read("Recording... press Enter when done speaking. ")
        finally:
            # end of input also ends the recording
            await self.pipeline.finish_recording()
            self.render_new()

    def _replay(self, arg: str) -> None:
        replies = self.assistant_replies()
        if not replies:
            self._write("Nothing to replay yet.")
            return
        try:
            index = int(arg) - 1 if arg else len(replies) - 1
        except ValueError:
            self._write("Usage: /replay [N]")
            return
        if not 0 <= index < len(replies):
            self._write(f"There are {len(replies)} assistant replies.")
            return
        if self.pipeline.replay(replies[index]) is None:
            self._write("Speech is off. Use /speech to turn it on.")

    async def run(self) -> None:
        self._write("READY. Type a message, or /help for commands.")
        if not self.credentials:
            self._write("No API key found. Use /key VALUE to store one.")

        try:
            while True:
                try:
                    line = await self._read(self.prompt())
                    if not await self.handle(line):
                        break
                except EOFError:
                    break
        finally:
            self.pipeline.close()
        self._write("Goodbye.")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="voice-chat",
        description="Chat with an OpenAI model by typing or speaking; replies are read aloud.",
    )
    parser.add_argument("--env-file", default=None, help="dotenv file holding the API key (default: ./.env)")
    parser.add_argument("--model", default=None, help="chat completion model")
    parser.add_argument("--whisper-model", default=None, help="Whisper model name")
    parser.add_argument("--voice", default=None, help="preferred TTS voice")
    parser.add_argument("--no-speech", action="store_true", help="start with text-to-speech off")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.model:
        config.chat.model = args.model
    if args.whisper_model:
        config.whisper.model_name = args.whisper_model
    if args.voice:
        config.speech.preferred_voices = (args.voice,)
    if args.no_speech:
        config.speech_enabled = False
    return config


def make_transcriber(config: AppConfig) -> Optional[WhisperSTT]:
    """Whisper is optional at runtime: without it the chat is typed-only."""
    try:
        return WhisperSTT(config.whisper)
    except ImportError as e:
        logger.error("%s; /record is disabled.", e)
        return None


async def run(config: AppConfig) -> None:
    credentials = CredentialStore(config.env_file)
    credentials.load()

    provider = OpenAIClientProvider(credentials, config.chat.base_url)
    transcriber = make_transcriber(config)
    pipeline = ConversationPipeline(
        system_prompt=config.chat.system_prompt,
        chat=ChatCompletionClient(provider, config.chat),
        transcriber=transcriber,
        playback=SpeechPlayback(provider, config.speech),
        recorder=MicrophoneRecorder(config.audio),
        credentials=credentials,
        notify=lambda text: print(f"[!] {text}"),
        min_recording_samples=config.audio.min_utterance_samples,
        speech_enabled=config.speech_enabled,
    )

    preload = None
    if transcriber is not None:
        preload = asyncio.create_task(transcriber.preload())
        preload.add_done_callback(_log_preload_failure)
    try:
        await TerminalChat(pipeline, credentials).run()
    finally:
        if preload is not None:
            preload.cancel()
        await provider.aclose()


def _log_preload_failure(task: asyncio.Task) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Could not load Whisper model: %s", task.exception())


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.verbose)
    config = apply_overrides(load_config(args.env_file), args)
    logger.info("Chat model: %s, Whisper model: %s", config.chat.model, config.whisper.model_name)
    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
