"""
Building blocks for the typed-or-spoken chat → LLM → speech pipeline.

Modules:
- conversation: message log + session UI flags
- credentials: API key persisted in a dotenv file
- audio_input: microphone start/stop recording
- stt_whisper: Whisper-based speech-to-text wrapper
- text_cleaning: simple text normalization utilities
- llm_client: OpenAI chat completions client
- tts_output: OpenAI TTS synthesis + local playback
- pipeline: turn sequencing (capture → transcribe → complete → speak)
- cli: interactive terminal front-end
"""

__version__ = "0.2.0"
