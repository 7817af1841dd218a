"""Text checks shared by the transcriber and the turn pipeline."""


def normalize_whitespace(text: str) -> str:
    """Whisper pads and line-breaks its output; fold it into one spaced line."""
    return " ".join((text or "").split())


def is_blank(text: str) -> bool:
    """True for None, empty or whitespace-only input; such input is never sent."""
    return not (text or "").strip()


def clean_transcript(text: str) -> str:
    """Normalize a Whisper result before it becomes the user's message."""
    return normalize_whitespace(text)
