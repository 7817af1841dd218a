class VoiceChatError(Exception):
    """Base class for errors raised by voice_chat."""


class MissingCredentialError(VoiceChatError):
    """No API key has been stored yet."""


class CompletionError(VoiceChatError):
    """The completion endpoint answered with something we cannot use."""


class AudioDeviceError(VoiceChatError):
    """The sound device library is unavailable or failed to open a stream."""
