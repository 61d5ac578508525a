"""Exception hierarchy for voicecmd."""


class VoiceCommandError(Exception):
    """Base class for all voicecmd errors."""


class ConfigurationError(VoiceCommandError):
    """A lifecycle operation was called in an invalid order."""


class EngineParamError(VoiceCommandError):
    """Engine parameters could not be assembled."""


class InvalidPatternError(VoiceCommandError):
    """A vocabulary entry could not be compiled.

    Raised from ``KeywordMatcher.set_vocabulary``; the previous vocabulary
    stays active.
    """

    def __init__(self, message: str, keyword: str | None = None, index: int | None = None):
        super().__init__(message)
        self.keyword = keyword
        self.index = index


class EngineRuntimeError(VoiceCommandError):
    """The engine reported a failure mid-session."""


class PayloadParseError(VoiceCommandError):
    """A transcript callback payload could not be decoded."""


class AlreadyReleasedError(VoiceCommandError):
    """The session was released and can no longer be used."""
