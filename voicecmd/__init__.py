"""voicecmd: continuous speech recognition sessions with keyword spotting."""

__version__ = "0.1.0"
