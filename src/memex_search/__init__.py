"""Search engine over an archive of chat conversation transcripts."""

__version__ = "0.1.0"
