"""Audio transcription through a generative AI backend with model fallback."""

__version__ = "1.0.0"
