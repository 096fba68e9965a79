"""Destinations for a successful transcript.

The HTTP front end returns the transcript in its response body and needs
no sink; the CLI writes it to a file with FileSink.
"""

import logging
import os
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class TranscriptSink(ABC):
    """Receives the transcript of a successful run."""

    @abstractmethod
    def write(self, text: str, model: str) -> None:
        """Persist or forward the transcript produced by ``model``."""


class FileSink(TranscriptSink):
    """Writes the transcript to a UTF-8 text file, creating parent dirs."""

    def __init__(self, path: str) -> None:
        self.path = path

    def write(self, text: str, model: str) -> None:
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info("Transcript from %s saved to %s", model, os.path.abspath(self.path))
