"""HTTP server entry point.

Loads .env, configures structured logging and serves the FastAPI app with
uvicorn on PORT.
"""

import logging

import uvicorn
from dotenv import load_dotenv

from audio_transcriber.api.app import create_app
from audio_transcriber.config import Settings
from audio_transcriber.observability.logger import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Start the transcription HTTP server."""
    load_dotenv()
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_format)
    if not settings.api_key:
        logger.warning("GEMINI_API_KEY is not set; /transcribe will return 500")

    logger.info("Audio transcriber listening on port %d", settings.port)
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
