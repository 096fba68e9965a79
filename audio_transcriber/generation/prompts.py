"""Named transcription instructions with their default model candidates.

Each preset pairs an instruction text with the candidate list it was
tuned for: flash models for plain transcription, pro models first where
the instruction asks for stricter language and script handling.
"""

from dataclasses import dataclass
from textwrap import dedent

from audio_transcriber.utils.errors import ConfigurationError

FLASH_CANDIDATES = (
    "gemini-2.5-flash",
    "gemini-2.0-flash-exp",
    "gemini-2.0-flash",
    "gemini-flash-latest",
)

PRO_CANDIDATES = (
    "gemini-2.5-pro",
    "gemini-2.0-pro-exp-02-05",
    "gemini-1.5-pro",
    "gemini-2.5-flash",
)


@dataclass(frozen=True)
class Preset:
    name: str
    instruction: str
    candidates: tuple[str, ...]


PRESETS: dict[str, Preset] = {
    "standard": Preset(
        name="standard",
        instruction=(
            "Transcribe this audio file exactly as spoken. Identify speakers "
            "if distinct. Format with timestamps every few paragraphs."
        ),
        candidates=FLASH_CANDIDATES,
    ),
    "high_fidelity": Preset(
        name="high_fidelity",
        instruction=dedent(
            """\
            Please provide a high-fidelity transcription of this audio file.

            **Context:** This is a spiritual discourse (Hari Katha).
            **Languages:** The audio contains mixed languages, primarily English, but may include Hindi, Bengali, and Sanskrit verses/mantras.

            **Instructions:**
            1. Transcribe the English exactly as spoken.
            2. For Sanskrit/Bengali verses, transcribe them phonetically in Roman characters (transliteration) if possible, or keep them in the original script if clear.
            3. Identify different speakers (e.g., 'Speaker', 'Devotee', 'Audience').
            4. Add timestamps [MM:SS] every time the topic shifts or every 2-3 minutes.
            5. Format the output cleanly with paragraphs.
            """
        ),
        candidates=PRO_CANDIDATES,
    ),
    "roman": Preset(
        name="roman",
        instruction=dedent(
            """\
            STRICT INSTRUCTION: The output MUST be in the Roman alphabet (English letters) ONLY.
            DO NOT use Devanagari script. Use standard transliteration for Sanskrit terms.

            **Task:** Transcribe this audio file exactly as spoken.
            **Formatting:** Use paragraphs. Add timestamps [MM:SS] occasionally.
            """
        ),
        candidates=("gemini-2.5-flash",),
    ),
    "roman_strict": Preset(
        name="roman_strict",
        instruction=dedent(
            """\
            STRICT INSTRUCTION: The output MUST be in the Roman alphabet (English letters) ONLY.
            DO NOT use Devanagari script or Bengali script.

            **Task:** Transcribe this audio file, a spiritual discourse (Hari Katha).
            **Primary Language:** English (with Indian accent).

            **Rules:**
            1. **Script:** Write EVERYTHING in the Roman alphabet.
            2. **English:** Transcribe exactly as spoken.
            3. **Sanskrit/Bengali/Hindi Terms:** Use standard transliteration (e.g., write "Krishna", "Radha").
            4. **Speakers:** Identify speakers if distinct (e.g., 'Speaker', 'Devotee').
            5. **Formatting:** Use timestamps [MM:SS] every few minutes or at topic changes. Use paragraphs for readability.

            If the speaker recites a verse in Sanskrit, write it phonetically in English letters.
            """
        ),
        candidates=PRO_CANDIDATES,
    ),
}

DEFAULT_PRESET = "standard"


def get_preset(name: str) -> Preset:
    """Look up a preset by name.

    Raises:
        ConfigurationError: If the name is not registered.
    """
    preset = PRESETS.get(name)
    if preset is None:
        available = ", ".join(sorted(PRESETS))
        raise ConfigurationError(
            f"Unknown instruction preset: '{name}'. Available: {available}"
        )
    return preset
