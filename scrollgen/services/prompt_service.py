"""Prompt templates for aerial scroll generation."""

from typing import Optional

DEFAULT_SCENE = "a vast landscape"

# Appended to the current prompt when the text backend is unavailable
FALLBACK_SUFFIX = "The landscape continues with new mysteries revealed."

# Scene descriptions returned by the text backend are capped at this length
MAX_EVOLVED_PROMPT_LENGTH = 400

INITIAL_PROMPT = (
    "Perfect top-down aerial view of {scene} captured directly from above, "
    "bird's eye perspective, satellite view, overhead shot, detailed terrain "
    "visible from high altitude"
)

CONTINUATION_PROMPT = (
    "Continue this top-down aerial view seamlessly below the existing image. "
    "Current image perspective maintained, camera positioned directly overhead. "
    "{scene}. The view extends naturally southward maintaining the exact same "
    "altitude and viewing angle."
)

CONTEXTUAL_PROMPT = (
    "Continuing the scene from above, {scene}. The view extends downward "
    "naturally, maintaining the same artistic style and perspective as the "
    "previous image. Aerial view, captured from high above."
)

EVOLUTION_INSTRUCTION = """You are creating a visual narrative for an infinite scroll of top-down aerial images.

Current scene: "{current}"
{theme_line}
Keep the scene as close to the original as possible, but continue it in a logical
order as if the camera was panning down as the user scrolls.

Create the next scene in this visual story by:
1. STRICT top-down perspective - camera positioned directly overhead, bird's eye view
2. Same altitude and viewing angle maintained throughout
3. Adding new features that flow naturally from the previous scene
4. Keeping the response under 200 characters

Respond with ONLY the new scene description, no explanations:"""


def build_initial_prompt(theme: Optional[str] = None) -> str:
    """Prompt for the first tile of a session."""
    return INITIAL_PROMPT.format(scene=(theme or "").strip() or DEFAULT_SCENE)


def build_continuation_prompt(scene: str) -> str:
    """Prompt for an inpainting model that sees the predecessor band."""
    return CONTINUATION_PROMPT.format(scene=_strip_period(scene))


def add_contextual_cues(scene: str, theme: Optional[str] = None) -> str:
    """Prompt for a text-to-image model continuing a scroll it cannot see.

    The continuity lives entirely in the wording, so the session theme is
    appended when the scene does not already mention it.
    """
    prompt = CONTEXTUAL_PROMPT.format(scene=_strip_period(scene))
    if theme and theme.lower() not in scene.lower():
        prompt += f" The overall world is {_strip_period(theme)}."
    return prompt


def build_evolution_instruction(current: str, theme: Optional[str] = None) -> str:
    """Instruction sent to the text backend to evolve the scene."""
    theme_line = ""
    if theme and theme != current:
        theme_line = f'The world was originally described as: "{theme}". Stay true to it.\n'
    return EVOLUTION_INSTRUCTION.format(current=current, theme_line=theme_line)


def fallback_evolution(current: str) -> str:
    """Deterministic continuation used when prompt evolution fails."""
    return f"{current}. {FALLBACK_SUFFIX}"


def clean_evolved_prompt(text: str) -> str:
    """Normalise text backend output into a single scene description."""
    cleaned = " ".join(text.strip().strip('"').split())
    if len(cleaned) > MAX_EVOLVED_PROMPT_LENGTH:
        cleaned = cleaned[:MAX_EVOLVED_PROMPT_LENGTH].rsplit(" ", 1)[0]
    return cleaned


def _strip_period(text: str) -> str:
    return text.strip().rstrip(".")
