"""GitHub reaction names and their emoji."""

from __future__ import annotations

REACTION_EMOJI: dict[str, str] = {
    "THUMBS_UP": "👍",
    "THUMBS_DOWN": "👎",
    "LAUGH": "😄",
    "HOORAY": "🎉",
    "CONFUSED": "😕",
    "HEART": "❤️",
    "ROCKET": "🚀",
    "EYES": "👀",
}

VALID_REACTIONS = tuple(REACTION_EMOJI)

EMOJI_TO_REACTION: dict[str, str] = {emoji: name for name, emoji in REACTION_EMOJI.items()}
# The heart is often typed without the variation selector.
EMOJI_TO_REACTION["❤"] = "HEART"


def normalize_reaction(value: str) -> str:
    """Accept ``THUMBS_UP``, ``thumbs_up`` or ``👍`` and return the GitHub enum name."""
    upper = value.strip().upper()
    if upper in VALID_REACTIONS:
        return upper
    if value.strip() in EMOJI_TO_REACTION:
        return EMOJI_TO_REACTION[value.strip()]
    raise ValueError(f"Invalid reaction: {value}. Expected one of: {', '.join(VALID_REACTIONS)}")


def format_reaction(content: str, use_emoji: bool) -> str:
    return REACTION_EMOJI.get(content, content) if use_emoji else content
