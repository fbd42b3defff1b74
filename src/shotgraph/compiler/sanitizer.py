"""Final text-rewrite pass applied to every compiled prompt.

Two passes, both whole-word and case-insensitive:

1. Substitution of sensitive terms with descriptive replacement phrases.
   Longer terms are matched first so ``fake blood`` wins over ``blood``.
2. Removal of equipment nouns that image models tend to render literally.

Whitespace left behind by removals is collapsed.  No replacement phrase
contains a term from either table, and the two passes repeat until the
text stops changing, so :func:`sanitize` is idempotent.
"""

import logging
import re

logger = logging.getLogger(__name__)

SUBSTITUTIONS: dict[str, str] = {
    "fake blood": "high-viscosity translucent surface coating",
    "softbox": "large diffused directional light source",
    "reflector": "ambient bounce illumination",
    "blood": "deep crimson liquid pigment study",
    "lube": "translucent fluid with high specular reflectivity",
    "naked": "unadorned anatomical form",
    "stepladder": "30-degree downward vertical pitch",
}

FORBIDDEN_TERMS: tuple[str, ...] = ("stand", "tripod", "mount", "lamp")

_SUBSTITUTION_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(t) for t in sorted(SUBSTITUTIONS, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_FORBIDDEN_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(t) for t in FORBIDDEN_TERMS) + r")\b",
    re.IGNORECASE,
)
_SPACE_RUN = re.compile(r"[ \t]{2,}")
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+([.,;:!?)])")


def _substitute(match: re.Match) -> str:
    term = re.sub(r"\s+", " ", match.group(1).lower())
    return SUBSTITUTIONS[term]


def _single_pass(text: str) -> str:
    text = _SUBSTITUTION_PATTERN.sub(_substitute, text)
    text = _FORBIDDEN_PATTERN.sub("", text)
    text = _SPACE_RUN.sub(" ", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    return text.strip()


def sanitize(text: str) -> str:
    """Rewrite sensitive and equipment terms in a prompt.

    Args:
        text: Assembled prompt text.

    Returns:
        Sanitized text.  ``sanitize(sanitize(x)) == sanitize(x)``.

    Examples:
        >>> sanitize("studio softbox and a reflector")
        'studio large diffused directional light source and a ambient bounce illumination'
        >>> sanitize("a lamp stand by the window")
        'a by the window'
    """
    result = _single_pass(text)
    # Repeat until stable.
    while True:
        again = _single_pass(result)
        if again == result:
            break
        result = again
    if result != text:
        logger.debug("Sanitized prompt text")
    return result
