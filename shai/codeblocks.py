"""Fenced code block extraction for writing an accepted command to disk."""

import re
from typing import List

# Either an opening fence with an optional language word, a body and a
# closing fence, or a whole block on one line such as ```ls -la```.
_FENCE_RE = re.compile(
    r"```(?:[\w+.#-]*[ \t]*\r?\n(?P<body>.*?)\r?\n?|(?P<inline>[^`\r\n]+?))```",
    re.DOTALL,
)


def extract_code_blocks(text: str) -> List[str]:
    """Return the bodies of all fenced code blocks, in order."""
    blocks = []
    for match in _FENCE_RE.finditer(text):
        body = match.group("body")
        blocks.append(body if body is not None else match.group("inline").strip())
    return blocks


def render_for_write(text: str, raw: bool = False) -> str:
    """Content written for an accepted response.

    Rendered mode keeps only the fenced bodies joined by newlines, falling
    back to the whole text when the model used no fences.
    """
    if raw:
        return text
    blocks = extract_code_blocks(text)
    return "\n".join(blocks) if blocks else text
