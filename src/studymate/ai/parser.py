"""Extract JSON from free-form model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from studymate.ai.errors import ParseError

logger = logging.getLogger(__name__)

FENCE = "```"
_JSON_FENCE = re.compile(r"```[ \t]*json\b", re.IGNORECASE)
_LANG_LINE = re.compile(r"^[A-Za-z0-9_+-]*[ \t]*\n")


def _fenced_json_block(text: str) -> str | None:
    match = _JSON_FENCE.search(text)
    if match is None:
        return None
    end = text.find(FENCE, match.end())
    if end == -1:
        return None
    return text[match.end():end]


def _first_fenced_block(text: str) -> str | None:
    parts = text.split(FENCE)
    if len(parts) < 3:
        return None
    # Drop a language tag such as ```javascript on the opening fence line.
    return _LANG_LINE.sub("", parts[1], count=1)


def parse_model_json(text: str) -> Any:
    """Parse JSON out of a model response.

    Attempts, first success wins:

    1. the first block fenced with an explicit ``json`` tag;
    2. otherwise the first fenced block of any kind;
    3. otherwise the whole text;
    4. the span from the first ``{`` to the last ``}``.

    Raises:
        ParseError: if none of the attempts yields valid JSON.
    """
    if not isinstance(text, str) or not text.strip():
        raise ParseError("Model returned empty content instead of JSON")

    candidate = _fenced_json_block(text)
    if candidate is None:
        candidate = _first_fenced_block(text)
    if candidate is None:
        candidate = text

    try:
        return json.loads(candidate.strip())
    except ValueError as exc:
        first_error = exc

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(text[start:end + 1])
        except ValueError:
            pass
        else:
            logger.warning(
                "Model JSON recovered by brace matching (chars %d-%d of %d)",
                start, end, len(text),
            )
            return data

    preview = text[:80].replace("\n", " ")
    raise ParseError(
        f"Model returned non-JSON content: {first_error} (preview: {preview!r})"
    ) from first_error
