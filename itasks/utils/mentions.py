# itasks/utils/mentions.py
"""@mention parsing and rendering for comment content.

Mentions are written as ``@user@example.com``. Parsing returns the
addresses; rendering splits content into text and mention segments so a
client can highlight the mentioned users.
"""
import re
from typing import Dict, Iterable, List, Optional

MENTION_PATTERN = re.compile(r"(?<![\w@])@([A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,})")


def extract_mention_emails(content: str) -> List[str]:
    """Distinct mentioned addresses, lower-cased, in order of first appearance"""
    seen = []
    for match in MENTION_PATTERN.finditer(content or ""):
        email = match.group(1).rstrip(".").lower()
        if email not in seen:
            seen.append(email)
    return seen


def render_segments(content: str, users_by_email: Optional[Dict[str, object]] = None) -> List[dict]:
    """
    Split content into ``{"type": "text"}`` and ``{"type": "mention"}`` segments.

    Tokens that do not resolve to a known user stay plain text.
    """
    users_by_email = users_by_email or {}
    segments = []
    cursor = 0

    for match in MENTION_PATTERN.finditer(content or ""):
        email = match.group(1).rstrip(".").lower()
        user = users_by_email.get(email)
        if user is None:
            continue

        start, end = match.start(), match.start() + 1 + len(email)
        if start > cursor:
            segments.append({"type": "text", "text": content[cursor:start]})
        segments.append({
            "type": "mention",
            "text": content[start:end],
            "user_id": str(getattr(user, "uuid", "")),
            "name": getattr(user, "name", email),
        })
        cursor = end

    if cursor < len(content or ""):
        segments.append({"type": "text", "text": content[cursor:]})
    return segments


def merge_mentions(explicit_ids: Iterable[int], resolved_ids: Iterable[int], author_id: int) -> List[int]:
    """Union of explicit and parsed mention ids, without the author, order preserved"""
    merged = []
    for user_id in list(explicit_ids) + list(resolved_ids):
        if user_id != author_id and user_id not in merged:
            merged.append(user_id)
    return merged
