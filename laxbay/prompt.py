# laxbay/prompt.py
"""Prompt assembly for the chat assistant."""
import json
from typing import Iterable, List, Optional

from .retrieval import RetrievedListing

DEFAULT_PERSONA = (
    "You are the LaxBay assistant, a friendly lacrosse gear expert helping "
    "shoppers find the right equipment on the LaxBay marketplace."
)
LISTING_INSTRUCTION = (
    "When recommending listings, refer to them by title only. Never mention "
    "listing IDs or URLs; the app shows its own links."
)
NO_MATCHES = "No matching listings found."
ELLIPSIS = "…"


def snippet(text: str, budget: int = 160) -> str:
    collapsed = " ".join((text or "").split())
    if len(collapsed) <= budget:
        return collapsed
    return collapsed[: max(budget - len(ELLIPSIS), 0)].rstrip() + ELLIPSIS


def listing_line(item: RetrievedListing, budget: int = 160) -> str:
    return (
        f"- {item.title} | ${item.price:,.2f} | {item.location} | "
        f"{item.category} | {snippet(item.description, budget)}"
    )


def _content(value) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value if value is not None else "")


def _role(value: Optional[str]) -> str:
    role = (value or "user").strip() or "user"
    return role[0].upper() + role[1:]


def build_prompt(
    listings: List[RetrievedListing],
    prompt: str,
    messages: Optional[Iterable] = None,
    system: Optional[str] = None,
    snippet_chars: int = 160,
) -> str:
    """Render context, history and the new message as one text prompt.

    `messages` items need `role` and `content` attributes or keys. A
    `system` override replaces the persona; the listing instruction is
    always kept.
    """
    persona = system.strip() if system and system.strip() else DEFAULT_PERSONA
    lines = [f"System: {persona} {LISTING_INSTRUCTION}", "", "Listings Context:"]
    if listings:
        lines.extend(listing_line(item, snippet_chars) for item in listings)
    else:
        lines.append(NO_MATCHES)
    lines.append("")
    for m in messages or []:
        if isinstance(m, dict):
            role, content = m.get("role"), m.get("content")
        else:
            role, content = m.role, m.content
        lines.append(f"{_role(role)}: {_content(content)}")
    if prompt:
        lines.append(f"User: {prompt}")
    lines.append("Assistant:")
    return "\n".join(lines)
