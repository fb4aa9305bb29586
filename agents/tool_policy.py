# agents/tool_policy.py

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from agents.tools import SEND_EMAIL_TOOL

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
EMAIL_KEYWORDS = re.compile(r"\b(send(?:s|ing)?|sent|e-?mail(?:s|ed|ing)?|mail(?:s|ed|ing)?)\b", re.IGNORECASE)


@dataclass
class ToolSelection:
    tools: List[str]
    allowed_recipients: List[str] = field(default_factory=list)

    @property
    def email_enabled(self) -> bool:
        return SEND_EMAIL_TOOL in self.tools


def find_email_addresses(text: str) -> List[str]:
    seen = []
    for address in EMAIL_PATTERN.findall(text or ""):
        # A sentence can end right after the address
        address = address.rstrip(".")
        if address.lower() not in (a.lower() for a in seen):
            seen.append(address)
    return seen


def select_tools(user_text: str, catalog: Sequence[str]) -> ToolSelection:
    """
    Pick the tools the model may call for this turn.

    Only the current message counts. The email tool is offered when that
    message contains both an email address and a send/email/mail keyword,
    and it is bound to the addresses found there. Every other tool in the
    catalog is always offered.
    """
    addresses = find_email_addresses(user_text)
    # Keywords inside the address itself (bob@mail.com) do not count
    without_addresses = EMAIL_PATTERN.sub(" ", user_text or "")
    wants_email = bool(addresses) and bool(EMAIL_KEYWORDS.search(without_addresses))

    tools = [name for name in catalog if name != SEND_EMAIL_TOOL]
    if wants_email and SEND_EMAIL_TOOL in catalog:
        tools.append(SEND_EMAIL_TOOL)
        return ToolSelection(tools=tools, allowed_recipients=addresses)
    return ToolSelection(tools=tools)
