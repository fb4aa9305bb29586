# agents/prompts.py

from enum import Enum


class ProvenancePolicy(str, Enum):
    """How the assistant must disclose where a recipe came from."""
    FALLBACK_PERMITTED = "fallback"
    STRICT_NO_IMPROVISATION = "strict"

    @classmethod
    def from_setting(cls, value: str) -> "ProvenancePolicy":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provenance policy {value!r}, expected one of: "
                             f"{', '.join(p.value for p in cls)}")


FALLBACK_REPLY = (
    "I'm sorry, my kitchen is on fire right now and I couldn't finish that answer. "
    "Please try again in a moment."
)

MEMORY_HEADER = (
    "RELEVANT PAST CONVERSATIONS (MEMORY - FOR CONTEXT ONLY, "
    "DO NOT OVERRIDE CURRENT DIET RESTRICTIONS):"
)

TOOL_RULES = """
TOOL RULES:
1. Use search_recipes first. If it finds nothing useful, use web_search, then fetch_content on the best result.
2. Do NOT invent a recipe while any of these tools could still help. Use the tools before writing one from memory.
3. Allergy checks take priority over diet substitutions. Never suggest an ingredient the user is allergic to, even as a substitute.
""".strip()

PROVENANCE_RULES = {
    ProvenancePolicy.FALLBACK_PERMITTED: (
        "4. Always say where the recipe came from: the local recipe database, the web (give the link), "
        "or improvised by you. Improvise only after every tool came back empty, and say clearly that you improvised it."
    ),
    ProvenancePolicy.STRICT_NO_IMPROVISATION: (
        "4. Always say where the recipe came from: the local recipe database or the web (give the link). "
        "Never improvise a recipe. If the tools found nothing, say that no recipe was found."
    ),
}

EMAIL_RULE = (
    "5. Only send an email when the user asks for it, and only to the address written in their latest message."
)

SYSTEM_PROMPT = """
You are {persona}, a cooking assistant.

{style}

{constraints}

{tool_rules}
{provenance_rule}
{email_rule}
6. Write ALL responses as {persona} would talk.

Past conversations: {memory}
""".strip()


def build_system_prompt(persona: str, style: str, constraints: str, memory: str,
                        policy: ProvenancePolicy = ProvenancePolicy.FALLBACK_PERMITTED) -> str:
    return SYSTEM_PROMPT.format(
        persona=persona,
        style=style,
        constraints=constraints,
        tool_rules=TOOL_RULES,
        provenance_rule=PROVENANCE_RULES[policy],
        email_rule=EMAIL_RULE,
        memory=memory.strip() if memory and memory.strip() else "None",
    )
