# agents/context_assembler.py

from typing import Dict, List, Sequence

from agents.diet_guard import build_diet_constraints
from agents.persona import persona_style
from agents.prompts import ProvenancePolicy, build_system_prompt
from models.schema import SenderRole

ROLE_MAP = {
    SenderRole.USER.value: "user",
    SenderRole.AI.value: "assistant",
}


class ContextAssembler:
    """
    Builds the model-facing message list for one turn:

        system directive, last `history_window` prior messages (oldest first), new user turn

    History beyond the window is dropped, not summarized. The caller passes
    the prior messages with the in-flight user message already removed.
    """

    def __init__(self, history_window: int = 20,
                 policy: ProvenancePolicy = ProvenancePolicy.FALLBACK_PERMITTED):
        if history_window < 0:
            raise ValueError("history_window must not be negative")
        self.history_window = history_window
        self.policy = policy

    def system_directive(self, session, memory: str) -> str:
        return build_system_prompt(
            persona=session.chef_personality,
            style=persona_style(session.chef_personality),
            constraints=build_diet_constraints(session.diet_type, session.allergies),
            memory=memory,
            policy=self.policy,
        )

    def window(self, history: Sequence) -> List:
        if self.history_window == 0:
            return []
        return list(history)[-self.history_window:]

    def assemble(self, session, history: Sequence, memory: str, user_text: str) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self.system_directive(session, memory)}]
        for msg in self.window(history):
            sender = getattr(msg.sender, "value", msg.sender)
            messages.append({"role": ROLE_MAP.get(sender, "assistant"), "content": msg.content})
        messages.append({"role": "user", "content": user_text})
        return messages
