"""
services/tutor.py: The 1Note math tutor: prompt construction around the AI gateway.

The tutoring itself is delegated to the gateway model; this module only fixes
the system prompt, the note context and which history entries are forwarded.
"""

import logging
from typing import Dict, List, Optional

from config import Config

logger = logging.getLogger(__name__)

NO_NOTES_CONTEXT = "No notes content available. Please inform the user to upload notes first."
EMPTY_ANSWER = "I couldn't generate a response. Please try again."

TUTOR_SYSTEM_PROMPT = """You are 1Note, a specialized math tutor for Engineering Mathematics I.

CRITICAL RULES:
1. ONLY use information from the provided lecture notes as context
2. NEVER guess or make up solutions - if unsure, say so
3. NEVER skip steps in solutions
4. All solutions MUST follow this structure:
   **Given:** [State the problem and known values]
   **Formula:** [State the formula(s) to be used]
   **Solution:** [Step-by-step working]
   **Step 1:** [First step with explanation]
   **Step 2:** [Continue as needed]
   **Answer:** [Final answer clearly stated]

5. Use LaTeX notation for all math: $inline$ for inline, $$display$$ for display
6. If a problem is ambiguous, explain your assumptions
7. Topics covered: Limits, Continuity, Differentiation, Integration, Differential Equations, Linear Algebra

LECTURE NOTES CONTEXT:
{note_content}

Be precise, clear, and educational. Act as a patient private tutor."""


def build_system_prompt(note_content: Optional[str]) -> str:
    return TUTOR_SYSTEM_PROMPT.format(note_content=note_content or NO_NOTES_CONTEXT)


def build_messages(
    question: str,
    note_content: Optional[str],
    history: Optional[List[Dict]] = None,
) -> List[Dict]:
    messages = [{"role": "system", "content": build_system_prompt(note_content)}]
    for entry in history or []:
        if entry.get("role") in ("user", "assistant") and entry.get("content"):
            messages.append({"role": entry["role"], "content": entry["content"]})
    messages.append({"role": "user", "content": question})
    return messages


class Tutor:
    """Stateless question answering.  Instantiate once as a module-level singleton."""

    def __init__(self, llm_service):
        self._llm = llm_service

    async def answer(
        self,
        question: str,
        note_content: Optional[str],
        history: Optional[List[Dict]] = None,
    ) -> str:
        """Return the tutor's reply; GatewayError subclasses propagate to the caller."""
        messages = build_messages(question, note_content, history)
        logger.info(
            "Tutor question: history=%d context_chars=%d",
            len(messages) - 2, len(note_content or ""),
        )
        reply = await self._llm.complete(messages, model=Config.AI_CHAT_MODEL)
        return reply or EMPTY_ANSWER
