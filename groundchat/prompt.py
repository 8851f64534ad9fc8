"""Prompt construction for grounded answers.

Everything here is a pure function of its arguments so the grounding rules
can be checked without any network collaborator.
"""

from collections.abc import Sequence

from .models import ConversationTurn, Role, ScoredChunk

NO_CONTEXT_MARKER = (
    "[NO INFORMATION AVAILABLE: the knowledge base returned no passages.]"
)
INFORMATION_UNAVAILABLE_REPLY = "I don't have that information yet."

_ROLE_LABELS = {Role.USER: "User", Role.ASSISTANT: "Assistant"}


def assemble_context(results: Sequence[ScoredChunk]) -> str:
    """Join retrieved chunks into one labelled context block.

    Chunks keep the order the vector store returned them in. An empty result
    produces ``NO_CONTEXT_MARKER`` instead of an empty string.
    """
    if not results:
        return NO_CONTEXT_MARKER

    sections = [
        f"[Context {i}] (source: {chunk.label})\n{chunk.content}"
        for i, (chunk, _score) in enumerate(results, start=1)
    ]
    return "\n\n".join(sections)


def format_history(history: Sequence[ConversationTurn]) -> str:
    if not history:
        return "(no previous messages)"
    return "\n".join(f"{_ROLE_LABELS[turn.role]}: {turn.text}" for turn in history)


def build_prompt(
    context_block: str,
    history: Sequence[ConversationTurn],
    question: str,
) -> str:
    """Compose the single instruction sent to the completion service.

    Args:
        context_block: Output of ``assemble_context``.
        history: Prior turns for the session, oldest first.
        question: The current user message.

    Returns:
        str: Prompt text containing only the fixed rules, the history, the
            retrieved context and the question.
    """
    return (
        "You are a knowledge base assistant. Answer the current question using "
        "ONLY the information in the Context section below.\n\n"
        "Rules:\n"
        "1. Use only facts stated in the Context section. Do not add outside "
        "knowledge, assumptions or guesses.\n"
        "2. If the Context section does not contain the answer, reply exactly: "
        f'"{INFORMATION_UNAVAILABLE_REPLY}"\n'
        "3. Use the conversation history to resolve pronouns and references in "
        "the current question.\n"
        "4. Be concise and accurate.\n\n"
        "=== Conversation History ===\n"
        f"{format_history(history)}\n\n"
        "=== Context ===\n"
        f"{context_block}\n\n"
        "=== Current Question ===\n"
        f"{question}\n\n"
        "Answer:"
    )


def enforce_unavailable_signal(reply: str) -> str:
    """Return ``reply`` if it admits the gap, else the canonical unavailable reply."""
    if INFORMATION_UNAVAILABLE_REPLY.lower().rstrip(".") in reply.lower():
        return reply
    return INFORMATION_UNAVAILABLE_REPLY
