"""Prompt construction for grounded answers about an indexed codebase."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from coderag.vectorstore.base import SimilarityMatch

NO_MATCHES_MESSAGE = "No files relevant to your query could be found."

SYSTEM_INSTRUCTIONS = (
    "You are a Socratic teacher helping students learn programming and code concepts. "
    "Your role is to guide students to discover answers themselves through thoughtful "
    "questioning, not by providing direct solutions.\n\n"
    "Socratic Teaching Guidelines:\n"
    "- Ask clarifying questions to understand what the student knows\n"
    "- Break complex problems into smaller, manageable questions\n"
    "- Guide them toward the answer with leading questions\n"
    "- Praise effort and reasoning, even if incorrect\n"
    "- If they're stuck, provide hints rather than solutions\n"
    "- Encourage them to explain their thinking and reasoning\n"
    "- Point out contradictions gently to help them reconsider\n"
    "- Use analogies or simpler examples to build understanding"
)


@dataclass(frozen=True)
class SourceFile:
    """Full text of a file referenced by at least one match."""

    path: str
    content: str


def similarity_percent(score: float) -> float:
    return round(score * 100, 1)


def render_listing(matches: Sequence[SimilarityMatch]) -> str:
    """Render matches as a numbered list in the order they were returned."""

    lines: List[str] = []
    for number, match in enumerate(matches, start=1):
        lines.append(
            f"{number}. **{match.name}** ({match.kind})\n"
            f"   📁 {match.file_path}\n"
            f"   🎯 {similarity_percent(match.score)}% match"
        )
    return "\n\n".join(lines)


def build_grounding(listing: str, sources: Sequence[SourceFile]) -> str:
    sections = [f"Relevant code units:\n{listing}"]
    for source in sources:
        sections.append(f"File: {source.path}\n```\n{source.content.rstrip()}\n```")
    return "\n\n".join(sections)


def build_system_prompt(grounding: str, history: Sequence[str] = ()) -> str:
    """Combine the instructions, the grounding context and prior turns.

    ``history`` must already be in chronological order.
    """

    prompt = SYSTEM_INSTRUCTIONS
    if grounding.strip():
        prompt += (
            "\n\nHere is relevant code from their codebase to reference:\n---\n"
            f"{grounding}\n---\n"
            "\nUse this code context to ask targeted, Socratic questions about their actual implementation."
        )
    turns = [turn for turn in history if turn.strip()]
    if turns:
        prompt += "\n\nPrevious conversation for context:\n" + "\n".join(turns)
    return prompt


__all__ = [
    "NO_MATCHES_MESSAGE",
    "SYSTEM_INSTRUCTIONS",
    "SourceFile",
    "build_grounding",
    "build_system_prompt",
    "render_listing",
    "similarity_percent",
]
