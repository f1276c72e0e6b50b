"""
Chain-of-Thought Module - Step-by-step reasoning prompts.
========================================================

Appends a reasoning instruction to system prompts and splits a numbered
step-by-step answer back into its steps and the final answer.
"""

import re
from dataclasses import dataclass, field

COT_INSTRUCTION = (
    "Adım adım düşün. Her mantıksal adımı ayrı paragrafta açıkla, "
    "sonra kesin yanıtı ver."
)

_STEP_PATTERN = re.compile(r"^\d+\.\s+(.+)")


@dataclass
class ReasoningStep:
    step: int
    reasoning: str


@dataclass
class ParsedAnswer:
    steps: list[ReasoningStep] = field(default_factory=list)
    final_answer: str = ""


def wrap_system_prompt(base_prompt: str) -> str:
    """Append the step-by-step instruction to a system prompt."""
    return f"{base_prompt}\n\n{COT_INSTRUCTION}"


def parse_steps(response: str) -> ParsedAnswer:
    """
    Split a response into leading numbered steps and the final answer.

    Numbered lines are steps until the first other line; everything from
    there on is the final answer.

    Example:
        >>> parsed = parse_steps("1. CS204 alındı\\n2. Önkoşul tamam\\nEvet, alabilirsin.")
        >>> [s.reasoning for s in parsed.steps]
        ['CS204 alındı', 'Önkoşul tamam']
        >>> parsed.final_answer
        'Evet, alabilirsin.'
    """
    parsed = ParsedAnswer()
    answer_lines: list[str] = []
    in_answer = False

    for line in response.split("\n"):
        match = _STEP_PATTERN.match(line)
        if match and not in_answer:
            parsed.steps.append(ReasoningStep(step=len(parsed.steps) + 1, reasoning=match.group(1)))
        else:
            in_answer = True
            answer_lines.append(line)

    parsed.final_answer = "\n".join(answer_lines).strip()
    return parsed
