"""
Prompts for mastery-loop content generation.

Four call shapes:
- Remediation notes (markdown crash course on the missed topics)
- Remediation flashcards (JSON: {"flashcards": [...]})
- Detailed assessment report (JSON object)
- Quiz generation (JSON array of questions), used by the quiz composer
"""
from __future__ import annotations

from typing import Sequence

# =============================================================================
# System Prompt (Applied to All Generation)
# =============================================================================

SYSTEM_PROMPT = """You are an expert tutor helping a student close specific knowledge gaps.
Be precise and academically rigorous. Never add pleasantries.
When asked for JSON, respond with the JSON only."""


# =============================================================================
# Remediation
# =============================================================================

REMEDIATION_NOTES_PROMPT = """Construct an exhaustive crash course teaching these specific missed concepts: {topics}.
This is not a summary; it is an analytical deep-dive designed to bridge the gap to mastery.

INSTRUCTIONAL REQUIREMENTS:
1. Explain each concept from the ground up, then scale to advanced synthesis.
2. Use ## headers for each concept, #### for granular definitions, and > blockquotes for critical insights.
3. Use markdown tables to compare subtle differences between the missed topics.
4. Tone: expert mentor. Academic, precise, uncompromising on depth.

Do NOT include pleasantries. Start immediately with the headers."""

REMEDIATION_FLASHCARDS_PROMPT = """Generate EXACTLY {count} highly targeted flashcards to help a student memorize these exact concepts they failed in a quiz: [{topics}].
Every card must target one of those concepts and nothing else.
CRITICAL RULE: each "answer" MUST be concise (1-3 short sentences). No paragraphs.
Output strictly as a JSON object: {{ "flashcards": [{{ "question": "...", "answer": "..." }}] }}"""


# =============================================================================
# Assessment Report
# =============================================================================

ASSESSMENT_REPORT_PROMPT = """Act as an expert academic assessor. The student scored {score}% (pass mark {threshold}%).
Analyze the graded responses in the context and return ONLY a JSON object with this shape:
{{
  "overall_analysis": "2-3 sentence verdict",
  "strengths": ["topic", ...],
  "weaknesses": ["topic", ...],
  "detailed_feedback": [
    {{"question_snippet": "...", "explanation": "...", "concept": "...", "approach": "...",
      "weak_point": "...", "isCorrect": true, "userAnswer": "...", "correctAnswer": "..."}}
  ],
  "remediation_notes": "markdown notes on the weak topics"
}}"""


# =============================================================================
# Quiz Generation
# =============================================================================

QUESTION_KIND_DESCRIPTIONS = {
    "mcq": "Multiple Choice Questions with 4 options each",
    "short_answer": "Short answer questions requiring 2-3 sentence answers",
    "mixed": "A mix of multiple choice and short answer questions",
}

QUIZ_PROMPT = """You are an expert education assessment designer. Generate a quiz with these specifications:

Subject: {subject}
{chapters_line}Number of Questions: {count}
Difficulty: {difficulty}
Question Type: {kind_description}
{slot_plan}
RESPOND WITH ONLY A VALID JSON ARRAY of questions. Each question object must have:
{{
  "id": "q1",
  "type": "mcq" | "short_answer",
  "question": "the question text",
  "options": ["...", "...", "...", "..."],
  "correctAnswer": "the correct answer (for mcq, the exact text of one option)",
  "explanation": "why this is correct",
  "difficulty": "easy" | "medium" | "hard",
  "topic": "specific topic name",
  "chapter": "chapter name",
  "marks": 1
}}

Rules:
- For short_answer questions, omit the "options" field
- MCQ options must be distinct
- Each question must carry a clear, specific "topic" tag for weakness tracking
- Where a question slot names a topic, the question's "topic" must be exactly that name

Return ONLY the JSON array, no markdown, no explanation."""


# =============================================================================
# Prompt Factory
# =============================================================================


def _join_topics(topics: Sequence[str]) -> str:
    return ", ".join(topics) if topics else "the quiz material"


def get_remediation_notes_prompt(weak_topics: Sequence[str]) -> str:
    return REMEDIATION_NOTES_PROMPT.format(topics=_join_topics(weak_topics))


def get_remediation_flashcards_prompt(weak_topics: Sequence[str], count: int) -> str:
    return REMEDIATION_FLASHCARDS_PROMPT.format(topics=_join_topics(weak_topics), count=count)


def get_assessment_report_prompt(score_percent: int, threshold: int) -> str:
    return ASSESSMENT_REPORT_PROMPT.format(score=score_percent, threshold=threshold)


def get_quiz_prompt(
    subject: str,
    count: int,
    difficulty: str,
    kind: str,
    slot_plan: str = "",
    chapters: Sequence[str] = (),
) -> str:
    """
    Build the quiz-generation prompt.

    Args:
        subject: Subject of the quiz
        count: Number of questions requested
        difficulty: easy / medium / hard / adaptive
        kind: mcq / short_answer / mixed
        slot_plan: Rendered per-slot topic assignments (weak-topic quota)
        chapters: Optional chapter filter

    Returns:
        Formatted prompt string
    """
    chapters_line = f"Chapters/Topics: {', '.join(chapters)}\n" if chapters else ""
    if difficulty == "adaptive":
        difficulty = "Start easy, gradually increase difficulty"
    return QUIZ_PROMPT.format(
        subject=subject,
        chapters_line=chapters_line,
        count=count,
        difficulty=difficulty,
        kind_description=QUESTION_KIND_DESCRIPTIONS.get(kind, QUESTION_KIND_DESCRIPTIONS["mcq"]),
        slot_plan=f"\n{slot_plan}\n" if slot_plan else "",
    )


def get_system_prompt() -> str:
    """Get the system prompt sent with every generation call."""
    return SYSTEM_PROMPT
