"""Prompt templates and the handful of localized strings the core logic emits."""

from __future__ import annotations

from typing import Optional

from rust_mentor.data_models import ChatMode

LANGUAGE_NAMES = {"en": "English", "zh": "Chinese"}

MENTOR_PROMPT = """You are a world-class Rust Programming Mentor.
Your goal is to help the user master Rust using the Feynman Technique.
IMPORTANT: Please respond primarily in {language}.{chapter_focus}

Key principles:
1. Encourage deep understanding over rote memorization.
2. Focus on core Rust concepts: Ownership, Borrowing, Lifetimes, Safety.
3. If the user is explaining a concept (Feynman Mode), listen carefully, then identify gaps or misunderstandings.
4. Be concise but technically accurate.
5. Provide high-quality Rust code examples using Markdown.
6. Always check if the user is ready for the next level or needs more practice on current topics."""

CHAPTER_FOCUS = (
    '\nCURRENT CHAPTER FOCUS: "{chapter}". '
    "Keep explanations and exercises strictly related to this topic."
)

MODE_LINES = {
    ChatMode.FEYNMAN: "Wait for the user to explain a concept and then critique it.",
    ChatMode.COACH: "The user will ask questions or request a curriculum.",
}

ARTIFACT_PROMPT = """Based on the learning session provided, generate a structured markdown "Knowledge Artifact".
Include:
- Summary of concepts discussed.
- Key code snippets learned.
- Critical insights or common pitfalls identified.
- Areas that need more review (Gap Analysis).
Output ONLY the markdown content. Write it primarily in {language}."""

QUIZ_PROMPT = """Generate a {count}-question multiple choice quiz for the Rust programming topic: "{chapter}".
For each question, provide {options} options, the correct answer index (0-{last_index}), and a brief explanation.
Language: {language}.
Return ONLY JSON."""

QUIZ_SYSTEM = "You are a quiz generator for a Rust programming course."

CURRICULUM_PROMPT = """Analyze this document and extract its main chapters or learning sections to create a structured Rust programming curriculum.
Return a JSON array of strings, where each string is a chapter title.
The output should be primarily in {language}.
Ensure the chapters follow the logical order of the document."""

CURRICULUM_SYSTEM = "You turn course documents into ordered chapter lists."

_STRINGS = {
    "en": {
        "chat_error": "Error connecting to mentor. Please check your connection or configuration.",
        "artifact_title": "Learning Session",
    },
    "zh": {
        "chat_error": "连接导师失败，请检查网络或配置。",
        "artifact_title": "学习成果",
    },
}


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, "English")


def localized(language: str, key: str) -> str:
    return _STRINGS.get(language, _STRINGS["en"])[key]


def build_system_instruction(language: str, mode: ChatMode, chapter_title: Optional[str] = None) -> str:
    """Mentor persona plus language, optional chapter focus and the mode-specific behaviour."""
    chapter_focus = CHAPTER_FOCUS.format(chapter=chapter_title) if chapter_title else ""
    base = MENTOR_PROMPT.format(language=language_name(language), chapter_focus=chapter_focus)
    return f"{base}\nCurrently in {mode.value} mode. {MODE_LINES[mode]}"


def artifact_prompt(language: str) -> str:
    return ARTIFACT_PROMPT.format(language=language_name(language))


def quiz_prompt(chapter_title: str, language: str, count: int, options: int = 4) -> str:
    return QUIZ_PROMPT.format(
        count=count,
        chapter=chapter_title,
        options=options,
        last_index=options - 1,
        language=language_name(language),
    )


def curriculum_prompt(language: str) -> str:
    return CURRICULUM_PROMPT.format(language=language_name(language))
