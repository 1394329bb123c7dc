"""Prompt templates and per-feature generation parameters."""

from __future__ import annotations

from studymate.ai.models import Feature, PromptConfig, Task

CHAT_SYSTEM_PROMPT = (
    "You are StudyMate, a friendly and knowledgeable study assistant. "
    "Help students understand concepts, answer questions clearly and concisely, "
    "and suggest effective study techniques when relevant."
)

SUMMARY_PROMPT = (
    "Please summarize the following text into 5-7 key bullet points. "
    "Focus on the main concepts and important details:"
)

QUIZ_PROMPT = """Create a 3-question multiple-choice quiz based on the following text.
Return ONLY a valid JSON object with this exact structure:
{
  "questions": [
    {
      "question": "Question text here?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "answer": 0,
      "explanation": "Brief explanation of why this is correct"
    }
  ]
}"""

FLASHCARD_PROMPT = """Create 5 flashcards from the following study material.
Return ONLY a valid JSON object with this exact structure:
{
  "flashcards": [
    {
      "front": "Question or term",
      "back": "Answer or definition"
    }
  ]
}"""

STUDY_PLAN_PROMPT = """Create a one-day study plan for a student.
Return ONLY a valid JSON array (no surrounding object) with this exact structure:
[
  {
    "time": "9:00 AM - 10:30 AM",
    "subject": "Subject name",
    "task": "Concrete study task"
  }
]"""

PROMPTS: dict[Feature, PromptConfig] = {
    Feature.CHAT: PromptConfig(
        template=CHAT_SYSTEM_PROMPT, max_tokens=1000, temperature=0.7, task=Task.CHAT,
    ),
    Feature.SUMMARY: PromptConfig(
        template=SUMMARY_PROMPT, max_tokens=1000, temperature=0.3, task=Task.ANALYSIS,
    ),
    Feature.QUIZ: PromptConfig(
        template=QUIZ_PROMPT, max_tokens=1000, temperature=0.3, task=Task.GENERATION,
        json_output=True,
    ),
    Feature.FLASHCARDS: PromptConfig(
        template=FLASHCARD_PROMPT, max_tokens=800, temperature=0.3, task=Task.GENERATION,
        json_output=True,
    ),
    # Top-level array: the json_object response format would reject it.
    Feature.STUDY_PLAN: PromptConfig(
        template=STUDY_PLAN_PROMPT, max_tokens=1200, temperature=0.4, task=Task.GENERATION,
    ),
    Feature.IMAGE: PromptConfig(template="", max_tokens=0, temperature=0.0, task=Task.IMAGE),
    Feature.TRANSCRIPTION: PromptConfig(template="", max_tokens=0, temperature=0.0, task=Task.AUDIO),
}


def build_summary_prompt(text: str) -> str:
    return f"{PROMPTS[Feature.SUMMARY].template}\n\n{text}"


def build_quiz_prompt(text: str) -> str:
    return f"{PROMPTS[Feature.QUIZ].template}\n\nText to base quiz on: {text}"


def build_flashcard_prompt(text: str) -> str:
    return f"{PROMPTS[Feature.FLASHCARDS].template}\n\nStudy material: {text}"


def build_study_plan_prompt(subjects: str, goals: str) -> str:
    return (
        f"{PROMPTS[Feature.STUDY_PLAN].template}\n\n"
        f"Subjects: {subjects}\n"
        f"Goals: {goals}"
    )
