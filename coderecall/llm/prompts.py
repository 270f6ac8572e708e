"""
System prompts and response schema for flashcard generation.

The question-list prompt targets the vendor chat backend, which returns a
JSON array of question strings. The structured prompt targets backends that
honor a strict JSON schema and return full question/answer/highlight items.
"""

from __future__ import annotations

from coderecall.flashcards.models import ContentType

QUESTION_LIST_FORMAT = 'Output the questions as a JSON array of strings only, e.g. ["First question", "Second question", ...].'

MARKDOWN_QUESTION_PROMPT = (
    "You are helping a developer review what they learned. Read the markdown document and write "
    "interview-style questions about its content. Each question must be answerable from the document. "
    + QUESTION_LIST_FORMAT
)

CODE_DIFF_QUESTION_PROMPT = (
    "You are helping a developer review their own code changes. Read the commit diff and write "
    "interview-style questions about the purpose of the change, how the changed code behaves, and "
    "what impact it has on the rest of the system. " + QUESTION_LIST_FORMAT
)

STRUCTURED_PROMPT = """You write technical interview flashcards from a developer's own work.

Input is either a markdown document or a commit diff summary.
- For markdown, ask about the concepts the document explains.
- For a diff, ask about the purpose of the change, the behavior of the changed code, and its impact.

Return JSON matching the schema: {"items": [{"question", "answer", "highlights"}]}.
- question: one focused question.
- answer: a concise answer grounded in the input.
- highlights: short phrases copied character-for-character from the input that justify the question.
  Never paraphrase a highlight; if nothing can be copied exactly, return an empty list.
Write 2 to 5 items."""

REGENERATE_QUESTION_PROMPT = """You rewrite a single technical interview flashcard question.

You receive the source material, the existing question, and the existing answer.
Write exactly ONE new question that is different from the existing question but is still fully
answered by the existing answer. Do not change the answer.

Return JSON matching the schema with exactly one item: {"items": [{"question", "answer", "highlights"}]}.
- answer: repeat the existing answer unchanged.
- highlights: short phrases copied character-for-character from the existing answer or the source
  material that justify the new question. Never paraphrase a highlight."""

FLASHCARD_RESPONSE_SCHEMA = {
    "type": "json_schema",
    "json_schema": {
        "name": "flashcard_items",
        "description": "Technical interview flashcard questions and answers",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "question": {"type": "string"},
                            "answer": {"type": "string"},
                            "highlights": {"type": "array", "items": {"type": "string"}},
                        },
                        "required": ["question", "answer", "highlights"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["items"],
            "additionalProperties": False,
        },
    },
}


def question_list_prompt(content_type: ContentType) -> str:
    if content_type == ContentType.CODE_DIFF:
        return CODE_DIFF_QUESTION_PROMPT
    return MARKDOWN_QUESTION_PROMPT


def build_regenerate_user_content(raw_diff: str, existing_question: str, existing_answer: str) -> str:
    return (
        f"{raw_diff}\n\n---\n[Regenerate question]\n"
        f"Existing question: {existing_question}\n"
        f"Existing answer: {existing_answer}\n\n"
        "Write ONE new interview question that fits the source and answer above and differs from the "
        "existing question. (Keep the answer as is; write only a new question and highlights.)"
    )
