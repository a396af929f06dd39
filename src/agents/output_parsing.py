"""Pull JSON out of model replies, with canned content when nothing usable comes back."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger("pointer.agents.parsing")

_FENCE_RE = re.compile(r"```[a-zA-Z]*")


def extract_embedded_json(text: str) -> dict[str, Any] | None:
    """Best-effort extraction of a JSON object from model output.

    Models wrap JSON in prose or code fences. Attempts, in order:

    1. the span from the first ``{`` to the last ``}``;
    2. the same span with code-fence markers and line breaks removed;
    3. the first object that ``json.JSONDecoder.raw_decode`` can read
       starting at any ``{`` (handles several objects in one reply).

    Returns None when nothing parses; callers substitute fallback content.
    """
    if not text:
        return None

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    candidate = text[start:end + 1]
    try:
        parsed = json.loads(candidate)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    cleaned = _FENCE_RE.sub("", candidate).replace("```", "")
    cleaned = cleaned.replace("\r", "").replace("\n", " ").strip()
    try:
        parsed = json.loads(cleaned)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            parsed, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        idx = text.find("{", idx + 1)

    logger.info("No JSON object found in %d chars of model output", len(text))
    return None


# ---------------------------------------------------------------------------
# Coding quiz
# ---------------------------------------------------------------------------

_PLACEHOLDER_OPTIONS = ["Option A", "Option B", "Option C", "Option D"]


def normalize_coding_quiz(data: dict[str, Any], quiz_id: str) -> dict[str, Any] | None:
    """Coerce a parsed coding quiz into the response shape.

    Accepts ``{"quiz": {...}}`` or a bare quiz object, and both snake_case and
    camelCase answer keys. Returns None when there is no question list.
    """
    quiz = data.get("quiz") if isinstance(data.get("quiz"), dict) else data
    questions = quiz.get("questions")
    if not isinstance(questions, list):
        return None

    norm: list[dict[str, Any]] = []
    for idx, q in enumerate(questions):
        if not isinstance(q, dict):
            continue
        answer = q.get("correct_answer", q.get("correctAnswer"))
        options = q.get("options")
        norm.append({
            "id": q.get("id") or f"q{idx + 1}",
            "question": q.get("question") or f"Question {idx + 1}",
            "options": [str(o) for o in options] if isinstance(options, list) else list(_PLACEHOLDER_OPTIONS),
            "correct_answer": answer if isinstance(answer, int) and not isinstance(answer, bool) else 0,
            "explanation": q.get("explanation") or "No explanation provided.",
        })

    return {
        "id": str(quiz.get("id") or quiz_id),
        "questions": norm,
        "total_questions": len(norm),
    }


def code_aware_coding_quiz(code: str, quiz_id: str) -> dict[str, Any]:
    """Fallback quiz shaped by a few surface features of the submitted code."""
    line_count = len(code.split("\n"))
    has_function = any(tok in code for tok in ("function", "def", "const", "let"))
    has_loop = any(tok in code for tok in ("for", "while", "forEach"))

    questions = [
        {
            "id": "q1",
            "question": f"What is the main purpose of this {'program' if line_count > 10 else 'code snippet'}?",
            "options": [
                "To process and manipulate data",
                "To display information to the user",
                "To perform mathematical calculations",
                "To handle user input and validation",
            ],
            "correct_answer": 0,
            "explanation": "Based on the code structure, this appears to be designed for data processing and manipulation.",
        },
        {
            "id": "q2",
            "question": "What type of function is this?" if has_function else "What programming construct is this?",
            "options": ["Recursive function", "Async function", "Arrow function", "Regular function"],
            "correct_answer": 3 if has_function else 2,
            "explanation": (
                "This appears to be a regular function based on the syntax."
                if has_function else "This appears to be a code block or expression."
            ),
        },
        {
            "id": "q3",
            "question": "What would happen if the input is null or undefined?",
            "options": [
                "The code would crash with an error",
                "It would return null or undefined",
                "It would throw a specific exception",
                "It would continue normally",
            ],
            "correct_answer": 0,
            "explanation": "Without proper null checking, the code would likely crash when processing null or undefined values.",
        },
        {
            "id": "q4",
            "question": "What is the time complexity of this algorithm?" if has_loop else "What is the computational complexity?",
            "options": [
                "O(1) - Constant time",
                "O(n) - Linear time",
                "O(n²) - Quadratic time",
                "O(log n) - Logarithmic time",
            ],
            "correct_answer": 1 if has_loop else 0,
            "explanation": (
                "Based on the loop structure, this appears to have linear time complexity."
                if has_loop else "This appears to be a simple operation with constant time complexity."
            ),
        },
        {
            "id": "q5",
            "question": "Which programming concept is most prominently demonstrated here?",
            "options": [
                "Object-oriented programming",
                "Functional programming",
                "Procedural programming",
                "Event-driven programming",
            ],
            "correct_answer": 2,
            "explanation": "This code appears to follow procedural programming principles with step-by-step execution.",
        },
    ]
    return {"id": quiz_id, "questions": questions, "total_questions": len(questions)}


def static_coding_quiz(quiz_id: str) -> dict[str, Any]:
    """Fallback quiz used when the model could not be reached at all."""
    questions = [
        {
            "id": "q1",
            "question": "What is the main purpose of this code?",
            "options": ["To process data", "To display information", "To calculate values", "To handle errors"],
            "correct_answer": 0,
            "explanation": "This code appears to process data based on the logic shown.",
        },
        {
            "id": "q2",
            "question": "What type of function is this?",
            "options": ["Recursive function", "Async function", "Arrow function", "Regular function"],
            "correct_answer": 3,
            "explanation": "This appears to be a regular function based on the syntax.",
        },
        {
            "id": "q3",
            "question": "What would happen if the input is null?",
            "options": ["The code would crash", "It would return null", "It would throw an error", "It would continue normally"],
            "correct_answer": 0,
            "explanation": "Without null checking, the code would likely crash when processing null values.",
        },
        {
            "id": "q4",
            "question": "What is the time complexity of this algorithm?",
            "options": ["O(1)", "O(n)", "O(n²)", "O(log n)"],
            "correct_answer": 1,
            "explanation": "Based on the code structure, this appears to have linear time complexity.",
        },
        {
            "id": "q5",
            "question": "Which programming concept is demonstrated here?",
            "options": ["Inheritance", "Polymorphism", "Encapsulation", "Abstraction"],
            "correct_answer": 3,
            "explanation": "The code abstracts complex operations into simpler, more manageable functions.",
        },
    ]
    return {"id": quiz_id, "questions": questions, "total_questions": len(questions)}


# ---------------------------------------------------------------------------
# Essay draft
# ---------------------------------------------------------------------------

def normalize_essay_draft(data: dict[str, Any], thesis: str) -> dict[str, Any]:
    """Fill missing draft fields; accepts ``bodyParagraphs`` as an alias."""
    body = data.get("body_paragraphs", data.get("bodyParagraphs"))
    paragraphs: list[dict[str, str]] = []
    if isinstance(body, list):
        for idx, p in enumerate(body):
            if isinstance(p, dict):
                paragraphs.append({
                    "title": str(p.get("title") or f"Body Paragraph {idx + 1}"),
                    "content": str(p.get("content") or ""),
                })
            elif isinstance(p, str):
                paragraphs.append({"title": f"Body Paragraph {idx + 1}", "content": p})
    return {
        "thesis": str(data.get("thesis") or thesis),
        "introduction": str(data.get("introduction") or ""),
        "body_paragraphs": paragraphs,
        "conclusion": str(data.get("conclusion") or ""),
        "outline": str(data.get("outline") or ""),
    }


def essay_draft_from_text(text: str, thesis: str) -> dict[str, Any]:
    """Split plain prose on blank lines into a draft when no JSON came back."""
    sections = [s for s in re.split(r"\n\s*\n+", text.strip()) if s.strip()] if text else []

    def _section(i: int, default: str) -> str:
        return sections[i].strip() if i < len(sections) else default

    return {
        "thesis": thesis,
        "introduction": _section(0, "Generated introduction"),
        "body_paragraphs": [
            {"title": f"Body Paragraph {n}", "content": _section(n, f"Generated body paragraph {n}")}
            for n in (1, 2, 3)
        ],
        "conclusion": _section(4, "Generated conclusion"),
        "outline": "Essay generated from AI response",
    }


def essay_draft_error(thesis: str) -> dict[str, Any]:
    return {
        "thesis": thesis,
        "introduction": "Error generating the essay. Please try again with a different thesis.",
        "body_paragraphs": [
            {
                "title": "Body Paragraph 1",
                "content": "The AI response couldn't be turned into an essay. Please try with a more specific thesis or topic.",
            }
        ],
        "conclusion": "Please try generating the essay again.",
        "outline": "Error occurred during generation.",
    }
