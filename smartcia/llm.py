from __future__ import annotations

import json
import logging
import re
import time
import uuid
from typing import Any, Dict, List, Optional, Union
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout

import google.generativeai as genai
from pydantic import ValidationError

from smartcia import schemas
from smartcia.config import GEMINI_MODEL, GRADING_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?")

DEFAULT_GENERATED_MARKS = 5


class LLMError(RuntimeError):
    """The Gemini call failed, timed out, or returned unusable text."""


class QuestionGenerationError(RuntimeError):
    pass


def strip_fences(text: str) -> str:
    """Drop markdown code fences the model sometimes wraps around its JSON."""
    return _FENCE_RE.sub("", text).strip()


def parse_json_response(text: Optional[str]) -> Any:
    if not text:
        raise LLMError("No response from AI")
    try:
        return json.loads(strip_fences(text))
    except json.JSONDecodeError as e:
        raise LLMError(f"Unparsable AI response: {e}") from e


def _call_gemini(prompt: str, api_key: Optional[str], model_name: str, timeout_seconds: float) -> str:
    """
    Runs one generate_content call with a hard timeout and returns the raw text.
    Raises LLMError on a missing key, timeout, SDK error or empty response.
    """
    if not api_key:
        raise LLMError("Gemini API key is not configured")

    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(model_name)

    def _call_gen():
        return model.generate_content(
            prompt,
            generation_config={"response_mime_type": "application/json"},
        )

    ex = ThreadPoolExecutor(max_workers=1)
    try:
        fut = ex.submit(_call_gen)
        try:
            response = fut.result(timeout=timeout_seconds)
        except FuturesTimeout as e:
            raise LLMError(f"Gemini did not respond within {timeout_seconds:g}s") from e
        except Exception as e:
            raise LLMError(str(e) or e.__class__.__name__) from e
    finally:
        # a timed-out call cannot be aborted; don't block on it
        ex.shutdown(wait=False)

    text = getattr(response, "text", None)
    if not text:
        raise LLMError("No response from AI")
    return text


class GeminiGrader:
    """
    Subjective-answer grader backed by Gemini.
    Called with the question text, max marks, the rubric (or sample answer)
    and the student's answer; returns a dict with ``score`` and ``feedback``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = GEMINI_MODEL,
        timeout_seconds: float = GRADING_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds

    def __call__(self, question_text: str, max_marks: float, reference: str, student_answer: str) -> Dict[str, Any]:
        prompt = (
            "You are an expert academic grader. Evaluate the following student answer based on the "
            "provided question, max marks, and grading rubric/reference.\n\n"
            f'Question: "{question_text}"\n'
            f"Max Marks: {max_marks:g}\n"
            f'Reference/Rubric: "{reference}"\n'
            f'Student Answer: "{student_answer}"\n\n'
            "Provide a JSON response with:\n"
            f'1. "score" (number): The score awarded (0 to {max_marks:g}). Can be decimal.\n'
            '2. "feedback" (string): A concise explanation of the score (max 2 sentences).\n'
            "Return JSON only."
        )
        data = parse_json_response(_call_gemini(prompt, self.api_key, self.model_name, self.timeout_seconds))
        if not isinstance(data, dict):
            raise LLMError("AI response is not a JSON object")
        return data


_TYPE_INSTRUCTIONS = {
    schemas.GenerationType.MIXED: "Create a mix of Multiple Choice (MCQ) and Short Answer questions.",
    schemas.GenerationType.MCQ: "Create only Multiple Choice (MCQ) questions.",
    schemas.GenerationType.SHORT_ANSWER: "Create only Short Answer questions.",
}


def new_question_id() -> str:
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:9]}"


def normalize_generated_questions(raw_items: Any) -> List[schemas.Question]:
    """
    Model output -> Question list.
    Every item gets a fresh id; marks default to 5, options to [] and rubric to "".
    """
    if not isinstance(raw_items, list):
        raise QuestionGenerationError("AI response is not a JSON array")

    questions: List[schemas.Question] = []
    for item in raw_items:
        if not isinstance(item, dict):
            raise QuestionGenerationError(f"Unexpected question item: {item!r}")
        try:
            questions.append(schemas.Question(
                id=new_question_id(),
                text=item.get("text") or "",
                type=item.get("type"),
                marks=item.get("marks") or DEFAULT_GENERATED_MARKS,
                options=item.get("options") or [],
                correct_option_index=item.get("correctOptionIndex", item.get("correct_option_index")),
                rubric=item.get("rubric") or "",
            ))
        except ValidationError as e:
            raise QuestionGenerationError(f"Invalid generated question: {e}") from e
    return questions


def generate_questions(
    topic: str,
    api_key: Optional[str],
    count: int = 3,
    qtype: Union[schemas.GenerationType, str] = schemas.GenerationType.MIXED,
    model_name: str = GEMINI_MODEL,
    timeout_seconds: float = 30.0,
) -> List[schemas.Question]:
    """
    Ask Gemini for ``count`` questions about ``topic``.
    Unlike grading, failures are raised as QuestionGenerationError for the caller to report.
    """
    qtype = schemas.GenerationType(qtype)
    prompt = (
        f'Generate {count} exam questions about the topic: "{topic}".\n'
        f"{_TYPE_INSTRUCTIONS[qtype]}\n\n"
        "For MCQs: Provide 4 distinct options and the 0-based index of the correct option.\n"
        "For Short Answers: Provide a specific grading rubric or key points.\n\n"
        "Return a JSON array of question objects with keys: text (string), "
        'type ("MCQ" | "SHORT_ANSWER" | "LONG_ANSWER"), marks (number), options (array of strings), '
        "correctOptionIndex (number), rubric (string)."
    )
    try:
        raw = parse_json_response(_call_gemini(prompt, api_key, model_name, timeout_seconds))
    except LLMError as e:
        logger.error("AI generation failed: %s", e)
        raise QuestionGenerationError(str(e)) from e

    questions = normalize_generated_questions(raw)
    if not questions:
        raise QuestionGenerationError("No questions generated")
    return questions
