"""
ai_gateway.py
=============

Stateless wrapper around the Gemini text endpoint.

Two calls, both with a fixed JSON response schema:
- translate(): free text -> {"hanzi", "pinyin"}
- generate_quiz(): topic + objective -> 5 multiple-choice questions

Neither call raises. Any failure (no API key, transport error, quota,
unparseable or off-schema output) is logged and reported as None / [].
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError, ResourceExhausted
from typing_extensions import TypedDict

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
QUIZ_LENGTH = 5


class Translation(TypedDict):
    hanzi: str
    pinyin: str


class GeneratedQuestion(TypedDict):
    question: str
    options: List[str]
    correctAnswer: str
    explanation: str


TRANSLATE_PROMPT = (
    "Translate the following French or English text to Simplified Chinese (Hanzi) "
    "and provide the Pinyin with tone marks.\n"
    'Text: "{text}"'
)

QUIZ_PROMPT = (
    "You are an expert Mandarin teacher. Write a quiz of exactly {count} "
    "multiple-choice questions based on the text below.\n"
    'Context: "{context}"\n'
    'Learning objective: "{objective}"\n'
    "If the text has nothing to do with Chinese, adapt it into Mandarin exercises "
    "(translation, vocabulary, grammar). Give 4 options per question, make the "
    "wrong options plausible, and copy the correct option verbatim into correctAnswer."
)


class AIGateway:
    """
    Gemini access for the portal.

    model_factory is the seam tests use to replace genai.GenerativeModel; it is
    called with the model name and must return an object with generate_content().
    """

    def __init__(self, api_key: str = "", model_name: str = DEFAULT_MODEL,
                 model_factory: Optional[Callable[[str], Any]] = None):
        self.api_key = api_key or ""
        self.model_name = model_name or DEFAULT_MODEL
        self._model_factory = model_factory
        self._model = None
        if self.api_key and model_factory is None:
            genai.configure(api_key=self.api_key)

    @property
    def available(self) -> bool:
        return bool(self.api_key) or self._model_factory is not None

    # ------------------------------------------------------------
    # Public calls
    # ------------------------------------------------------------
    def translate(self, text: str) -> Optional[Dict[str, str]]:
        if not text or not text.strip():
            return None
        data = self._generate_json(TRANSLATE_PROMPT.format(text=text.strip()), Translation)
        if not isinstance(data, dict):
            return None
        hanzi, pinyin = data.get("hanzi"), data.get("pinyin")
        if not isinstance(hanzi, str) or not isinstance(pinyin, str) or not hanzi:
            logger.warning(f"Translation response did not match the schema: {data!r}")
            return None
        return {"hanzi": hanzi, "pinyin": pinyin}

    def generate_quiz(self, context: str, objective: str) -> List[Dict[str, Any]]:
        """
        Ask for QUIZ_LENGTH questions. Items missing a required field are dropped;
        ids and option-count repair are left to the caller (see quiz.normalize_questions).
        """
        if not context or not context.strip():
            return []
        prompt = QUIZ_PROMPT.format(count=QUIZ_LENGTH, context=context.strip(),
                                    objective=(objective or "").strip())
        data = self._generate_json(prompt, list[GeneratedQuestion])
        if not isinstance(data, list):
            return []

        questions = []
        for item in data:
            if not isinstance(item, dict):
                continue
            if not isinstance(item.get("question"), str) or not isinstance(item.get("correctAnswer"), str):
                continue
            options = item.get("options")
            questions.append({
                "question": item["question"],
                "options": [str(o) for o in options] if isinstance(options, list) else [],
                "correctAnswer": item["correctAnswer"],
                "explanation": str(item.get("explanation") or ""),
            })
        if len(questions) != len(data):
            logger.warning(f"Dropped {len(data) - len(questions)} malformed generated question(s)")
        return questions

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------
    def _get_model(self):
        if self._model is None:
            factory = self._model_factory or genai.GenerativeModel
            self._model = factory(self.model_name)
        return self._model

    def _generate_json(self, prompt: str, schema: Any) -> Any:
        if not self.available:
            logger.info("Gemini API key not configured; AI features are unavailable")
            return None
        try:
            response = self._get_model().generate_content(
                prompt,
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=schema,
                ),
            )
            text = response.text
        except ResourceExhausted:
            logger.warning(f"Gemini quota exhausted (429) for model {self.model_name}")
            return None
        except GoogleAPIError as e:
            logger.error(f"Gemini API error: {e}")
            return None
        except Exception as e:
            # response.text raises ValueError when the candidate was blocked
            logger.error(f"Gemini call failed: {e}")
            return None

        if not text:
            return None
        try:
            return json.loads(text)
        except (TypeError, ValueError):
            logger.warning(f"Gemini returned non-JSON output: {text[:200]}")
            return None
