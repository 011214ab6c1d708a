"""
Quiz attempt controller.

ANSWERING(i) -> ANSWERED(i, option) -> ANSWERING(i + 1)
                                    -> SUBMITTING -> RESULT(score, total)

Which stored results block a new scored attempt is decided by AttemptGate.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .entities import QuizQuestion, QuizResult
from .errors import Conflict, PortalError

logger = logging.getLogger(__name__)

DEFAULT_SET = 'default'
PRACTICE_SET = 'practice'

PLACEHOLDER_OPTIONS = ['Yes', 'No', 'Maybe', "I don't know"]

DEFAULT_QUESTIONS = [
    QuizQuestion(
        id='q1',
        question='What does 你好 (Nǐ hǎo) mean?',
        options=['Hello', 'Goodbye', 'Thank you', 'I love you'],
        correct_answer='Hello',
        explanation='"Nǐ" means "you" and "hǎo" means "good".',
    ),
    QuizQuestion(
        id='q2',
        question='How do you say "thank you" in Mandarin?',
        options=['谢谢 (Xièxie)', '再见 (Zàijiàn)', '对不起 (Duìbuqǐ)', '没关系 (Méi guānxi)'],
        correct_answer='谢谢 (Xièxie)',
        explanation='谢谢 is the everyday way to thank someone.',
    ),
    QuizQuestion(
        id='q3',
        question='Which tone does the syllable "mā" carry?',
        options=['First tone', 'Second tone', 'Third tone', 'Fourth tone'],
        correct_answer='First tone',
        explanation='A macron (ā) marks the high, level first tone.',
    ),
]


class QuizPhase(str, Enum):
    ANSWERING = 'ANSWERING'
    ANSWERED = 'ANSWERED'
    SUBMITTING = 'SUBMITTING'
    RESULT = 'RESULT'


class AttemptGate(str, Enum):
    # Only the default quiz is one-attempt; generated practice sets are unlimited.
    DEFAULT_SET_ONLY = 'default_only'
    # One scored result per user, whatever the question set.
    ONCE_PER_USER = 'once_per_user'

    @classmethod
    def parse(cls, value, default=None):
        try:
            return cls(value)
        except ValueError:
            return default or cls.DEFAULT_SET_ONLY

    def gated_set(self) -> Optional[str]:
        """The question_set a prior result must belong to in order to block, None = any."""
        return DEFAULT_SET if self is AttemptGate.DEFAULT_SET_ONLY else None


def normalize_questions(raw: Iterable[Dict[str, Any]]) -> List[QuizQuestion]:
    """
    Turn generated question dicts into QuizQuestions: fresh unique ids (generated
    ids are never trusted) and the placeholder option set wherever fewer than two
    options came back.
    """
    batch = uuid.uuid4().hex[:8]
    questions = []
    for index, item in enumerate(raw):
        options = [str(o) for o in (item.get('options') or [])]
        if len(options) < 2:
            options = list(PLACEHOLDER_OPTIONS)
        questions.append(QuizQuestion(
            id=f'ai_{batch}_{index}',
            question=str(item.get('question', '')),
            options=options,
            correct_answer=str(item.get('correctAnswer', item.get('correct_answer', ''))),
            explanation=str(item.get('explanation', '')),
        ))
    return questions


class QuizController:
    """
    store must provide latest_quiz_result(question_set) and
    submit_quiz_result(score, total, question_set) (PortalClient does);
    generator, when given, provides generate_quiz(context, objective) -> list of dicts.
    """

    def __init__(self, store, user_id: str, gate: AttemptGate = AttemptGate.DEFAULT_SET_ONLY,
                 questions: Optional[List[QuizQuestion]] = None, generator=None,
                 on_notice: Optional[Callable[[str], None]] = None):
        self.store = store
        self.user_id = user_id
        self.gate = gate
        self.generator = generator
        self.on_notice = on_notice
        self.default_questions = list(questions or DEFAULT_QUESTIONS)
        self.questions = list(self.default_questions)
        self.question_set = DEFAULT_SET
        self.phase = QuizPhase.ANSWERING
        self.index = 0
        self.selected: Optional[str] = None
        self.score = 0
        self.previous_result: Optional[QuizResult] = None
        self.result: Optional[QuizResult] = None
        self._gate_closed = False

    # ------------------------------------------------------------
    # Read-only helpers for the view
    # ------------------------------------------------------------
    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.phase in (QuizPhase.ANSWERING, QuizPhase.ANSWERED):
            return self.questions[self.index]
        return None

    @property
    def is_practice(self) -> bool:
        return self.question_set == PRACTICE_SET

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------
    def start(self) -> QuizPhase:
        """Begin the default quiz, or jump straight to RESULT if the gate already holds a result."""
        self._restart(self.default_questions, DEFAULT_SET)
        try:
            prior = self.store.latest_quiz_result(self.gate.gated_set())
        except PortalError as e:
            logger.error(f"Could not check previous quiz result: {e}")
            prior = None
        if prior is not None:
            self.previous_result = prior
            self.result = prior
            self._gate_closed = True
            self.phase = QuizPhase.RESULT
        return self.phase

    def select_option(self, option: str) -> bool:
        if self.phase is not QuizPhase.ANSWERING or self.previous_result is not None:
            return False
        self.selected = option
        self.phase = QuizPhase.ANSWERED
        if self.questions[self.index].is_correct(option):
            self.score += 1
        return True

    def advance(self) -> bool:
        if self.phase is not QuizPhase.ANSWERED:
            return False
        if self.index < len(self.questions) - 1:
            self.index += 1
            self.selected = None
            self.phase = QuizPhase.ANSWERING
            return True
        self._submit()
        return True

    def reset(self, questions: Optional[List[QuizQuestion]] = None) -> bool:
        """
        Leave RESULT for a new attempt. New questions are a practice set; without
        them the current set is replayed, which the gate may forbid.
        """
        if self.phase is not QuizPhase.RESULT:
            return False
        if questions:
            return self._load_practice(questions)
        if self._gate_closed and self._closes_gate(self.question_set):
            return False
        self._restart(self.questions, self.question_set)
        return True

    def generate(self, context: str, objective: str) -> bool:
        """Fetch a generated practice set and switch to it; nothing usable leaves state untouched."""
        if self.generator is None or not context.strip() or self.phase is QuizPhase.SUBMITTING:
            return False
        questions = normalize_questions(self.generator.generate_quiz(context, objective))
        if not questions:
            self._notify('Quiz generation failed; try another topic.')
            return False
        if not self._load_practice(questions):
            self._notify('You have already used your quiz attempt.')
            return False
        return True

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------
    def _load_practice(self, questions):
        if self._gate_closed and self.gate is AttemptGate.ONCE_PER_USER:
            return False
        self._restart(questions, PRACTICE_SET)
        return True

    def _restart(self, questions, question_set):
        self.questions = list(questions)
        self.question_set = question_set
        self.phase = QuizPhase.ANSWERING
        self.index = 0
        self.selected = None
        self.score = 0
        self.previous_result = None
        self.result = None

    def _closes_gate(self, question_set) -> bool:
        return self.gate is AttemptGate.ONCE_PER_USER or question_set == DEFAULT_SET

    def _submit(self):
        self.phase = QuizPhase.SUBMITTING
        local = QuizResult(id=None, user_id=self.user_id, score=self.score,
                           total=len(self.questions), question_set=self.question_set)
        try:
            stored = self.store.submit_quiz_result(self.score, len(self.questions), self.question_set)
        except Conflict:
            logger.warning(f"Quiz result for user {self.user_id} was already recorded")
            self._notify('A result for this quiz was already recorded.')
            self._gate_closed = True
            stored = None
        except PortalError as e:
            logger.error(f"Failed to save quiz result: {e}")
            self._notify('Your score could not be saved.')
            stored = None
        if stored is not None and self._closes_gate(self.question_set):
            self._gate_closed = True
        self.result = stored or local
        self.phase = QuizPhase.RESULT

    def _notify(self, text):
        if self.on_notice is not None:
            self.on_notice(text)
