import pytest

from classroom_portal.entities import QuizQuestion, QuizResult
from classroom_portal.errors import Conflict, PortalConnectionError
from classroom_portal.quiz import (DEFAULT_QUESTIONS, PLACEHOLDER_OPTIONS, AttemptGate, QuizController, QuizPhase,
                                   normalize_questions)


class FakeStore:
    def __init__(self, results=(), submit_error=None):
        self.results = list(results)
        self.submit_error = submit_error
        self.submitted = []
        self.queried = []

    def latest_quiz_result(self, question_set=None):
        self.queried.append(question_set)
        matching = [r for r in self.results if question_set is None or r.question_set == question_set]
        return matching[-1] if matching else None

    def submit_quiz_result(self, score, total, question_set):
        self.submitted.append((score, total, question_set))
        if self.submit_error:
            raise self.submit_error
        result = QuizResult(id=f"r{len(self.results)}", user_id="u1", score=score, total=total, question_set=question_set)
        self.results.append(result)
        return result


class FakeGenerator:
    def __init__(self, questions):
        self.questions = questions

    def generate_quiz(self, context, objective):
        return self.questions


def answer_all(quiz, correct=True):
    while quiz.phase is not QuizPhase.RESULT:
        question = quiz.current_question
        choice = question.correct_answer if correct else next(o for o in question.options if o != question.correct_answer)
        quiz.select_option(choice)
        quiz.advance()


PRACTICE = [QuizQuestion(id="p1", question="1 + 1?", options=["2", "3"], correct_answer="2")]


def test_all_correct_persists_full_score():
    store = FakeStore()
    quiz = QuizController(store, "u1")
    assert quiz.start() is QuizPhase.ANSWERING
    answer_all(quiz)
    n = len(DEFAULT_QUESTIONS)
    assert store.submitted == [(n, n, "default")]
    assert quiz.result.score == quiz.result.total == n
    assert quiz.result.id == "r0"


def test_select_twice_without_advance_is_noop():
    quiz = QuizController(FakeStore(), "u1")
    quiz.start()
    assert quiz.select_option("Hello")
    assert not quiz.select_option("Goodbye")
    assert quiz.phase is QuizPhase.ANSWERED
    assert quiz.selected == "Hello"
    assert quiz.score == 1


def test_advance_requires_an_answer():
    quiz = QuizController(FakeStore(), "u1")
    quiz.start()
    assert not quiz.advance()
    assert quiz.index == 0


def test_prior_result_goes_straight_to_result():
    prior = QuizResult(id="r9", user_id="u1", score=2, total=3)
    store = FakeStore([prior])
    quiz = QuizController(store, "u1")
    assert quiz.start() is QuizPhase.RESULT
    assert quiz.result.score == 2
    assert quiz.previous_result is prior
    assert not quiz.select_option("Hello")
    assert store.queried == ["default"]


def test_practice_result_does_not_gate_default_quiz():
    store = FakeStore([QuizResult(id="r1", user_id="u1", score=1, total=5, question_set="practice")])
    quiz = QuizController(store, "u1")
    assert quiz.start() is QuizPhase.ANSWERING


def test_once_per_user_gate_checks_any_set():
    store = FakeStore([QuizResult(id="r1", user_id="u1", score=1, total=5, question_set="practice")])
    quiz = QuizController(store, "u1", gate=AttemptGate.ONCE_PER_USER)
    assert quiz.start() is QuizPhase.RESULT
    assert store.queried == [None]
    assert not quiz.reset(PRACTICE)


def test_default_quiz_cannot_be_replayed_but_practice_can():
    store = FakeStore()
    quiz = QuizController(store, "u1")
    quiz.start()
    answer_all(quiz, correct=False)
    assert not quiz.reset()
    assert quiz.reset(PRACTICE)
    assert quiz.is_practice
    answer_all(quiz)
    assert quiz.reset()
    answer_all(quiz)
    assert [s[2] for s in store.submitted] == ["default", "practice", "practice"]


def test_conflict_on_submit_keeps_local_score_and_closes_gate():
    notices = []
    quiz = QuizController(FakeStore(submit_error=Conflict("taken", 409)), "u1", on_notice=notices.append)
    quiz.start()
    answer_all(quiz)
    assert quiz.phase is QuizPhase.RESULT
    assert quiz.result.id is None
    assert quiz.result.score == len(DEFAULT_QUESTIONS)
    assert notices == ["A result for this quiz was already recorded."]
    assert not quiz.reset()


def test_unreachable_store_still_shows_result():
    notices = []
    quiz = QuizController(FakeStore(submit_error=PortalConnectionError("down")), "u1", on_notice=notices.append)
    quiz.start()
    answer_all(quiz)
    assert quiz.phase is QuizPhase.RESULT
    assert notices == ["Your score could not be saved."]


def test_generate_normalizes_short_option_lists():
    generated = [
        {"question": "Q1", "options": ["only one"], "correctAnswer": "only one", "explanation": ""},
        {"question": "Q2", "options": ["a", "b", "c"], "correctAnswer": "b", "explanation": "b"},
    ]
    quiz = QuizController(FakeStore(), "u1", generator=FakeGenerator(generated))
    quiz.start()
    assert quiz.generate("food", "order dinner")
    assert quiz.is_practice
    assert quiz.questions[0].options == PLACEHOLDER_OPTIONS
    assert all(len(q.options) >= 2 for q in quiz.questions)
    assert quiz.current_question.question == "Q1"


def test_failed_generation_leaves_quiz_untouched():
    notices = []
    quiz = QuizController(FakeStore(), "u1", generator=FakeGenerator([]), on_notice=notices.append)
    quiz.start()
    quiz.select_option("Hello")
    assert not quiz.generate("food", "")
    assert quiz.phase is QuizPhase.ANSWERED
    assert quiz.question_set == "default"
    assert notices == ["Quiz generation failed; try another topic."]


def test_normalize_questions_assigns_fresh_unique_ids():
    questions = normalize_questions([
        {"id": "dup", "question": "A", "options": ["x", "y"], "correct_answer": "x"},
        {"id": "dup", "question": "B", "options": [], "correctAnswer": "z"},
    ])
    assert len({q.id for q in questions}) == 2
    assert all(q.id.startswith("ai_") for q in questions)
    assert questions[0].correct_answer == "x"
    assert questions[1].options == PLACEHOLDER_OPTIONS


@pytest.mark.parametrize("raw, expected", [
    ("once_per_user", AttemptGate.ONCE_PER_USER),
    ("default_only", AttemptGate.DEFAULT_SET_ONLY),
    ("bogus", AttemptGate.DEFAULT_SET_ONLY),
    (None, AttemptGate.DEFAULT_SET_ONLY),
])
def test_attempt_gate_parse(raw, expected):
    assert AttemptGate.parse(raw) is expected
