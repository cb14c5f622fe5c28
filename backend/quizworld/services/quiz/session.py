import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Set

from quizworld.errors import SessionError, StorageError
from . import scoring
from .questions import QuizQuestion
from .sequencer import QuestionSequencer, RoundComplete
from .timer import RoundTimer, spawn_thread

EXPLORING = 'exploring'
QUIZZING = 'quizzing'
FINISHED = 'finished'


@dataclass
class SessionState:
    status: str = EXPLORING
    score: int = 0
    last_score_delta: int = 0
    seen_question_ids: Set[int] = field(default_factory=set)
    current_question: Optional[QuizQuestion] = None
    remaining_seconds: int = 0

    def to_dict(self):
        return {
            'status': self.status,
            'score': self.score,
            'lastScoreDelta': self.last_score_delta,
            'seenQuestionIds': sorted(self.seen_question_ids),
            'currentQuestion': self.current_question.to_dict() if self.current_question else None,
            'remainingSeconds': self.remaining_seconds,
        }


@dataclass(frozen=True)
class AnswerOutcome:
    question_id: int
    is_correct: bool
    delta: int
    score: int

    def to_dict(self):
        return {
            'questionId': self.question_id,
            'isCorrect': self.is_correct,
            'delta': self.delta,
            'score': self.score,
        }


class SessionController:
    """Drives one player's round: exploring -> quizzing -> finished.

    All state changes happen under one re-entrant lock, whether they come
    from the transport (``select``), the round timer or a delayed advance.
    Verification runs outside the lock behind a pending flag, so at most one
    answer is scored at a time and the timer keeps counting meanwhile. If the
    timer expires while an answer is pending, that answer is still scored
    before the session finishes.

    ``listener(event, payload)`` is the UI binding. Events: ``status``,
    ``question``, ``answer_result``, ``finished`` and ``error``.
    """

    def __init__(
        self,
        bank,
        *,
        explore_seconds: float = 300,
        quiz_seconds: float = 300,
        direct_quiz: bool = False,
        display_delay: float = 2.0,
        timer_factory: Optional[Callable[[], RoundTimer]] = None,
        spawn: Optional[Callable] = None,
        listener: Optional[Callable[[str, dict], None]] = None,
        logger: Optional[logging.Logger] = None,
        session_id: Optional[str] = None,
    ):
        self._bank = bank
        self._sequencer = QuestionSequencer(bank)
        self._explore_seconds = explore_seconds
        self._quiz_seconds = quiz_seconds
        self._display_delay = display_delay
        self._spawn = spawn or spawn_thread
        self._timer_factory = timer_factory or (lambda: RoundTimer(spawn=self._spawn))
        self._listener = listener
        self._logger = logger or logging.getLogger(__name__)
        self.session_id = session_id

        self._lock = threading.RLock()
        self._state = SessionState(status=QUIZZING if direct_quiz else EXPLORING)
        self._timer: Optional[RoundTimer] = None
        self._started = False
        self._cleared = False
        self._pending = False
        self._finish_requested = False
        self.finish_reason: Optional[str] = None

    @property
    def state(self) -> SessionState:
        """Copy of the current state; mutating it has no effect on the session."""
        with self._lock:
            return replace(self._state, seen_question_ids=set(self._state.seen_question_ids))

    @property
    def status(self) -> str:
        return self._state.status

    @property
    def score(self) -> int:
        return self._state.score

    @property
    def pending(self) -> bool:
        return self._pending

    def snapshot(self) -> dict:
        with self._lock:
            if self._timer is not None and self._state.status != FINISHED:
                self._state.remaining_seconds = self._timer.remaining_seconds
            else:
                self._state.remaining_seconds = 0
            return self._state.to_dict()

    # ---- lifecycle ----

    def start(self) -> dict:
        with self._lock:
            if self._started:
                raise SessionError('Session already started; create a new one to play again')
            self._started = True
            if self._state.status == QUIZZING:
                self._start_timer(self._quiz_seconds)
                self._notify('status', self.snapshot())
                self._advance()
            else:
                self._start_timer(self._explore_seconds)
                self._notify('status', self.snapshot())
            self._logger.info(f"[session-start] sid={self.session_id} status={self._state.status}")
            return self.snapshot()

    def clear(self) -> None:
        """Tear down: stop the timer, drop the UI binding and empty the state."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._listener = None
            self._started = True
            self._cleared = True
            self._finish_requested = False
            if self.finish_reason is None:
                self.finish_reason = 'cleared'
            self._state = SessionState(status=FINISHED)
            self._logger.info(f"[session-clear] sid={self.session_id}")

    # ---- quizzing ----

    def select(self, answer: Optional[str]) -> Optional[AnswerOutcome]:
        """Score a selection for the current question.

        Returns None when the selection is ignored: not quizzing, no current
        question, or another answer still being verified.
        """
        with self._lock:
            question = self._state.current_question
            if self._state.status != QUIZZING or question is None or self._pending:
                return None
            self._pending = True

        try:
            is_correct = self._bank.verify(question.id, answer)
        except Exception:
            with self._lock:
                self._pending = False
                if self._finish_requested:
                    self._finish('timeout')
            raise

        with self._lock:
            self._pending = False
            if self._cleared:
                return None
            delta = scoring.record_answer(self._state, is_correct)
            self._state.current_question = None
            outcome = AnswerOutcome(
                question_id=question.id,
                is_correct=is_correct,
                delta=delta,
                score=self._state.score,
            )
            self._logger.info(
                f"[session-answer] sid={self.session_id} question={question.id} correct={is_correct} score={self._state.score}"
            )
            self._notify('answer_result', outcome.to_dict())
            if self._finish_requested:
                self._finish('timeout')
            else:
                self._schedule_next()
            return outcome

    def request_question(self) -> Optional[QuizQuestion]:
        """Fetch a question if none is showing, e.g. to retry after a storage error."""
        with self._lock:
            if self._state.status == QUIZZING and self._state.current_question is None and not self._pending:
                self._advance()
            return self._state.current_question

    # ---- internals (lock held) ----

    def _start_timer(self, seconds: float) -> None:
        timer = self._timer_factory()
        self._timer = timer
        timer.start(seconds, lambda: self._on_timer_expired(timer))

    def _on_timer_expired(self, timer: RoundTimer) -> None:
        with self._lock:
            if timer is not self._timer or self._cleared:
                return
            if self._state.status == EXPLORING:
                self._logger.info(f"[session-quiz] sid={self.session_id} exploring time is up")
                self._state.status = QUIZZING
                self._start_timer(self._quiz_seconds)
                self._notify('status', self.snapshot())
                self._advance()
            elif self._state.status == QUIZZING:
                if self._pending:
                    self._finish_requested = True
                else:
                    self._finish('timeout')

    def _schedule_next(self) -> None:
        if self._display_delay and self._display_delay > 0:
            self._spawn(self._advance_after, self._display_delay)
        else:
            self._advance()

    def _advance_after(self, delay: float) -> None:
        time.sleep(delay)
        with self._lock:
            self._advance()

    def _advance(self) -> None:
        if self._state.status != QUIZZING or self._state.current_question is not None or self._pending:
            return
        try:
            result = self._sequencer.next(self._state)
        except StorageError as exc:
            self._logger.error(f"[session-question] sid={self.session_id} error={exc}")
            self._notify('error', {'message': 'Could not load the next question'})
            return
        if isinstance(result, RoundComplete):
            self._finish('exhausted')
            return
        self._state.current_question = result
        self._notify('question', result.to_dict())

    def _finish(self, reason: str) -> None:
        if self._state.status == FINISHED:
            return
        self._state.status = FINISHED
        self._state.current_question = None
        self._state.remaining_seconds = 0
        self._finish_requested = False
        self.finish_reason = reason
        if self._timer is not None:
            self._timer.cancel()
        self._logger.info(f"[session-finish] sid={self.session_id} reason={reason} score={self._state.score}")
        self._notify('finished', {
            'score': self._state.score,
            'reason': reason,
            'message': scoring.score_message(self._state.score),
        })

    def _notify(self, event: str, payload: dict) -> None:
        listener = self._listener
        if listener is None:
            return
        try:
            listener(event, payload)
        except Exception:
            self._logger.exception(f"[session-notify] sid={self.session_id} event={event} listener failed")
