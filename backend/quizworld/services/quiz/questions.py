import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Iterable, Optional

from flask import has_app_context
from sqlalchemy.exc import SQLAlchemyError

from quizworld import db
from quizworld.errors import NotFound, StorageError
from quizworld.models import Question
from .verifier import answers_match


@dataclass(frozen=True)
class QuizQuestion:
    id: int
    question_text: str

    def to_dict(self):
        return {'id': self.id, 'questionText': self.question_text}


class SqlQuestionBank:
    """Question ground truth backed by the ``questions`` table.

    Pass ``app`` when the bank is used from background tasks (timers), so
    each call can push an application context of its own.
    """

    def __init__(self, app=None, logger: Optional[logging.Logger] = None):
        self._app = app
        self._logger = logger or (app.logger if app is not None else logging.getLogger(__name__))

    def _context(self):
        if self._app is None or has_app_context():
            return nullcontext()
        return self._app.app_context()

    def pick_random(self, exclude_ids: Iterable[int] = ()) -> Optional[QuizQuestion]:
        excluded = list(exclude_ids or ())
        with self._context():
            try:
                query = Question.query
                if excluded:
                    query = query.filter(~Question.id.in_(excluded))
                row = query.order_by(db.func.random()).first()
            except SQLAlchemyError as exc:
                db.session.rollback()
                self._logger.error(f"[questions-pick] excluded={len(excluded)} error={exc}")
                raise StorageError('Could not load a question') from exc
            return QuizQuestion(id=row.id, question_text=row.question_text) if row else None

    def verify(self, question_id: int, submitted_answer: Optional[str]) -> bool:
        with self._context():
            try:
                row = db.session.get(Question, question_id)
            except SQLAlchemyError as exc:
                db.session.rollback()
                self._logger.error(f"[questions-verify] question={question_id} error={exc}")
                raise StorageError('Could not verify the answer') from exc
            if row is None:
                raise NotFound(f'Question {question_id} not found')
            return answers_match(row.answer, submitted_answer)

    def count(self) -> int:
        with self._context():
            try:
                return Question.query.count()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StorageError('Could not count questions') from exc
