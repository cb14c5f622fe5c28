from dataclasses import dataclass
from typing import Union

from .questions import QuizQuestion


@dataclass(frozen=True)
class RoundComplete:
    """Every question has been asked; ends the round like a timer expiry."""
    questions_seen: int


class QuestionSequencer:
    """Hands out one unseen question at a time for a session."""

    def __init__(self, bank):
        self._bank = bank

    def next(self, state) -> Union[QuizQuestion, RoundComplete]:
        question = self._bank.pick_random(state.seen_question_ids)
        if question is None:
            return RoundComplete(questions_seen=len(state.seen_question_ids))
        if question.id in state.seen_question_ids:
            # never repeat within a session
            raise RuntimeError(f'Question bank returned already seen question {question.id}')
        state.seen_question_ids.add(question.id)
        return question
