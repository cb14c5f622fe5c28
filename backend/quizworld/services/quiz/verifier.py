from typing import Optional


def answers_match(correct_answer: str, submitted_answer: Optional[str]) -> bool:
    """Compare a submitted answer to the ground truth.

    Case-insensitive, ignoring surrounding whitespace on both sides. Nothing
    else is normalized: accents and punctuation must match exactly.
    """
    if submitted_answer is None or correct_answer is None:
        return False
    return str(submitted_answer).strip().lower() == str(correct_answer).strip().lower()
