CORRECT_DELTA = 5
INCORRECT_DELTA = -10

# (minimum score, verdict) from best to worst
SCORE_MESSAGES = (
    (200, "Yo! You're absolutely crushing it! World domination level achieved!"),
    (150, "Dude, you're on fire! Globe-trotting genius right here!"),
    (100, "Nice work, explorer! Your world knowledge is solid!"),
    (50, "Hey, not bad at all! You're getting the hang of this!"),
    (0, "Alright, decent start! Time to level up your geography game!"),
    (-100, "Whoops! Hit the books and come back swinging!"),
    (-300, "Oof! Don't sweat it - everyone starts somewhere!"),
)
LOWEST_SCORE_MESSAGE = "Yikes! Time for a world tour... on a map maybe?"


def apply_delta(state, delta: int) -> int:
    """Add ``delta`` to the session score and remember it as the last change.

    Both fields are computed before either is assigned.
    """
    delta = int(delta)
    new_score = state.score + delta
    state.score, state.last_score_delta = new_score, delta
    return delta


def record_answer(state, is_correct: bool) -> int:
    return apply_delta(state, CORRECT_DELTA if is_correct else INCORRECT_DELTA)


def score_message(score: int) -> str:
    for threshold, message in SCORE_MESSAGES:
        if score >= threshold:
            return message
    return LOWEST_SCORE_MESSAGE
