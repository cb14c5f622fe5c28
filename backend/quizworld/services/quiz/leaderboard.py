import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizworld import bcrypt, db
from quizworld.errors import AuthError, StorageError, UpstreamUnavailable, ValidationError
from quizworld.models import Player, utcnow
from .countries import get_country_directory

USERNAME_MIN = 3
USERNAME_MAX = 10
PASSWORD_MIN = 6
SCORE_MIN = -500
SCORE_MAX = 250


@dataclass(frozen=True)
class ScoreSubmission:
    created: bool
    updated: bool
    score: int
    player: Optional[dict] = None

    def to_dict(self):
        if self.created:
            return {
                'message': 'Welcome to the leaderboard!',
                'player': self.player,
                'created': True,
                'updated': True,
            }
        if self.updated:
            return {
                'message': 'New personal best! Your score has been updated',
                'updated': True,
                'newScore': self.score,
            }
        return {
            'message': 'Your current score is better. It has not been updated',
            'updated': False,
            'currentScore': self.score,
        }


class LeaderboardService:
    """Ranked reads and the password-gated best-score upsert."""

    def __init__(
        self,
        limit: int = 50,
        country_lookup: Optional[Callable[[str], bool]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.limit = limit
        self._country_lookup = country_lookup
        self._logger = logger or logging.getLogger(__name__)

    def top_scores(self, limit: Optional[int] = None) -> List[Player]:
        limit = self.limit if limit is None else limit
        try:
            return (
                Player.query
                .order_by(Player.score.desc(), Player.created_at.asc(), Player.id.asc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            self._logger.error(f"[leaderboard-read] limit={limit} error={exc}")
            raise StorageError('Could not load the leaderboard') from exc

    def validate(self, username, password, country, score) -> None:
        """Raise ValidationError for the first rule the submission breaks."""
        if not username or not password or not country or score is None:
            raise ValidationError('All fields are required')
        if not isinstance(username, str) or not USERNAME_MIN <= len(username) <= USERNAME_MAX:
            raise ValidationError(f'The username must be between {USERNAME_MIN} and {USERNAME_MAX} characters')
        if not isinstance(password, str) or len(password) < PASSWORD_MIN:
            raise ValidationError(f'The password must be at least {PASSWORD_MIN} characters long')
        if isinstance(score, bool) or not isinstance(score, int) or not SCORE_MIN <= score <= SCORE_MAX:
            raise ValidationError('Invalid score')
        if not isinstance(country, str) or not self._country_known(country):
            raise ValidationError('Unknown country')

    def _country_known(self, country: str) -> bool:
        if self._country_lookup is None:
            return True
        try:
            return self._country_lookup(country)
        except UpstreamUnavailable:
            self._logger.warning(f"[leaderboard-country-skip] country={country} reference data unavailable")
            return True

    def submit_score(self, username, password, country, score) -> ScoreSubmission:
        self.validate(username, password, country, score)
        country = country.strip().upper()
        try:
            return self._upsert(username, password, country, score)
        except SQLAlchemyError as exc:
            db.session.rollback()
            self._logger.error(f"[leaderboard-write] username={username} error={exc}")
            raise StorageError('Could not save the score') from exc

    def _find(self, username: str) -> Optional[Player]:
        return Player.query.filter(db.func.lower(Player.username) == username.lower()).first()

    def _upsert(self, username, password, country, score) -> ScoreSubmission:
        existing = self._find(username)
        if existing is None:
            player = Player(
                username=username,
                password_hash=bcrypt.generate_password_hash(password).decode('utf-8'),
                score=score,
                country=country,
            )
            db.session.add(player)
            try:
                db.session.commit()
            except IntegrityError:
                # Lost a race with a concurrent registration of the same name
                db.session.rollback()
                existing = self._find(username)
                if existing is None:
                    raise
            else:
                self._logger.info(f"[leaderboard-create] player={player.id} score={score}")
                return ScoreSubmission(created=True, updated=True, score=player.score, player=player.to_public_dict())

        if not bcrypt.check_password_hash(existing.password_hash, password):
            self._logger.info(f"[leaderboard-auth-failed] player={existing.id}")
            raise AuthError('User already exists. Incorrect password')

        player_id = existing.id
        # Conditional write: concurrent submissions cannot lower a stored best
        rows = (
            Player.query
            .filter(Player.id == player_id, Player.score < score)
            .update(
                {Player.score: score, Player.country: country, Player.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        db.session.commit()
        if rows:
            self._logger.info(f"[leaderboard-update] player={player_id} score={score}")
            return ScoreSubmission(created=False, updated=True, score=score)
        current = db.session.get(Player, player_id)
        return ScoreSubmission(created=False, updated=False, score=current.score)


def leaderboard_for(app=None) -> LeaderboardService:
    app = app or current_app
    lookup = None
    if app.config.get('VALIDATE_PLAYER_COUNTRY'):
        lookup = get_country_directory(app).contains
    return LeaderboardService(
        limit=app.config.get('LEADERBOARD_LIMIT', 50),
        country_lookup=lookup,
        logger=app.logger,
    )
