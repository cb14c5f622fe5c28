from datetime import datetime, timezone
from quizworld import db


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    # SQLite hands back naive datetimes; stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Player(db.Model):
    __tablename__ = 'players'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    country = db.Column(db.String(8), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        """Leaderboard row. Never includes the password hash."""
        return {
            'id': self.id,
            'country': self.country,
            'username': self.username,
            'score': self.score,
            'createdAt': as_utc(self.created_at).isoformat() if self.created_at else None,
        }

    def to_public_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'score': self.score,
            'country': self.country,
        }


# Usernames are unique regardless of case
db.Index('uq_players_username_lower', db.func.lower(Player.__table__.c.username), unique=True)


class Question(db.Model):
    __tablename__ = 'questions'
    id = db.Column(db.Integer, primary_key=True)
    question_text = db.Column(db.Text, nullable=False)
    # ISO 3166-1 alpha-2 code of the country that answers the question
    answer = db.Column(db.String(8), nullable=False)

    def to_dict(self):
        # The answer stays server-side
        return {
            'id': self.id,
            'questionText': self.question_text,
        }
