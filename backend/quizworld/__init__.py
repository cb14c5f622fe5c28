from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import json
import os
import click
from quizworld.config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

QUESTIONS_SEED_FILE = os.path.join(os.path.dirname(__file__), 'data', 'questions.json')
MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'migrations')


def allowed_origins(config) -> list:
    raw = config.get('CORS_ORIGINS') or ''
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


def seed_questions(path: str = QUESTIONS_SEED_FILE) -> int:
    """Insert the question set stored at ``path``. Returns the number added."""
    from quizworld.models import Question
    with open(path, 'r', encoding='utf-8') as fh:
        rows = json.load(fh)
    for row in rows:
        db.session.add(Question(question_text=row['question'], answer=row['answer']))
    db.session.commit()
    return len(rows)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = allowed_origins(flask_app.config)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    migrate.init_app(flask_app, db, directory=MIGRATIONS_DIR)
    CORS(flask_app, supports_credentials=True, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # One reference-data cache per process, shared by every request and session
    from quizworld.services.quiz.cache import ReferenceCache
    from quizworld.services.quiz.countries import CountryDirectory, load_countries

    country_cache = ReferenceCache(
        lambda _key: load_countries(flask_app.config, logger=flask_app.logger),
        ttl_seconds=flask_app.config.get('COUNTRIES_CACHE_TTL_SEC', 3600),
        logger=flask_app.logger,
    )
    flask_app.extensions['quizworld.countries'] = CountryDirectory(country_cache)

    # Import and register blueprints here
    from quizworld.main import main
    flask_app.register_blueprint(main)

    from quizworld.api.countries import countries
    from quizworld.api.leaderboard import leaderboard
    from quizworld.api.questions import questions
    # Mount under /api to match the frontend API client
    flask_app.register_blueprint(countries, url_prefix='/api')
    flask_app.register_blueprint(leaderboard, url_prefix='/api')
    flask_app.register_blueprint(questions, url_prefix='/api/questions')

    # Register Socket.IO event handlers
    from quizworld.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            added = seed_questions()
            print(f'Database has been reset and seeded with {added} questions!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
