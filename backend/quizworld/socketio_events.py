from flask_socketio import emit
from quizworld import socketio
from flask import current_app, request
from quizworld.errors import AuthError, NotFound, SessionError, StorageError, ValidationError
from quizworld.services.quiz.countries import resolve_selection
from quizworld.services.quiz.leaderboard import leaderboard_for
from quizworld.services.quiz.questions import SqlQuestionBank
from quizworld.services.quiz.session import FINISHED, SessionController
from typing import Dict

NAMESPACE = '/ws'

# One controller per connected socket
_sessions: Dict[str, SessionController] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _listener_for(sid: str):
    # socketio.emit, not emit: timer callbacks run outside the request context
    def _emit(event: str, payload: dict) -> None:
        socketio.emit(event, payload, to=sid, namespace=NAMESPACE)
    return _emit


def _current_session():
    controller = _sessions.get(_get_sid())
    if controller is None:
        emit('error', {'message': 'No active session'})
    return controller


def _end_session(sid: str) -> bool:
    controller = _sessions.pop(sid, None)
    if controller is None:
        return False
    controller.clear()
    return True


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    _end_session(_get_sid())


def handle_start_session(data=None):
    sid = _get_sid()
    _end_session(sid)
    app = current_app._get_current_object()
    cfg = app.config
    controller = SessionController(
        SqlQuestionBank(app=app),
        explore_seconds=cfg.get('EXPLORE_DURATION_SEC', 300),
        quiz_seconds=cfg.get('QUIZ_DURATION_SEC', 300),
        direct_quiz=bool((data or {}).get('direct_quiz')),
        display_delay=cfg.get('ANSWER_DISPLAY_DELAY_SEC', 2),
        spawn=socketio.start_background_task,
        listener=_listener_for(sid),
        logger=app.logger,
        session_id=sid,
    )
    _sessions[sid] = controller
    emit('session_started', controller.start())


def handle_select_country(data=None):
    controller = _current_session()
    if controller is None:
        return
    try:
        # answers are stored as ISO codes; the globe may send a code or a name
        answer = resolve_selection((data or {}).get('answer'), logger=current_app.logger)
        controller.select(answer)
    except NotFound:
        emit('error', {'message': 'Question not found'})
    except StorageError:
        emit('error', {'message': 'Could not verify the answer'})


def handle_request_question(data=None):
    controller = _current_session()
    if controller is not None:
        controller.request_question()


def handle_session_state(data=None):
    controller = _current_session()
    if controller is not None:
        emit('session_state', controller.snapshot())


def handle_submit_score(data=None):
    """Persist the finished session's score; the client never sends the score."""
    controller = _current_session()
    if controller is None:
        return
    data = data or {}
    try:
        if controller.status != FINISHED:
            raise SessionError('The round is not finished yet')
        result = leaderboard_for().submit_score(
            data.get('username'),
            data.get('password'),
            data.get('country'),
            controller.score,
        )
    except (SessionError, ValidationError) as exc:
        emit('error', {'message': str(exc), 'status': 400})
        return
    except AuthError as exc:
        emit('error', {'message': str(exc), 'status': 401})
        return
    except StorageError:
        emit('error', {'message': 'Internal server error', 'status': 500})
        return
    emit('score_submitted', result.to_dict())


def handle_end_session(data=None):
    sid = _get_sid()
    ended = _end_session(sid)
    emit('session_ended', {'ended': ended})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('start_session', handle_start_session, namespace=NAMESPACE)
    socketio.on_event('select_country', handle_select_country, namespace=NAMESPACE)
    socketio.on_event('request_question', handle_request_question, namespace=NAMESPACE)
    socketio.on_event('session_state', handle_session_state, namespace=NAMESPACE)
    socketio.on_event('submit_score', handle_submit_score, namespace=NAMESPACE)
    socketio.on_event('end_session', handle_end_session, namespace=NAMESPACE)
