"""
EventBoard routes - JSON API and the few pages behind the login.
"""
import os

from flask import (
    Blueprint, render_template, request, redirect, url_for, jsonify,
    send_from_directory, current_app, abort
)

from .auth import (
    check_credentials, is_logged_in, current_username, log_in, log_out,
    login_required, login_required_json
)
from .exceptions import EventBoardError, InvalidColumnError
from .log import logger
from .repositories import check_column

# ---------------------------------------------------------------------------
# Blueprint definitions
# ---------------------------------------------------------------------------
api_bp = Blueprint('api', __name__)
pages_bp = Blueprint('pages', __name__, template_folder='templates')


def _service():
    return current_app.extensions['event_service']


def _request_data():
    """Submitted fields from a form/multipart body or a JSON body."""
    if request.form:
        return request.form
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


def _validation_error(errors):
    return _error('; '.join(errors.values()), 400)


@api_bp.errorhandler(InvalidColumnError)
def _invalid_column(error):
    return _error('Invalid column', 400)


@api_bp.errorhandler(EventBoardError)
def _application_error(error):
    logger.error("Request to {} failed: {}", request.path, error)
    return _error(str(error), 500)


# ---------------------------------------------------------------------------
# Routes - Auth
# ---------------------------------------------------------------------------
@api_bp.route('/login', methods=['POST'])
def api_login():
    """Check the shared credentials and start a session."""
    data = _request_data()
    username = data.get('username')
    if check_credentials(username, data.get('password')):
        log_in(username)
        return jsonify({'success': True})
    return _error('Invalid credentials', 401)


@api_bp.route('/logout', methods=['POST'])
def logout():
    log_out()
    return jsonify({'success': True})


@api_bp.route('/auth/status')
def auth_status():
    return jsonify({'loggedIn': is_logged_in(), 'username': current_username()})


# ---------------------------------------------------------------------------
# Routes - Events
# ---------------------------------------------------------------------------
@api_bp.route('/events')
def list_events():
    """List all events, newest first."""
    events = _service().list_events()
    return jsonify({'success': True, 'data': [e.to_dict() for e in events]})


@api_bp.route('/events/<int:event_id>')
def get_event(event_id):
    event = _service().get_event(event_id)
    if not event:
        return _error('Event not found', 404)
    return jsonify({'success': True, 'data': event.to_dict()})


@api_bp.route('/events', methods=['POST'])
@login_required_json
def create_event():
    """Create an event from a multipart form with an image file."""
    event, errors = _service().create_event(_request_data(), request.files.get('image'))
    if errors:
        return _validation_error(errors)
    return jsonify({'success': True, 'id': event.id})


@api_bp.route('/events/<int:event_id>', methods=['PUT'])
@login_required_json
def update_event(event_id):
    """Overwrite an event; a new image replaces the stored one."""
    service = _service()
    existing = service.get_event(event_id)
    if not existing:
        return _error('Event not found', 404)

    event, errors = service.update_event(existing, _request_data(), request.files.get('image'))
    if errors:
        return _validation_error(errors)
    return jsonify({'success': True, 'image': event.image})


@api_bp.route('/events/<int:event_id>', methods=['DELETE'])
@login_required_json
def delete_event(event_id):
    service = _service()
    event = service.get_event(event_id)
    if not event:
        return _error('Event not found', 404)

    service.delete_event(event)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Routes - Lookup
# ---------------------------------------------------------------------------
@api_bp.route('/distinct/<column>')
def distinct(column):
    """Sorted distinct values of a searchable column."""
    return jsonify({'success': True, 'data': _service().distinct_values(column)})


@api_bp.route('/search')
def search():
    """Exact-match search on one searchable column."""
    column = check_column(request.args.get('column', ''))
    value = request.args.get('value')
    if value is None:
        return _error('Value is required', 400)

    events = _service().search(column, value)
    return jsonify({'success': True, 'data': [e.to_dict() for e in events]})


# ---------------------------------------------------------------------------
# Routes - Pages
# ---------------------------------------------------------------------------
def _safe_next(target):
    """Only same-site relative paths are followed after login."""
    if target and target.startswith('/') and target[1:2] not in ('/', '\\'):
        return target
    return None


@pages_bp.route('/login', endpoint='login')
def login_page():
    next_url = _safe_next(request.args.get('next'))
    if is_logged_in():
        return redirect(next_url or url_for('pages.insert_form'))
    return render_template('login.html', next_url=next_url or '')


@pages_bp.route('/insert')
@login_required
def insert_form():
    return render_template('insert.html', username=current_username())


@pages_bp.route('/modify')
@login_required
def modify():
    return render_template('modify.html', username=current_username())


@pages_bp.route('/uploads/<path:filename>')
def uploaded_image(filename):
    """Serve an image kept in the local uploads folder."""
    folder = current_app.config['SETTINGS'].upload_folder
    if not os.path.isdir(folder):
        abort(404)
    return send_from_directory(folder, filename)
