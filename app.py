"""
Gratitude Tree - Flask Application
JSON API for storing and listing gratitude leaves, plus aggregate statistics
"""

import os
import sqlite3
from datetime import datetime, timedelta, timezone
from time import perf_counter
import logging
from logging.handlers import RotatingFileHandler

import bleach
from flask import Flask, request, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import BadRequest
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from config import Config
from services.leaf import DEFAULT_GRADIENT, DEFAULT_TYPE, DEFAULT_X, DEFAULT_Y

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)

# Initialize basic rate limiting
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=app.config.get('RATELIMIT_STORAGE_URI', 'memory://'),
    strategy='fixed-window',
    default_limits=["2000 per day", "300 per hour"],
)
limiter.init_app(app)

@limiter.request_filter
def _rate_limit_exempt_for_tests():
    return app.config.get('TESTING', False)

os.makedirs(app.config.get('LOG_DIR', 'logs'), exist_ok=True)
_file_handler = RotatingFileHandler(
    os.path.join(app.config.get('LOG_DIR', 'logs'), 'app.log'),
    maxBytes=5 * 1024 * 1024,
    backupCount=5,
)
_file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
if not any(isinstance(h, RotatingFileHandler) for h in app.logger.handlers):
    app.logger.addHandler(_file_handler)

if app.config.get('SENTRY_DSN'):
    sentry_sdk.init(
        dsn=app.config.get('SENTRY_DSN'),
        integrations=[FlaskIntegration()],
        traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1),
    )

RECENT_WINDOW = timedelta(hours=24)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
}

REQUEST_METRICS = {
    'requests_total': 0,
    'errors_total': 0,
    'latency_ms_total': 0.0,
}


@app.before_request
def _metrics_before_request():
    request._start_ts = perf_counter()


@app.after_request
def _metrics_after_request(response):
    started = getattr(request, '_start_ts', None)
    if started is not None:
        REQUEST_METRICS['requests_total'] += 1
        elapsed = (perf_counter() - started) * 1000.0
        REQUEST_METRICS['latency_ms_total'] += elapsed
        if response.status_code >= 400:
            REQUEST_METRICS['errors_total'] += 1
    return response


@app.after_request
def _cors_headers(response):
    if request.path.startswith('/api/'):
        response.headers.update(CORS_HEADERS)
    return response


def db_connect():
    conn = sqlite3.connect(app.config['DATABASE_PATH'])
    conn.row_factory = sqlite3.Row
    return conn


# ===== DATABASE INITIALIZATION =====

def init_db():
    """Initialize SQLite database with the leaves table."""
    conn = db_connect()
    c = conn.cursor()

    c.execute('''
        CREATE TABLE IF NOT EXISTS leaves (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            teacher TEXT NOT NULL,
            message TEXT NOT NULL,
            x INTEGER NOT NULL DEFAULT 200,
            y INTEGER NOT NULL DEFAULT 150,
            type TEXT NOT NULL DEFAULT 'heart',
            gradient TEXT NOT NULL DEFAULT 'gradient-1',
            created_at TEXT NOT NULL
        )
    ''')
    c.execute('CREATE INDEX IF NOT EXISTS idx_leaves_created_at ON leaves (created_at)')

    conn.commit()
    conn.close()


def _leaf_row_to_dict(row):
    return {
        'id': row['id'],
        'name': row['name'],
        'teacher': row['teacher'],
        'message': row['message'],
        'x': row['x'],
        'y': row['y'],
        'type': row['type'],
        'gradient': row['gradient'],
        'created_at': row['created_at'],
    }


def _coerce_coordinate(value, default):
    """Missing, zero or non-numeric coordinates fall back to the default."""
    if isinstance(value, bool):
        return default
    try:
        return int(value) or default
    except (TypeError, ValueError, OverflowError):
        return default


def _clean_text(value):
    """Sanitized, stripped text, or None when the value is not usable text."""
    if not isinstance(value, str):
        return None
    return bleach.clean(value.strip(), strip=True).strip() or None


def _database_error(message, error):
    app.logger.exception('Database error: %s', error)
    body = {'success': False, 'error': message}
    if app.config.get('DEBUG'):
        body['details'] = str(error)
    return jsonify(body), 500


def _preflight():
    return '', 200


# ===== LEAF API ROUTES =====

@app.route('/api/add-leaf', methods=['POST', 'OPTIONS'])
@limiter.limit(lambda: app.config.get('ADD_LEAF_RATE_LIMIT', '30 per hour'), exempt_when=lambda: request.method == 'OPTIONS')
def add_leaf():
    """Store one gratitude leaf and return it with its id and timestamp."""
    if request.method == 'OPTIONS':
        return _preflight()

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({'success': False, 'error': 'Request body must be a JSON object'}), 400

    name = _clean_text(body.get('name'))
    teacher = _clean_text(body.get('teacher'))
    message = _clean_text(body.get('message'))
    if not name or not teacher or not message:
        return jsonify({
            'success': False,
            'error': 'Missing required fields: name, teacher, message',
        }), 400

    app.logger.info('Adding new leaf from %s to %s', name, teacher)

    created_at = datetime.now(timezone.utc).isoformat()
    try:
        conn = db_connect()
        try:
            c = conn.cursor()
            c.execute(
                '''
                INSERT INTO leaves (name, teacher, message, x, y, type, gradient, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''',
                (
                    name,
                    teacher,
                    message,
                    _coerce_coordinate(body.get('x'), DEFAULT_X),
                    _coerce_coordinate(body.get('y'), DEFAULT_Y),
                    body.get('type') or DEFAULT_TYPE,
                    body.get('gradient') or DEFAULT_GRADIENT,
                    created_at,
                ),
            )
            leaf_id = c.lastrowid
            conn.commit()
            c.execute('SELECT * FROM leaves WHERE id = ?', (leaf_id,))
            row = c.fetchone()
        finally:
            conn.close()
    except sqlite3.Error as e:
        return _database_error('Could not save the leaf to the database', e)

    app.logger.info('Leaf added successfully: %s', leaf_id)
    return jsonify({'success': True, 'data': _leaf_row_to_dict(row)}), 201


@app.route('/api/get-leaves', methods=['GET', 'OPTIONS'])
def get_leaves():
    """Most recent leaves, newest first."""
    if request.method == 'OPTIONS':
        return _preflight()

    try:
        conn = db_connect()
        try:
            c = conn.cursor()
            c.execute(
                '''
                SELECT id, name, teacher, message, x, y, type, gradient, created_at
                FROM leaves
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                ''',
                (app.config.get('MAX_LEAVES', 1000),),
            )
            rows = c.fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        return _database_error('Could not load leaves from the database', e)

    app.logger.info('Found %s leaves', len(rows))
    return jsonify({'success': True, 'data': [_leaf_row_to_dict(row) for row in rows]}), 200


@app.route('/api/stats', methods=['GET', 'OPTIONS'])
def stats():
    if request.method == 'OPTIONS':
        return _preflight()

    now = datetime.now(timezone.utc)
    since = (now - RECENT_WINDOW).isoformat()
    try:
        conn = db_connect()
        try:
            c = conn.cursor()
            c.execute(
                '''
                SELECT
                    COUNT(*),
                    COUNT(DISTINCT name),
                    COUNT(DISTINCT teacher),
                    COALESCE(SUM(CASE WHEN created_at >= ? THEN 1 ELSE 0 END), 0)
                FROM leaves
                ''',
                (since,),
            )
            total_leaves, total_students, total_teachers, recent_leaves = c.fetchone()
        finally:
            conn.close()
    except sqlite3.Error as e:
        return _database_error('Could not compute statistics', e)

    data = {
        'totalLeaves': total_leaves,
        'totalStudents': total_students,
        'totalTeachers': total_teachers,
        'recentLeaves': recent_leaves,
        'lastUpdated': now.isoformat(),
    }
    app.logger.info('Stats retrieved: %s', data)
    return jsonify({'success': True, 'data': data}), 200


@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': 'gratitude-tree'}), 200


@app.route('/metrics')
def metrics():
    total = REQUEST_METRICS['requests_total']
    avg_latency = (REQUEST_METRICS['latency_ms_total'] / total) if total else 0.0
    return jsonify({
        'requests_total': total,
        'errors_total': REQUEST_METRICS['errors_total'],
        'avg_latency_ms': round(avg_latency, 2),
    }), 200


# ===== ERROR HANDLERS =====


@app.errorhandler(BadRequest)
def bad_request(error):
    return jsonify({'success': False, 'error': 'Bad request'}), 400


@app.errorhandler(404)
def not_found(error):
    return jsonify({'success': False, 'error': 'Not found'}), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({'error': 'Method not allowed'}), 405


@app.errorhandler(429)
def rate_limited(error):
    reset_ts = int((datetime.now(timezone.utc) + timedelta(minutes=15)).timestamp())
    resp = jsonify({'success': False, 'error': 'Too many requests, please try again later'})
    resp.status_code = 429
    resp.headers['X-RateLimit-Reset'] = str(reset_ts)
    return resp


@app.errorhandler(500)
def internal_error(error):
    return jsonify({'success': False, 'error': 'An unexpected server error occurred'}), 500

# ===== APPLICATION ENTRY POINT =====

if __name__ == '__main__':
    init_db()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.config['DEBUG'])
