"""
Configuration classes for the Gratitude Tree application
Loads settings from environment variables
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _optional_float(value):
    if value in (None, '', '0', 'none', 'None'):
        return None
    return float(value)


class Config:
    """Application configuration"""

    # Flask
    DEBUG = os.environ.get('FLASK_ENV') == 'development' or os.environ.get('FLASK_DEBUG') == '1'

    # Database
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'leaves.db'
    MAX_LEAVES = int(os.environ.get('MAX_LEAVES', '1000'))

    # Rate limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    ADD_LEAF_RATE_LIMIT = os.environ.get('ADD_LEAF_RATE_LIMIT', '30 per hour')

    # Client (sync core / CLI)
    API_BASE_URL = os.environ.get('API_BASE_URL', 'http://127.0.0.1:5000/api')
    LOCAL_STORE_PATH = os.environ.get('LOCAL_STORE_PATH', os.path.join('.gratitude_tree', 'local_storage.json'))
    REMOTE_TIMEOUT = _optional_float(os.environ.get('REMOTE_TIMEOUT', '10'))

    # Monitoring / logging
    SENTRY_DSN = os.environ.get('SENTRY_DSN')
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.1'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
