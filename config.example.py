import os

class Config:
    # Backend
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'leaves.db'
    MAX_LEAVES = 1000
    ADD_LEAF_RATE_LIMIT = '30 per hour'

    # Client
    API_BASE_URL = os.environ.get('API_BASE_URL') or 'https://your-site.example.com/api'
    LOCAL_STORE_PATH = '.gratitude_tree/local_storage.json'
    REMOTE_TIMEOUT = 10.0

    # Monitoring
    SENTRY_DSN = os.environ.get('SENTRY_DSN')
    LOG_LEVEL = 'INFO'
