"""
Serverless entry point for the Gratitude Tree API.

Routes served from here:
  POST /api/add-leaf    store one leaf
  GET  /api/get-leaves  up to 1000 newest leaves
  GET  /api/stats       totals plus leaves added in the last 24 hours

NOTE ON SQLITE + SERVERLESS:
Serverless functions usually get an ephemeral filesystem where only /tmp is
writable, so set DATABASE_PATH=/tmp/leaves.db there. Data written to /tmp is
lost on cold starts; clients keep working because they fall back to their
local storage when the API is unreachable. For durable storage deploy the app
with gunicorn on a host with a persistent disk (see gunicorn.conf.py).
"""

import sys
import os

# Make the project root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Import the Flask app object
from app import app, init_db

# Cold starts get an empty filesystem; make sure the table exists
init_db()

# The serverless runtime calls app(environ, start_response) directly
