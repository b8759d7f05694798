# backend/wsgi.py
# FLASK_APP entry point: `python -m flask --app wsgi run` from the backend directory.
from pos_api import create_app

app = create_app()
