# backend/wsgi.py
from storeadmin import create_app

app = create_app()
