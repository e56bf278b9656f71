# backend/wsgi.py
from textile_erp import create_app

app = create_app()
