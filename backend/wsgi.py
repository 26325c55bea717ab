# Overview: WSGI entrypoint; `flask --app wsgi run` or any WSGI server.

from neocafe import create_app

app = create_app()
