# Overview: WSGI entrypoint; also the FLASK_APP target for the CLI.

from foodops import create_app

app = create_app()
