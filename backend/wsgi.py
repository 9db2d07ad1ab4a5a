# Overview: WSGI entrypoint for `flask run` and production servers.

from posledger import create_app

app = create_app()
