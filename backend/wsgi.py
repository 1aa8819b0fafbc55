# Overview: WSGI entry point; FLASK_APP points here for the flask CLI.

from gemalery import create_app

app = create_app()
