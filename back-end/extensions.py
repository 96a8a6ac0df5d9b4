from flask import current_app

EXTENSION_KEY = "listor"


def init_services(app, repository, mailer):
    app.extensions[EXTENSION_KEY] = {"repository": repository, "mailer": mailer}


def get_repository():
    return current_app.extensions[EXTENSION_KEY]["repository"]


def get_mailer():
    return current_app.extensions[EXTENSION_KEY]["mailer"]
