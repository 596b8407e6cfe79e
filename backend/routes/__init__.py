from flask import request


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def pick(data, mapping):
    """Map present request keys onto keyword arguments, skipping absent ones."""
    return {arg: data[key] for key, arg in mapping.items() if key in data}


def register_blueprints(app):
    from .admin import admin_bp
    from .auth import auth_bp
    from .donors import donors_bp
    from .requesters import requesters_bp
    from .requests import requests_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(donors_bp, url_prefix='/api/donors')
    app.register_blueprint(requesters_bp, url_prefix='/api/requesters')
    app.register_blueprint(requests_bp, url_prefix='/api/requests')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
