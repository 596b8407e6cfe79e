from flask import Blueprint, jsonify

from ..auth import identity_service
from . import json_body

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
def register():
    data = json_body()
    user, token = identity_service().register(
        name=data.get('name'),
        email=data.get('email'),
        password=data.get('password'),
        role=data.get('role'),
        blood_type=data.get('bloodType'),
        phone=data.get('phone'),
        location=data.get('location')
    )
    return jsonify({
        'message': 'User registered successfully',
        'token': token,
        'user': user.summary()
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    user, token = identity_service().login(data.get('email'), data.get('password'))
    return jsonify({
        'message': 'Login successful',
        'token': token,
        'user': user.summary()
    }), 200
