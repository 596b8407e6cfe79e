from flask import Blueprint, jsonify

from ..auth import token_required
from ..database import db
from ..profiles import ProfileStore
from . import json_body, pick

requesters_bp = Blueprint('requesters', __name__)

PROFILE_FIELDS = {
    'name': 'name',
    'email': 'email',
    'phone': 'phone',
    'location': 'location'
}


@requesters_bp.route('/profile', methods=['GET'])
@token_required
def get_profile(caller):
    return jsonify(ProfileStore(db.session).get_requester_profile(caller))


@requesters_bp.route('/profile', methods=['PUT'])
@token_required
def update_profile(caller):
    ProfileStore(db.session).update_requester_profile(caller, **pick(json_body(), PROFILE_FIELDS))
    return jsonify({'message': 'Profile updated successfully'})
