from flask import Blueprint, jsonify

from ..auth import token_required
from ..database import db
from ..lifecycle import RequestLifecycleManager
from ..profiles import ProfileStore
from . import json_body, pick

donors_bp = Blueprint('donors', __name__)

PROFILE_FIELDS = {
    'name': 'name',
    'email': 'email',
    'phone': 'phone',
    'bloodType': 'blood_type',
    'location': 'location'
}


@donors_bp.route('/profile', methods=['GET'])
@token_required
def get_profile(caller):
    profile = ProfileStore(db.session).get_donor_profile(caller)
    return jsonify(profile.to_dict())


@donors_bp.route('/profile', methods=['PUT'])
@token_required
def update_profile(caller):
    ProfileStore(db.session).update_donor_profile(caller, **pick(json_body(), PROFILE_FIELDS))
    return jsonify({'message': 'Profile updated successfully'})


@donors_bp.route('/availability', methods=['PUT'])
@token_required
def update_availability(caller):
    ProfileStore(db.session).set_availability(caller, json_body().get('is_available'))
    return jsonify({'message': 'Availability updated successfully'})


@donors_bp.route('/requests', methods=['GET'])
@token_required
def matching_requests(caller):
    requests = RequestLifecycleManager(db.session).match_requests(caller)
    return jsonify([r.to_dict() for r in requests])


@donors_bp.route('/accept-request/<int:request_id>', methods=['POST'])
@token_required
def accept_request(caller, request_id):
    donation = RequestLifecycleManager(db.session).accept_request(caller, request_id)
    return jsonify({
        'message': 'Request accepted successfully',
        'donationId': donation.id,
        'requestId': request_id
    })


@donors_bp.route('/history', methods=['GET'])
@token_required
def donation_history(caller):
    donations = RequestLifecycleManager(db.session).list_donor_donations(caller)
    return jsonify([d.to_dict() for d in donations])
