from flask import Blueprint, jsonify

from ..auth import token_required
from ..database import db
from ..lifecycle import RequestLifecycleManager
from . import json_body

requests_bp = Blueprint('requests', __name__)


@requests_bp.route('', methods=['POST'])
@token_required
def create_request(caller):
    data = json_body()
    blood_request = RequestLifecycleManager(db.session).create_request(
        caller,
        blood_type=data.get('bloodType'),
        units=data.get('units'),
        urgency=data.get('urgency'),
        location=data.get('location'),
        notes=data.get('notes')
    )
    return jsonify({
        'message': 'Blood request created successfully',
        'requestId': blood_request.id
    }), 201


@requests_bp.route('/my-requests', methods=['GET'])
@token_required
def my_requests(caller):
    requests = RequestLifecycleManager(db.session).list_requester_requests(caller)
    return jsonify([r.to_dict() for r in requests])


@requests_bp.route('/<int:request_id>/matches', methods=['GET'])
@token_required
def matched_donors(caller, request_id):
    donors = RequestLifecycleManager(db.session).match_donors(caller, request_id)
    return jsonify([d.to_dict() for d in donors])


@requests_bp.route('/<int:request_id>', methods=['PUT'])
@token_required
def update_request(caller, request_id):
    RequestLifecycleManager(db.session).update_request_status(
        caller, request_id, json_body().get('status')
    )
    return jsonify({'message': 'Request updated successfully'})


@requests_bp.route('/<int:request_id>', methods=['DELETE'])
@token_required
def delete_request(caller, request_id):
    RequestLifecycleManager(db.session).delete_request(caller, request_id)
    return jsonify({'message': 'Request deleted successfully'})
