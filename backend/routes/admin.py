from flask import Blueprint, current_app, jsonify

from ..auth import token_required
from ..database import db
from ..lifecycle import RequestLifecycleManager
from ..profiles import ProfileStore
from ..stats import StatisticsAggregator
from . import json_body

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/users', methods=['GET'])
@token_required
def list_users(caller):
    users = ProfileStore(db.session).list_users(caller)
    return jsonify([u.to_dict() for u in users])


@admin_bp.route('/users/<int:user_id>', methods=['PUT'])
@token_required
def update_user_status(caller, user_id):
    ProfileStore(db.session).set_user_status(caller, user_id, json_body().get('status'))
    return jsonify({'message': 'User status updated successfully'})


@admin_bp.route('/stats', methods=['GET'])
@token_required
def stats(caller):
    aggregator = StatisticsAggregator(db.session, current_app.config.get('RECENT_ACTIVITY_DAYS', 30))
    return jsonify(aggregator.summary(caller))


@admin_bp.route('/requests', methods=['GET'])
@token_required
def list_requests(caller):
    requests = RequestLifecycleManager(db.session).list_all_requests(caller)
    return jsonify([r.to_dict() for r in requests])


@admin_bp.route('/requests/<int:request_id>/priority', methods=['PUT'])
@token_required
def update_priority(caller, request_id):
    RequestLifecycleManager(db.session).admin_set_request_priority(
        caller, request_id, json_body().get('urgency')
    )
    return jsonify({'message': 'Request priority updated successfully'})


@admin_bp.route('/requests/<int:request_id>/status', methods=['PUT'])
@token_required
def update_status(caller, request_id):
    RequestLifecycleManager(db.session).admin_set_request_status(
        caller, request_id, json_body().get('status')
    )
    return jsonify({'message': 'Request status updated successfully'})


@admin_bp.route('/donations', methods=['GET'])
@token_required
def list_donations(caller):
    donations = RequestLifecycleManager(db.session).list_all_donations(caller)
    return jsonify([d.to_dict() for d in donations])


@admin_bp.route('/donations/<int:donation_id>/complete', methods=['PUT'])
@token_required
def complete_donation(caller, donation_id):
    data = json_body()
    donation = RequestLifecycleManager(db.session).complete_donation(
        caller,
        donation_id,
        hemoglobin_level=data.get('hemoglobin_level'),
        blood_pressure=data.get('blood_pressure'),
        pulse_rate=data.get('pulse_rate'),
        notes=data.get('notes')
    )
    return jsonify({
        'message': 'Donation completed successfully',
        'donationId': donation.id,
        'requestId': donation.request_id
    })
