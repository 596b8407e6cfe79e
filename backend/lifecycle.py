"""Blood request and donation lifecycle.

A request moves ``pending -> approved -> completed`` as a donor accepts it and
an administrator records the donation, or ends in ``cancelled``. Completed and
cancelled requests never change again. Every operation that writes more than
one table runs inside a single :func:`backend.transaction.atomic` block.
"""
import logging
from datetime import datetime

from sqlalchemy import case
from sqlalchemy.exc import IntegrityError

from .database import (
    BloodRequest, BloodType, Donation, DonationStatus, DonorProfile,
    RequestStatus, Role, Urgency, User
)
from .errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from .policy import require_owner, require_role
from .transaction import atomic
from .validation import (
    validate_choice, validate_optional_number, validate_required_text, validate_units
)

logger = logging.getLogger(__name__)

TRANSITIONS = {
    RequestStatus.PENDING.value: {
        RequestStatus.APPROVED.value,
        RequestStatus.CANCELLED.value,
        RequestStatus.COMPLETED.value,
    },
    # approved requests carry a scheduled donation; only completing it moves them on
    RequestStatus.APPROVED.value: {
        RequestStatus.COMPLETED.value,
    },
    RequestStatus.COMPLETED.value: set(),
    RequestStatus.CANCELLED.value: set(),
}

REQUESTER_STATUSES = {RequestStatus.PENDING.value, RequestStatus.CANCELLED.value}
ADMIN_STATUSES = {
    RequestStatus.PENDING.value,
    RequestStatus.COMPLETED.value,
    RequestStatus.CANCELLED.value,
}

URGENCY_RANK = {
    Urgency.NORMAL.value: 1,
    Urgency.URGENT.value: 2,
    Urgency.EMERGENCY.value: 3,
}


def check_transition(current, new_status):
    """Return True when ``current -> new_status`` changes the request.

    Setting a request to the status it already has is a no-op.
    """
    if current == new_status:
        return False
    if new_status not in TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            f'Cannot change request status from {current} to {new_status}'
        )
    return True


class RequestLifecycleManager:

    def __init__(self, session):
        self.session = session

    def _apply_status(self, blood_request, new_status):
        if check_transition(blood_request.status, new_status):
            logger.info(f"Request {blood_request.id}: {blood_request.status} -> {new_status}")
            blood_request.status = new_status
        return blood_request

    def create_request(self, caller, blood_type, units, urgency, location, notes=None):
        require_role(caller, Role.REQUESTER)
        validate_choice(urgency, Urgency, 'urgency level')
        validate_choice(blood_type, BloodType, 'blood type')
        validate_units(units)
        validate_required_text(location, 'Location')

        blood_request = BloodRequest(
            requester_id=caller.user_id,
            blood_type=blood_type,
            units=units,
            urgency=urgency,
            location=location,
            notes=notes or '',
            status=RequestStatus.PENDING.value,
            created_at=datetime.now()
        )
        with atomic(self.session):
            self.session.add(blood_request)
        logger.info(f"Request {blood_request.id} created by user {caller.user_id}")
        return blood_request

    def accept_request(self, caller, request_id):
        require_role(caller, Role.DONOR)
        now = datetime.now()
        try:
            with atomic(self.session):
                # conditional update: only one concurrent accept can match a pending row
                updated = (
                    self.session.query(BloodRequest)
                    .filter_by(id=request_id, status=RequestStatus.PENDING.value)
                    .update({'status': RequestStatus.APPROVED.value}, synchronize_session='fetch')
                )
                if updated == 0:
                    raise NotFoundError('Request not found or no longer pending')

                donation = Donation(
                    donor_id=caller.user_id,
                    request_id=request_id,
                    donation_date=now,
                    status=DonationStatus.SCHEDULED.value
                )
                self.session.add(donation)
                self.session.flush()

                self.session.query(DonorProfile).filter_by(user_id=caller.user_id).update(
                    {'last_donation_date': now}, synchronize_session='fetch'
                )
        except IntegrityError:
            logger.warning(f"Duplicate donation for request {request_id}")
            raise ConflictError('Request already has a donation')

        logger.info(f"Request {request_id} accepted by donor {caller.user_id}")
        return donation

    def complete_donation(self, caller, donation_id, hemoglobin_level=None,
                          blood_pressure=None, pulse_rate=None, notes=None):
        require_role(caller, Role.ADMIN)
        validate_optional_number(hemoglobin_level, 'Hemoglobin level')
        validate_optional_number(pulse_rate, 'Pulse rate', integer=True)
        now = datetime.now()

        with atomic(self.session):
            donation = self.session.get(Donation, donation_id)
            if donation is None:
                raise NotFoundError('Donation not found')
            if donation.status == DonationStatus.COMPLETED.value:
                raise InvalidTransitionError('Donation is already completed')

            donation.status = DonationStatus.COMPLETED.value
            donation.hemoglobin_level = hemoglobin_level
            donation.blood_pressure = blood_pressure
            donation.pulse_rate = pulse_rate
            donation.notes = notes
            donation.donation_date = now

            blood_request = self.session.get(BloodRequest, donation.request_id)
            if blood_request is None:
                raise NotFoundError('Donation data not found')
            self._apply_status(blood_request, RequestStatus.COMPLETED.value)

            self.session.query(DonorProfile).filter_by(user_id=donation.donor_id).update(
                {'last_donation_date': now}, synchronize_session='fetch'
            )

        logger.info(f"Donation {donation_id} completed for request {donation.request_id}")
        return donation

    def update_request_status(self, caller, request_id, new_status):
        require_role(caller, Role.REQUESTER)
        validate_choice(new_status, RequestStatus, 'status')

        with atomic(self.session):
            blood_request = require_owner(
                caller,
                self.session.get(BloodRequest, request_id),
                'Request not found or unauthorized'
            )
            if new_status not in REQUESTER_STATUSES and new_status != blood_request.status:
                raise InvalidTransitionError('Requesters can only cancel a request')
            self._apply_status(blood_request, new_status)
        return blood_request

    def admin_set_request_status(self, caller, request_id, new_status):
        require_role(caller, Role.ADMIN)
        if new_status not in ADMIN_STATUSES:
            raise ValidationError('Invalid status')

        with atomic(self.session):
            blood_request = self.session.get(BloodRequest, request_id)
            if blood_request is None:
                raise NotFoundError('Request not found')
            donation = self.session.query(Donation).filter_by(request_id=request_id).first()
            if (donation is not None and new_status == RequestStatus.COMPLETED.value
                    and blood_request.status != new_status):
                raise InvalidTransitionError('Complete the donation to complete this request')
            self._apply_status(blood_request, new_status)
        return blood_request

    def admin_set_request_priority(self, caller, request_id, urgency):
        require_role(caller, Role.ADMIN)
        validate_choice(urgency, Urgency, 'urgency level')

        with atomic(self.session):
            blood_request = self.session.get(BloodRequest, request_id)
            if blood_request is None:
                raise NotFoundError('Request not found')
            blood_request.urgency = urgency
        logger.info(f"Request {request_id} priority set to {urgency}")
        return blood_request

    def delete_request(self, caller, request_id):
        require_role(caller, Role.REQUESTER)
        with atomic(self.session):
            deleted = (
                self.session.query(BloodRequest)
                .filter_by(
                    id=request_id,
                    requester_id=caller.user_id,
                    status=RequestStatus.PENDING.value
                )
                .delete(synchronize_session='fetch')
            )
            if deleted == 0:
                raise NotFoundError('Request not found, unauthorized, or cannot be deleted')
        logger.info(f"Request {request_id} deleted by user {caller.user_id}")

    def match_donors(self, caller, request_id):
        require_role(caller, Role.REQUESTER)
        blood_request = require_owner(caller, self.session.get(BloodRequest, request_id))
        return (
            self.session.query(DonorProfile)
            .join(User, DonorProfile.user_id == User.id)
            .filter(
                DonorProfile.blood_type == blood_request.blood_type,
                DonorProfile.is_available.is_(True)
            )
            .order_by(DonorProfile.user_id)
            .all()
        )

    def match_requests(self, caller):
        """Pending requests for the donor's blood type, most urgent and oldest first."""
        require_role(caller, Role.DONOR)
        profile = self.session.get(DonorProfile, caller.user_id)
        if profile is None:
            raise NotFoundError('Donor profile not found')

        urgency_rank = case(URGENCY_RANK, value=BloodRequest.urgency, else_=0)
        return (
            self.session.query(BloodRequest)
            .filter(
                BloodRequest.blood_type == profile.blood_type,
                BloodRequest.status == RequestStatus.PENDING.value
            )
            .order_by(urgency_rank.desc(), BloodRequest.created_at.asc(), BloodRequest.id.asc())
            .all()
        )

    def list_requester_requests(self, caller):
        require_role(caller, Role.REQUESTER)
        return (
            self.session.query(BloodRequest)
            .filter_by(requester_id=caller.user_id)
            .order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
            .all()
        )

    def list_donor_donations(self, caller):
        require_role(caller, Role.DONOR)
        return (
            self.session.query(Donation)
            .filter_by(donor_id=caller.user_id)
            .order_by(Donation.donation_date.desc(), Donation.id.desc())
            .all()
        )

    def list_all_requests(self, caller):
        require_role(caller, Role.ADMIN)
        return (
            self.session.query(BloodRequest)
            .order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
            .all()
        )

    def list_all_donations(self, caller):
        require_role(caller, Role.ADMIN)
        return (
            self.session.query(Donation)
            .order_by(Donation.donation_date.desc(), Donation.id.desc())
            .all()
        )
