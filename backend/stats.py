from datetime import datetime, timedelta

from sqlalchemy import func

from .database import (
    BloodRequest, BloodType, Donation, DonationStatus, DonorProfile, RequestStatus,
    Role, User, values
)
from .policy import require_role

RECENT_ACTIVITY_LIMIT = 10


class StatisticsAggregator:
    """Read-only dashboard rollups."""

    def __init__(self, session, recent_days=30):
        self.session = session
        self.recent_days = recent_days

    def _count_by(self, column):
        return dict(self.session.query(column, func.count()).group_by(column).all())

    def user_stats(self):
        by_role = self._count_by(User.role)
        return {
            'total_users': sum(by_role.values()),
            'total_donors': by_role.get(Role.DONOR.value, 0),
            'total_requesters': by_role.get(Role.REQUESTER.value, 0),
            'total_admins': by_role.get(Role.ADMIN.value, 0)
        }

    def request_stats(self):
        by_status = self._count_by(BloodRequest.status)
        stats = {
            'total_requests': sum(by_status.values()),
            'by_status': {status: by_status.get(status, 0) for status in values(RequestStatus)},
            'pending_requests': by_status.get(RequestStatus.PENDING.value, 0)
        }
        # a request only counts as completed once its donation is completed too
        stats['completed_requests'] = (
            self.session.query(func.count(BloodRequest.id))
            .select_from(BloodRequest)
            .join(Donation, Donation.request_id == BloodRequest.id)
            .filter(
                BloodRequest.status == RequestStatus.COMPLETED.value,
                Donation.status == DonationStatus.COMPLETED.value
            )
            .scalar()
        )
        stats['successful_donations'] = (
            self.session.query(func.count(Donation.id))
            .filter(Donation.status == DonationStatus.COMPLETED.value)
            .scalar()
        )
        return stats

    def blood_type_stats(self):
        available = dict(
            self.session.query(DonorProfile.blood_type, func.count(DonorProfile.user_id))
            .filter(DonorProfile.is_available.is_(True))
            .group_by(DonorProfile.blood_type)
            .all()
        )
        successful = dict(
            self.session.query(BloodRequest.blood_type, func.count(Donation.id))
            .select_from(BloodRequest)
            .join(Donation, Donation.request_id == BloodRequest.id)
            .filter(Donation.status == DonationStatus.COMPLETED.value)
            .group_by(BloodRequest.blood_type)
            .all()
        )
        return {
            blood_type: {
                'available_donors': available.get(blood_type, 0),
                'successful_donations': successful.get(blood_type, 0)
            }
            for blood_type in values(BloodType)
        }

    def recent_activity(self, now=None):
        since = (now or datetime.now()) - timedelta(days=self.recent_days)
        requests = (
            self.session.query(BloodRequest)
            .filter(BloodRequest.created_at >= since)
            .order_by(BloodRequest.created_at.desc())
            .limit(RECENT_ACTIVITY_LIMIT)
            .all()
        )
        donations = (
            self.session.query(Donation)
            .filter(Donation.donation_date >= since)
            .order_by(Donation.donation_date.desc())
            .limit(RECENT_ACTIVITY_LIMIT)
            .all()
        )

        activity = [{
            'type': 'request',
            'id': r.id,
            'user_name': r.requester.name,
            'blood_type': r.blood_type,
            'status': r.status,
            'urgency': r.urgency,
            'date': r.created_at
        } for r in requests]
        activity.extend({
            'type': 'donation',
            'id': d.id,
            'user_name': d.donor.name,
            'blood_type': d.request.blood_type,
            'status': d.status,
            'urgency': d.request.urgency,
            'date': d.donation_date
        } for d in donations)

        activity.sort(key=lambda row: row['date'], reverse=True)
        activity = activity[:RECENT_ACTIVITY_LIMIT]
        for row in activity:
            row['date'] = row['date'].isoformat()
        return activity

    def summary(self, caller):
        require_role(caller, Role.ADMIN)
        return {
            'users': self.user_stats(),
            'requests': self.request_stats(),
            'bloodTypeAvailability': self.blood_type_stats(),
            'recentActivity': self.recent_activity()
        }
