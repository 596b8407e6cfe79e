from datetime import datetime
from enum import Enum

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Role(str, Enum):
    DONOR = 'donor'
    REQUESTER = 'requester'
    ADMIN = 'admin'


class UserStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class BloodType(str, Enum):
    A_POSITIVE = 'A+'
    A_NEGATIVE = 'A-'
    B_POSITIVE = 'B+'
    B_NEGATIVE = 'B-'
    AB_POSITIVE = 'AB+'
    AB_NEGATIVE = 'AB-'
    O_POSITIVE = 'O+'
    O_NEGATIVE = 'O-'


class Urgency(str, Enum):
    NORMAL = 'normal'
    URGENT = 'urgent'
    EMERGENCY = 'emergency'


class RequestStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class DonationStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'


def values(enum_cls):
    return [member.value for member in enum_cls]


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=UserStatus.ACTIVE.value)
    location = db.Column(db.String(200))
    phone = db.Column(db.String(20))
    created_at = db.Column(db.DateTime, default=datetime.now)

    donor_profile = db.relationship('DonorProfile', backref='user', uselist=False)
    requester_profile = db.relationship('RequesterProfile', backref='user', uselist=False)

    def summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role
        }

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'status': self.status,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"<User {self.id} {self.email} ({self.role})>"


class DonorProfile(db.Model):
    __tablename__ = 'donor_profiles'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), primary_key=True)
    blood_type = db.Column(db.String(5), nullable=False)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    last_donation_date = db.Column(db.DateTime)
    location = db.Column(db.String(200))
    phone = db.Column(db.String(20))

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'name': self.user.name,
            'email': self.user.email,
            'blood_type': self.blood_type,
            'is_available': self.is_available,
            'last_donation_date': _iso(self.last_donation_date),
            'location': self.location,
            'phone': self.phone
        }


class RequesterProfile(db.Model):
    __tablename__ = 'requester_profiles'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), primary_key=True)
    phone = db.Column(db.String(20))
    location = db.Column(db.String(200))


class BloodRequest(db.Model):
    __tablename__ = 'blood_requests'

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    blood_type = db.Column(db.String(5), nullable=False)
    units = db.Column(db.Integer, nullable=False)
    urgency = db.Column(db.String(20), nullable=False)
    location = db.Column(db.String(200), nullable=False)
    notes = db.Column(db.Text, default='')
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value)
    created_at = db.Column(db.DateTime, default=datetime.now)

    requester = db.relationship('User', backref=db.backref('blood_requests', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'requester_id': self.requester_id,
            'requester_name': self.requester.name if self.requester else None,
            'blood_type': self.blood_type,
            'units': self.units,
            'urgency': self.urgency,
            'location': self.location,
            'notes': self.notes,
            'status': self.status,
            'created_at': _iso(self.created_at)
        }

    def __repr__(self):
        return f"<BloodRequest {self.id} {self.blood_type} x{self.units} {self.status}>"


class Donation(db.Model):
    __tablename__ = 'donations'

    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    # one donation per accepted request
    request_id = db.Column(db.Integer, db.ForeignKey('blood_requests.id'), nullable=False, unique=True)
    donation_date = db.Column(db.DateTime, nullable=False, default=datetime.now)
    status = db.Column(db.String(20), nullable=False, default=DonationStatus.SCHEDULED.value)
    hemoglobin_level = db.Column(db.Float)
    blood_pressure = db.Column(db.String(20))
    pulse_rate = db.Column(db.Integer)
    notes = db.Column(db.Text)

    donor = db.relationship('User', backref=db.backref('donations', lazy=True))
    request = db.relationship('BloodRequest', backref=db.backref('donation', uselist=False))

    def to_dict(self):
        blood_request = self.request
        return {
            'id': self.id,
            'donor_id': self.donor_id,
            'donor_name': self.donor.name if self.donor else None,
            'request_id': self.request_id,
            'donation_date': _iso(self.donation_date),
            'status': self.status,
            'hemoglobin_level': self.hemoglobin_level,
            'blood_pressure': self.blood_pressure,
            'pulse_rate': self.pulse_rate,
            'notes': self.notes,
            'blood_type': blood_request.blood_type if blood_request else None,
            'units': blood_request.units if blood_request else None,
            'location': blood_request.location if blood_request else None,
            'requester_name': blood_request.requester.name if blood_request and blood_request.requester else None
        }

    def __repr__(self):
        return f"<Donation {self.id} request={self.request_id} {self.status}>"
