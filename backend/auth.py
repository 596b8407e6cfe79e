import datetime
import logging
from functools import wraps

import jwt
from flask import current_app, request
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from .database import BloodType, DonorProfile, Role, User, UserStatus, db
from .errors import AuthenticationError, ConflictError, ValidationError
from .policy import Caller
from .transaction import atomic
from .validation import validate_choice

logger = logging.getLogger(__name__)

DEFAULT_DONOR_BLOOD_TYPE = BloodType.O_POSITIVE.value


def issue_token(user, secret_key, expires_hours=24):
    return jwt.encode({
        'user_id': user.id,
        'role': user.role,
        'exp': datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=expires_hours)
    }, secret_key, algorithm='HS256')


def decode_token(token, secret_key):
    try:
        return jwt.decode(token, secret_key, algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Token has expired')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Token is invalid')


class IdentityService:
    """Registers users, checks credentials and issues session tokens."""

    def __init__(self, session, secret_key, expires_hours=24):
        self.session = session
        self.secret_key = secret_key
        self.expires_hours = expires_hours

    def register(self, name, email, password, role, blood_type=None, phone=None, location=None):
        if role not in (Role.DONOR.value, Role.REQUESTER.value, Role.ADMIN.value):
            raise ValidationError('Invalid role specified')
        for label, value in (('Name', name), ('Email', email), ('Password', password)):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f'{label} is required')
        if role == Role.DONOR.value and blood_type is not None:
            validate_choice(blood_type, BloodType, 'blood type')

        if self.session.query(User).filter_by(email=email).first():
            raise ConflictError('User already exists')

        user = User(
            name=name,
            email=email,
            password=generate_password_hash(password),
            role=role,
            status=UserStatus.ACTIVE.value,
            location=location,
            phone=phone,
            created_at=datetime.datetime.now()
        )
        try:
            with atomic(self.session):
                self.session.add(user)
                self.session.flush()
                if role == Role.DONOR.value:
                    self.session.add(DonorProfile(
                        user_id=user.id,
                        blood_type=blood_type or DEFAULT_DONOR_BLOOD_TYPE,
                        is_available=True,
                        location=location,
                        phone=phone
                    ))
        except IntegrityError:
            raise ConflictError('User already exists')

        logger.info(f"Registered {role} user {user.id}")
        return user, issue_token(user, self.secret_key, self.expires_hours)

    def login(self, email, password):
        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            raise ValidationError('Email and password are required')
        user = self.session.query(User).filter_by(email=email).first()
        if user is None or not check_password_hash(user.password, password):
            logger.warning(f"Failed login for {email}")
            raise AuthenticationError('Invalid credentials')
        if user.status != UserStatus.ACTIVE.value:
            raise AuthenticationError('Account is inactive')
        return user, issue_token(user, self.secret_key, self.expires_hours)

    def resolve(self, token):
        data = decode_token(token, self.secret_key)
        user = self.session.get(User, data.get('user_id'))
        if user is None:
            raise AuthenticationError('Token is invalid')
        if user.status != UserStatus.ACTIVE.value:
            raise AuthenticationError('Account is inactive')
        return Caller.from_user(user)


def identity_service():
    return IdentityService(
        db.session,
        current_app.config['SECRET_KEY'],
        current_app.config.get('JWT_EXPIRES_HOURS', 24)
    )


def token_required(f):
    """Resolve the bearer token into a Caller and pass it to the view."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get('Authorization', '')
        parts = auth_header.split(' ')
        if len(parts) != 2 or parts[0] != 'Bearer' or not parts[1]:
            raise AuthenticationError('Token is missing')
        caller = identity_service().resolve(parts[1])
        return f(caller, *args, **kwargs)
    return decorated
