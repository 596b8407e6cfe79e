import logging

from sqlalchemy.exc import IntegrityError

from .database import BloodType, DonorProfile, RequesterProfile, Role, User, UserStatus
from .errors import ConflictError, NotFoundError, ValidationError
from .policy import require_role
from .transaction import atomic
from .validation import validate_choice

logger = logging.getLogger(__name__)

_MISSING = object()


def _apply(target, fields):
    for name, value in fields.items():
        if value is not _MISSING:
            setattr(target, name, value)


class ProfileStore:
    """Own-profile reads and updates for donors and requesters, plus user admin.

    Fields passed as ``_MISSING`` (the default) are left untouched.
    """

    def __init__(self, session):
        self.session = session

    def _user(self, caller):
        user = self.session.get(User, caller.user_id)
        if user is None:
            raise NotFoundError('User not found')
        return user

    def _update_user(self, user, name, email):
        if name is not _MISSING and not name:
            raise ValidationError('Name is required')
        if email is not _MISSING and not email:
            raise ValidationError('Email is required')
        _apply(user, {'name': name, 'email': email})

    def get_donor_profile(self, caller):
        require_role(caller, Role.DONOR)
        profile = self.session.get(DonorProfile, caller.user_id)
        if profile is None:
            raise NotFoundError('Donor profile not found')
        return profile

    def update_donor_profile(self, caller, name=_MISSING, email=_MISSING, phone=_MISSING,
                             blood_type=_MISSING, location=_MISSING):
        require_role(caller, Role.DONOR)
        if blood_type is not _MISSING:
            validate_choice(blood_type, BloodType, 'blood type')
        try:
            with atomic(self.session):
                user = self._user(caller)
                profile = self.session.get(DonorProfile, caller.user_id)
                if profile is None:
                    raise NotFoundError('Donor profile not found')
                self._update_user(user, name, email)
                _apply(profile, {'phone': phone, 'blood_type': blood_type, 'location': location})
                self.session.flush()
        except IntegrityError:
            raise ConflictError('Email already in use')
        return profile

    def set_availability(self, caller, is_available):
        require_role(caller, Role.DONOR)
        if not isinstance(is_available, bool):
            raise ValidationError('is_available must be true or false')
        with atomic(self.session):
            profile = self.session.get(DonorProfile, caller.user_id)
            if profile is None:
                raise NotFoundError('Donor profile not found')
            profile.is_available = is_available
        logger.info(f"Donor {caller.user_id} availability set to {is_available}")
        return profile

    def get_requester_profile(self, caller):
        require_role(caller, Role.REQUESTER)
        user = self._user(caller)
        profile = user.requester_profile
        data = user.to_dict()
        data['phone'] = profile.phone if profile else user.phone
        data['location'] = profile.location if profile else user.location
        return data

    def update_requester_profile(self, caller, name=_MISSING, email=_MISSING,
                                 phone=_MISSING, location=_MISSING):
        require_role(caller, Role.REQUESTER)
        try:
            with atomic(self.session):
                user = self._user(caller)
                self._update_user(user, name, email)
                profile = self.session.get(RequesterProfile, caller.user_id)
                if profile is None:
                    # created on first write
                    profile = RequesterProfile(user_id=caller.user_id)
                    self.session.add(profile)
                _apply(profile, {'phone': phone, 'location': location})
                self.session.flush()
        except IntegrityError:
            raise ConflictError('Email already in use')
        return profile

    def list_users(self, caller):
        require_role(caller, Role.ADMIN)
        return self.session.query(User).order_by(User.id).all()

    def set_user_status(self, caller, user_id, status):
        require_role(caller, Role.ADMIN)
        validate_choice(status, UserStatus, 'status')
        with atomic(self.session):
            user = self.session.get(User, user_id)
            if user is None:
                raise NotFoundError('User not found')
            user.status = status
        logger.info(f"User {user_id} status set to {status}")
        return user
