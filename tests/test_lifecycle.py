from datetime import datetime, timedelta

import pytest

from backend.database import BloodRequest, Donation, DonorProfile
from backend.errors import (
    AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError, ValidationError
)
from backend.lifecycle import check_transition


def test_create_request_is_pending_with_submitted_fields(manager, requester, session):
    created = manager.create_request(requester.caller, 'A+', 3, 'urgent', 'General Hospital', 'ICU')

    stored = session.get(BloodRequest, created.id)
    assert stored.status == 'pending'
    assert stored.requester_id == requester.user.id
    assert (stored.blood_type, stored.units, stored.urgency) == ('A+', 3, 'urgent')
    assert (stored.location, stored.notes) == ('General Hospital', 'ICU')


@pytest.mark.parametrize('blood_type, units, urgency, location', [
    ('C+', 1, 'normal', 'Clinic'),
    ('A+', 0, 'normal', 'Clinic'),
    ('A+', -2, 'normal', 'Clinic'),
    ('A+', 1.5, 'normal', 'Clinic'),
    ('A+', True, 'normal', 'Clinic'),
    ('A+', '2', 'normal', 'Clinic'),
    ('A+', 1, 'critical', 'Clinic'),
    ('A+', 1, 'normal', '   '),
    ('A+', 1, 'normal', None),
])
def test_create_request_rejects_invalid_input(manager, requester, session,
                                              blood_type, units, urgency, location):
    with pytest.raises(ValidationError):
        manager.create_request(requester.caller, blood_type, units, urgency, location)
    assert session.query(BloodRequest).count() == 0


def test_only_requesters_create_requests(manager, donor):
    with pytest.raises(AuthorizationError):
        manager.create_request(donor.caller, 'O-', 1, 'normal', 'Clinic')


def test_accept_approves_request_and_schedules_donation(manager, donor, pending_request, session):
    donation = manager.accept_request(donor.caller, pending_request.id)

    assert session.get(BloodRequest, pending_request.id).status == 'approved'
    assert donation.donor_id == donor.user.id
    assert donation.request_id == pending_request.id
    assert donation.status == 'scheduled'
    assert session.get(DonorProfile, donor.user.id).last_donation_date is not None


def test_accept_unknown_request_writes_nothing(manager, donor, session):
    with pytest.raises(NotFoundError):
        manager.accept_request(donor.caller, 999)
    assert session.query(Donation).count() == 0
    assert session.get(DonorProfile, donor.user.id).last_donation_date is None


def test_second_accept_is_rejected(manager, register, pending_request, session):
    first = register('donor', blood_type='O-')
    second = register('donor', blood_type='O-')
    manager.accept_request(first.caller, pending_request.id)

    with pytest.raises(NotFoundError):
        manager.accept_request(second.caller, pending_request.id)
    assert session.query(Donation).count() == 1
    assert session.get(DonorProfile, second.user.id).last_donation_date is None


def test_accept_rolls_back_status_when_donation_insert_fails(manager, donor, register,
                                                             pending_request, session):
    other = register('donor', blood_type='O-')
    # stale donation row already pointing at a still-pending request
    session.add(Donation(donor_id=other.user.id, request_id=pending_request.id,
                         donation_date=datetime.now(), status='scheduled'))
    session.commit()

    with pytest.raises(ConflictError):
        manager.accept_request(donor.caller, pending_request.id)

    assert session.get(BloodRequest, pending_request.id).status == 'pending'
    assert session.get(DonorProfile, donor.user.id).last_donation_date is None
    assert session.query(Donation).count() == 1


def test_accept_does_not_check_blood_type(manager, register, pending_request, session):
    a_positive = register('donor', blood_type='A+')
    manager.accept_request(a_positive.caller, pending_request.id)
    assert session.get(BloodRequest, pending_request.id).status == 'approved'


def test_complete_donation_completes_request(manager, donor, admin, pending_request, session):
    donation = manager.accept_request(donor.caller, pending_request.id)

    manager.complete_donation(admin.caller, donation.id, hemoglobin_level=13.5,
                              blood_pressure='120/80', pulse_rate=72, notes='ok')

    stored = session.get(Donation, donation.id)
    assert stored.status == 'completed'
    assert (stored.hemoglobin_level, stored.blood_pressure, stored.pulse_rate) == (13.5, '120/80', 72)
    assert session.get(BloodRequest, pending_request.id).status == 'completed'
    assert session.get(DonorProfile, donor.user.id).last_donation_date is not None


def test_complete_unknown_donation(manager, admin):
    with pytest.raises(NotFoundError):
        manager.complete_donation(admin.caller, 42)


def test_complete_requires_admin(manager, donor, pending_request):
    donation = manager.accept_request(donor.caller, pending_request.id)
    with pytest.raises(AuthorizationError):
        manager.complete_donation(donor.caller, donation.id)


def test_approved_request_cannot_be_cancelled(manager, donor, requester, admin,
                                              pending_request, session):
    donation = manager.accept_request(donor.caller, pending_request.id)

    with pytest.raises(InvalidTransitionError):
        manager.update_request_status(requester.caller, pending_request.id, 'cancelled')
    with pytest.raises(InvalidTransitionError):
        manager.admin_set_request_status(admin.caller, pending_request.id, 'cancelled')

    assert session.get(BloodRequest, pending_request.id).status == 'approved'
    assert session.get(Donation, donation.id).status == 'scheduled'


def test_admin_cannot_complete_request_around_its_donation(manager, donor, admin,
                                                           pending_request, session):
    donation = manager.accept_request(donor.caller, pending_request.id)
    accepted_at = session.get(DonorProfile, donor.user.id).last_donation_date

    with pytest.raises(InvalidTransitionError):
        manager.admin_set_request_status(admin.caller, pending_request.id, 'completed')

    assert session.get(BloodRequest, pending_request.id).status == 'approved'
    assert session.get(Donation, donation.id).status == 'scheduled'
    assert session.get(DonorProfile, donor.user.id).last_donation_date == accepted_at


def test_admin_can_complete_pending_request_without_donation(manager, admin,
                                                             pending_request, session):
    manager.admin_set_request_status(admin.caller, pending_request.id, 'completed')
    assert session.get(BloodRequest, pending_request.id).status == 'completed'


def test_complete_rolls_back_when_request_was_cancelled(manager, donor, admin,
                                                        pending_request, session):
    donation = manager.accept_request(donor.caller, pending_request.id)
    # cancelled out of band, bypassing the lifecycle checks
    session.get(BloodRequest, pending_request.id).status = 'cancelled'
    session.commit()
    accepted_at = session.get(DonorProfile, donor.user.id).last_donation_date

    with pytest.raises(InvalidTransitionError):
        manager.complete_donation(admin.caller, donation.id, hemoglobin_level=13.5,
                                  blood_pressure='120/80', pulse_rate=72)

    stored = session.get(Donation, donation.id)
    assert stored.status == 'scheduled'
    assert stored.hemoglobin_level is None
    assert session.get(BloodRequest, pending_request.id).status == 'cancelled'
    assert session.get(DonorProfile, donor.user.id).last_donation_date == accepted_at


def test_complete_twice_is_rejected(manager, donor, admin, pending_request):
    donation = manager.accept_request(donor.caller, pending_request.id)
    manager.complete_donation(admin.caller, donation.id)
    with pytest.raises(InvalidTransitionError):
        manager.complete_donation(admin.caller, donation.id)


def test_complete_validates_medical_fields(manager, donor, admin, pending_request):
    donation = manager.accept_request(donor.caller, pending_request.id)
    with pytest.raises(ValidationError):
        manager.complete_donation(admin.caller, donation.id, pulse_rate='fast')


def test_requester_can_cancel_own_request(manager, requester, pending_request, session):
    manager.update_request_status(requester.caller, pending_request.id, 'cancelled')
    assert session.get(BloodRequest, pending_request.id).status == 'cancelled'


def test_requester_cannot_touch_other_requests(manager, register, pending_request, session):
    stranger = register('requester')
    with pytest.raises(NotFoundError):
        manager.update_request_status(stranger.caller, pending_request.id, 'cancelled')
    with pytest.raises(NotFoundError):
        manager.update_request_status(stranger.caller, 999, 'cancelled')
    assert session.get(BloodRequest, pending_request.id).status == 'pending'


@pytest.mark.parametrize('status, error', [
    ('approved', InvalidTransitionError),
    ('completed', InvalidTransitionError),
    ('done', ValidationError),
])
def test_requester_status_changes_are_limited(manager, requester, pending_request, status, error):
    with pytest.raises(error):
        manager.update_request_status(requester.caller, pending_request.id, status)


def test_admin_status_must_be_allowed_value(manager, admin, pending_request):
    with pytest.raises(ValidationError):
        manager.admin_set_request_status(admin.caller, pending_request.id, 'approved')


def test_admin_can_cancel_and_cancelled_is_terminal(manager, admin, pending_request, session):
    manager.admin_set_request_status(admin.caller, pending_request.id, 'cancelled')
    assert session.get(BloodRequest, pending_request.id).status == 'cancelled'

    with pytest.raises(InvalidTransitionError):
        manager.admin_set_request_status(admin.caller, pending_request.id, 'pending')


def test_admin_status_unknown_request(manager, admin):
    with pytest.raises(NotFoundError):
        manager.admin_set_request_status(admin.caller, 999, 'cancelled')


def test_admin_sets_priority(manager, admin, pending_request, session):
    manager.admin_set_request_priority(admin.caller, pending_request.id, 'normal')
    assert session.get(BloodRequest, pending_request.id).urgency == 'normal'

    with pytest.raises(ValidationError):
        manager.admin_set_request_priority(admin.caller, pending_request.id, 'asap')
    with pytest.raises(NotFoundError):
        manager.admin_set_request_priority(admin.caller, 999, 'urgent')


def test_delete_pending_own_request(manager, requester, pending_request, session):
    manager.delete_request(requester.caller, pending_request.id)
    assert session.get(BloodRequest, pending_request.id) is None


def test_delete_refuses_foreign_or_non_pending(manager, register, requester, donor,
                                               pending_request, session):
    stranger = register('requester')
    with pytest.raises(NotFoundError):
        manager.delete_request(stranger.caller, pending_request.id)

    manager.accept_request(donor.caller, pending_request.id)
    with pytest.raises(NotFoundError):
        manager.delete_request(requester.caller, pending_request.id)
    assert session.get(BloodRequest, pending_request.id) is not None


def test_match_donors_filters_blood_type_and_availability(manager, register, requester,
                                                          pending_request, session):
    match = register('donor', blood_type='O-')
    unavailable = register('donor', blood_type='O-')
    register('donor', blood_type='B+')
    session.get(DonorProfile, unavailable.user.id).is_available = False
    session.commit()

    donors = manager.match_donors(requester.caller, pending_request.id)
    assert [d.user_id for d in donors] == [match.user.id]


def test_match_donors_requires_ownership(manager, register, pending_request):
    stranger = register('requester')
    with pytest.raises(NotFoundError):
        manager.match_donors(stranger.caller, pending_request.id)


def test_match_requests_orders_by_urgency_then_age(manager, register, requester, session):
    donor = register('donor', blood_type='A-')
    base = datetime(2024, 1, 1, 12, 0)
    fixtures = [
        ('normal', 0), ('emergency', 2), ('urgent', 1), ('emergency', 1), ('normal', -1)
    ]
    ids = []
    for urgency, offset in fixtures:
        created = manager.create_request(requester.caller, 'A-', 1, urgency, 'Clinic')
        created.created_at = base + timedelta(hours=offset)
        ids.append(created.id)
    other = manager.create_request(requester.caller, 'B-', 1, 'emergency', 'Clinic')
    taken = manager.create_request(requester.caller, 'A-', 1, 'emergency', 'Clinic')
    taken.status = 'cancelled'
    session.commit()

    matched = [r.id for r in manager.match_requests(donor.caller)]

    assert matched == [ids[3], ids[1], ids[2], ids[4], ids[0]]
    assert other.id not in matched and taken.id not in matched


def test_match_requests_needs_donor(manager, requester):
    with pytest.raises(AuthorizationError):
        manager.match_requests(requester.caller)


def test_listings_are_scoped(manager, donor, requester, register, admin, pending_request):
    other = register('requester')
    manager.create_request(other.caller, 'A+', 1, 'normal', 'Clinic')
    manager.accept_request(donor.caller, pending_request.id)

    assert [r.id for r in manager.list_requester_requests(requester.caller)] == [pending_request.id]
    assert [d.request_id for d in manager.list_donor_donations(donor.caller)] == [pending_request.id]
    assert len(manager.list_all_requests(admin.caller)) == 2
    assert len(manager.list_all_donations(admin.caller)) == 1
    with pytest.raises(AuthorizationError):
        manager.list_all_requests(requester.caller)


@pytest.mark.parametrize('current, new, changes', [
    ('pending', 'pending', False),
    ('pending', 'approved', True),
    ('approved', 'completed', True),
    ('pending', 'cancelled', True),
])
def test_check_transition_allowed(current, new, changes):
    assert check_transition(current, new) is changes


@pytest.mark.parametrize('current, new', [
    ('completed', 'pending'),
    ('completed', 'cancelled'),
    ('cancelled', 'approved'),
    ('approved', 'pending'),
    ('approved', 'cancelled'),
])
def test_check_transition_rejected(current, new):
    with pytest.raises(InvalidTransitionError):
        check_transition(current, new)
