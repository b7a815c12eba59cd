"""Tests for the appointment access rules."""

from uuid import uuid4

import pytest
from sqlalchemy import false
from sqlalchemy.dialects import sqlite

from medislot.core.authorization import (
    Actor,
    AppointmentAction,
    Role,
    can_create_appointment,
    ensure_allowed,
    is_allowed,
    scope_conditions,
)
from medislot.core.exceptions import ForbiddenException

PATIENT_ID = uuid4()
DOCTOR_USER_ID = uuid4()
DOCTOR_ID = uuid4()

APPOINTMENT = {"id": uuid4(), "patient_id": PATIENT_ID, "doctor_id": DOCTOR_ID}

patient = Actor(user_id=PATIENT_ID, role=Role.PATIENT)
stranger = Actor(user_id=uuid4(), role=Role.PATIENT)
doctor = Actor(user_id=DOCTOR_USER_ID, role=Role.DOCTOR, doctor_id=DOCTOR_ID)
other_doctor = Actor(user_id=uuid4(), role=Role.DOCTOR, doctor_id=uuid4())
profileless_doctor = Actor(user_id=uuid4(), role=Role.DOCTOR)
admin = Actor(user_id=uuid4(), role=Role.ADMIN)


@pytest.mark.parametrize(
    "action",
    [
        AppointmentAction.VIEW,
        AppointmentAction.UPDATE,
        AppointmentAction.CONFIRM,
        AppointmentAction.CANCEL,
        AppointmentAction.RESCHEDULE,
        AppointmentAction.RATE,
    ],
)
def test_patient_party_actions(action):
    assert is_allowed(patient, action, APPOINTMENT)
    assert not is_allowed(stranger, action, APPOINTMENT)


def test_patient_cannot_complete_or_record_clinical():
    assert not is_allowed(patient, AppointmentAction.COMPLETE, APPOINTMENT)
    assert not is_allowed(patient, AppointmentAction.RECORD_CLINICAL, APPOINTMENT)


def test_doctor_matched_by_profile_not_account():
    assert is_allowed(doctor, AppointmentAction.COMPLETE, APPOINTMENT)
    assert is_allowed(doctor, AppointmentAction.RECORD_CLINICAL, APPOINTMENT)
    assert not is_allowed(other_doctor, AppointmentAction.VIEW, APPOINTMENT)
    assert not is_allowed(profileless_doctor, AppointmentAction.VIEW, APPOINTMENT)


def test_doctor_cannot_rate_or_reschedule():
    assert not is_allowed(doctor, AppointmentAction.RATE, APPOINTMENT)
    assert not is_allowed(doctor, AppointmentAction.RESCHEDULE, APPOINTMENT)


def test_admin_sees_everything_but_cannot_rate():
    assert is_allowed(admin, AppointmentAction.VIEW, APPOINTMENT)
    assert is_allowed(admin, AppointmentAction.COMPLETE, APPOINTMENT)
    assert not is_allowed(admin, AppointmentAction.RATE, APPOINTMENT)
    assert not is_allowed(admin, AppointmentAction.RESCHEDULE, APPOINTMENT)


def test_ensure_allowed_raises_forbidden():
    ensure_allowed(patient, AppointmentAction.VIEW, APPOINTMENT)

    with pytest.raises(ForbiddenException) as exc_info:
        ensure_allowed(stranger, AppointmentAction.CANCEL, APPOINTMENT)

    assert exc_info.value.status_code == 403
    assert "cancel" in exc_info.value.message


def test_only_patients_create():
    assert can_create_appointment(patient)
    assert not can_create_appointment(doctor)
    assert not can_create_appointment(admin)


def _compile(conditions) -> list[str]:
    return [str(c.compile(dialect=sqlite.dialect())) for c in conditions]


def test_scope_patient_ignores_filters():
    conditions = scope_conditions(patient, doctor_id=uuid4(), patient_id=uuid4())

    assert len(conditions) == 1
    assert "patient_id" in _compile(conditions)[0]


def test_scope_doctor_restricted_to_own_profile():
    conditions = scope_conditions(doctor, patient_id=uuid4())

    assert len(conditions) == 1
    assert "doctor_id" in _compile(conditions)[0]


def test_scope_doctor_without_profile_sees_nothing():
    conditions = scope_conditions(profileless_doctor)

    assert len(conditions) == 1
    assert conditions[0].compare(false())


def test_scope_admin_uses_optional_filters():
    assert scope_conditions(admin) == []
    assert len(scope_conditions(admin, doctor_id=DOCTOR_ID, patient_id=PATIENT_ID)) == 2
