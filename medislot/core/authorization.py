"""Role-scoped access rules for appointments.

Every appointment operation asks the same question: may this actor perform
this action on this appointment? The answer comes from one rule table keyed
by role, where each rule pairs a relationship test (is the actor a party to
the appointment?) with the set of actions the role may take.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, false

from medislot.core.exceptions import ForbiddenException
from medislot.models.appointments import appointments


class Role(str, Enum):
    """Account roles supplied by the identity provider."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class AppointmentAction(str, Enum):
    """Operations guarded by the gate."""

    VIEW = "view"
    UPDATE = "update"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    COMPLETE = "complete"
    RATE = "rate"
    RECORD_CLINICAL = "record_clinical"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller.

    ``doctor_id`` is the caller's doctor profile, resolved from the account
    id; it stays None for non-doctors and for doctors without a profile.
    """

    user_id: UUID
    role: Role
    doctor_id: UUID | None = None

    @property
    def is_patient(self) -> bool:
        return self.role == Role.PATIENT

    @property
    def is_doctor(self) -> bool:
        return self.role == Role.DOCTOR

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def _field(appointment: Any, name: str) -> Any:
    if isinstance(appointment, Mapping):
        return appointment.get(name)
    return getattr(appointment, name, None)


def _is_patient_party(actor: Actor, appointment: Any) -> bool:
    return _field(appointment, "patient_id") == actor.user_id


def _is_doctor_party(actor: Actor, appointment: Any) -> bool:
    return actor.doctor_id is not None and _field(appointment, "doctor_id") == actor.doctor_id


def _always(actor: Actor, appointment: Any) -> bool:
    return True


@dataclass(frozen=True)
class AccessRule:
    """Relationship test plus the actions it unlocks."""

    relationship: Callable[[Actor, Any], bool]
    actions: frozenset[AppointmentAction]


_A = AppointmentAction

ACCESS_RULES: dict[Role, AccessRule] = {
    Role.PATIENT: AccessRule(
        relationship=_is_patient_party,
        actions=frozenset({_A.VIEW, _A.UPDATE, _A.CONFIRM, _A.CANCEL, _A.RESCHEDULE, _A.RATE}),
    ),
    Role.DOCTOR: AccessRule(
        relationship=_is_doctor_party,
        actions=frozenset(
            {_A.VIEW, _A.UPDATE, _A.CONFIRM, _A.CANCEL, _A.COMPLETE, _A.RECORD_CLINICAL}
        ),
    ),
    Role.ADMIN: AccessRule(
        relationship=_always,
        actions=frozenset(
            {_A.VIEW, _A.UPDATE, _A.CONFIRM, _A.CANCEL, _A.COMPLETE, _A.RECORD_CLINICAL}
        ),
    ),
}


def is_allowed(actor: Actor, action: AppointmentAction, appointment: Any) -> bool:
    """Answer whether ``actor`` may perform ``action`` on ``appointment``."""
    rule = ACCESS_RULES.get(actor.role)
    if rule is None:
        return False
    return action in rule.actions and rule.relationship(actor, appointment)


def ensure_allowed(actor: Actor, action: AppointmentAction, appointment: Any) -> None:
    """
    Raise when the actor may not perform the action.

    Raises:
        ForbiddenException: If the rule table denies the action
    """
    if not is_allowed(actor, action, appointment):
        raise ForbiddenException(f"Not authorized to {action.value} this appointment")


def can_create_appointment(actor: Actor) -> bool:
    """Only patients book appointments, always for themselves."""
    return actor.is_patient


def scope_conditions(
    actor: Actor,
    doctor_id: UUID | None = None,
    patient_id: UUID | None = None,
) -> list[ColumnElement[bool]]:
    """
    SQL conditions restricting an appointment listing to what the actor sees.

    Patients see their own appointments and doctors those booked with their
    profile; the doctor/patient filters only narrow an admin's view. A doctor
    without a profile sees nothing.
    """
    if actor.is_patient:
        return [appointments.c.patient_id == actor.user_id]

    if actor.is_doctor:
        if actor.doctor_id is None:
            return [false()]
        return [appointments.c.doctor_id == actor.doctor_id]

    if actor.is_admin:
        conditions = []
        if doctor_id:
            conditions.append(appointments.c.doctor_id == doctor_id)
        if patient_id:
            conditions.append(appointments.c.patient_id == patient_id)
        return conditions

    return [false()]
