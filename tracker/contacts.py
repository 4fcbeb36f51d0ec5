"""Contact profiles and scheduled calls for tracklog."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from tracker.models import ContactClass, ContactProfile, ScheduledCall, TrackerData, new_id

EDITABLE_FIELDS = {
    "name",
    "phone_number",
    "contact_class",
    "current_news",
    "preferences",
    "interests",
    "notes",
}


def add_contact(
    data: TrackerData,
    name: str,
    now: datetime,
    phone_number: str | None = None,
    contact_class: ContactClass = ContactClass.OTHER,
) -> ContactProfile:
    name = (name or "").strip()
    if not name:
        raise ValueError("Contact name must not be empty")
    contact = ContactProfile(
        id=new_id(),
        name=name,
        phone_number=phone_number,
        contact_class=ContactClass(contact_class),
        created_at=now,
    )
    data.contacts[contact.id] = contact
    return contact


def find_contact(data: TrackerData, contact_id: str) -> ContactProfile | None:
    return data.contacts.get(contact_id)


def update_contact(data: TrackerData, contact_id: str, updates: dict[str, Any]) -> tuple[ContactProfile | None, list[str]]:
    contact = data.contacts.get(contact_id)
    if contact is None:
        return None, [f"Contact not found: {contact_id}"]
    errors = [f"Field is not editable: {k}" for k in updates if k not in EDITABLE_FIELDS]
    if "name" in updates and not str(updates["name"] or "").strip():
        errors.append("Contact name must not be empty")
    if "contact_class" in updates:
        try:
            ContactClass(updates["contact_class"])
        except ValueError:
            errors.append(f"Invalid contact class: {updates['contact_class']}")
    if errors:
        return None, errors

    for key, value in updates.items():
        if key == "contact_class":
            value = ContactClass(value)
        elif key == "name":
            value = str(value).strip()
        setattr(contact, key, value)
    return contact, []


def delete_contact(data: TrackerData, contact_id: str) -> ContactProfile | None:
    """Remove a contact. The caller cancels its call reminders."""
    return data.contacts.pop(contact_id, None)


def pending_notification_ids(contact: ContactProfile) -> list[str]:
    return [c.notification_id for c in contact.scheduled_calls if c.notification_id]


# ── Calls ─────────────────────────────────────────────────────


def schedule_call(data: TrackerData, contact_id: str, when: datetime, note: str = "") -> ScheduledCall | None:
    contact = data.contacts.get(contact_id)
    if contact is None:
        return None
    call = ScheduledCall(
        id=new_id(),
        contact_id=contact_id,
        scheduled_time=when,
        note=note,
        notification_id=f"call_{contact_id}_{new_id()}",
    )
    contact.scheduled_calls.append(call)
    return call


def _find_call(data: TrackerData, contact_id: str, call_id: str) -> tuple[ContactProfile | None, ScheduledCall | None]:
    contact = data.contacts.get(contact_id)
    if contact is None:
        return None, None
    for call in contact.scheduled_calls:
        if call.id == call_id:
            return contact, call
    return contact, None


def complete_call(data: TrackerData, contact_id: str, call_id: str, now: datetime) -> ScheduledCall | None:
    contact, call = _find_call(data, contact_id, call_id)
    if contact is None or call is None:
        return None
    call.completed = True
    contact.last_contact = now
    return call


def delete_scheduled_call(data: TrackerData, contact_id: str, call_id: str) -> ScheduledCall | None:
    contact, call = _find_call(data, contact_id, call_id)
    if contact is None or call is None:
        return None
    contact.scheduled_calls.remove(call)
    return call


def upcoming_calls(data: TrackerData, now: datetime) -> list[tuple[ContactProfile, ScheduledCall]]:
    """Open calls still in the future, soonest first."""
    upcoming = [
        (contact, call)
        for contact in data.contacts.values()
        for call in contact.scheduled_calls
        if not call.completed and call.scheduled_time is not None and call.scheduled_time > now
    ]
    return sorted(upcoming, key=lambda pair: pair[1].scheduled_time)
