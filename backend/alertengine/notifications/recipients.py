"""Recipient classification by address format."""

from __future__ import annotations

from typing import Iterable

EMAIL = "email"
WEBHOOK = "webhook"
SMS = "sms"
INAPP = "inapp"


def is_email(recipient: str) -> bool:
    return "@" in recipient


def is_webhook(recipient: str) -> bool:
    return recipient.lower().startswith("http")


def is_phone_number(recipient: str) -> bool:
    return recipient.startswith("+") or recipient.isdigit()


def partition_recipients(recipients: Iterable[str]) -> dict[str, list[str]]:
    """
    Split recipients into per-channel lists.

    A recipient can land in more than one list if it matches more than
    one format; in-app delivery has no recipient list.
    """
    partitioned: dict[str, list[str]] = {EMAIL: [], WEBHOOK: [], SMS: []}
    for recipient in recipients:
        recipient = recipient.strip()
        if not recipient:
            continue
        if is_email(recipient):
            partitioned[EMAIL].append(recipient)
        if is_webhook(recipient):
            partitioned[WEBHOOK].append(recipient)
        if is_phone_number(recipient):
            partitioned[SMS].append(recipient)
    return partitioned
