from datetime import date

import pytest

from coverdesk.services import notifications
from coverdesk.services.email import EmailDeliveryError


@pytest.fixture()
def outbox(monkeypatch):
    sent: list[dict] = []
    monkeypatch.setattr(notifications, "send_email", lambda **kwargs: sent.append(kwargs))
    return sent


def test_lesson_message_carries_slot_details(monday_scenario, outbox):
    delivered = notifications.notify_lesson_substitute(
        monday_scenario.substitute,
        on_date=date(2026, 10, 19),
        scheduled=monday_scenario.lessons[3],
        absent_teacher=monday_scenario.absent,
        notes="Chapter 4",
    )

    assert delivered is True
    message = outbox[0]
    assert message["subject"] == "Substitution: Mathematics, Monday, 19.10.2026, Period 3"
    body = message["text_content"]
    assert "Date: Monday, 19.10.2026" in body
    assert "Period: Period 3 (09:55 - 10:40)" in body
    assert "Class: 5a" in body
    assert body.endswith("Notes: Chapter 4")


def test_supervision_message_without_period_row(monday_scenario, outbox):
    delivered = notifications.notify_supervision_substitute(
        monday_scenario.substitute,
        on_date=date(2026, 10, 19),
        duty=monday_scenario.duty,
    )

    assert delivered is True
    assert outbox[0]["subject"] == "Break supervision: Hof1, Monday, 19.10.2026"
    assert "Period: Period 3" in outbox[0]["text_content"]
    assert "Covering for" not in outbox[0]["text_content"]


def test_missing_address_and_failed_delivery_return_false(monday_scenario, factory, db_session, monkeypatch):
    silent = factory.teacher("Sid", "Silent")
    db_session.commit()
    assert (
        notifications.notify_supervision_substitute(silent, on_date=date(2026, 10, 19), duty=monday_scenario.duty)
        is False
    )

    def refuse(**kwargs):
        raise EmailDeliveryError("SMTP recipient rejected")

    monkeypatch.setattr(notifications, "send_email", refuse)
    assert (
        notifications.notify_lesson_substitute(
            monday_scenario.substitute, on_date=date(2026, 10, 19), scheduled=monday_scenario.lessons[1]
        )
        is False
    )
