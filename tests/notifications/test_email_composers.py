from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest

from fittrack.notifications.composers import (
    TemplateComposer,
    TrainerInvitationEmailComposer,
    TrainingCompletedEmailComposer,
    WelcomeEmailComposer,
    build_composer_registry,
    sanitize_template_value,
)
from fittrack.notifications.errors import (
    ComposerNotRegisteredError,
    NotificationPayloadError,
    TemplateFormatError,
    TemplateNotFoundError,
)
from fittrack.notifications.payloads import (
    TRAINER_INVITATION_NOTIFICATION,
    NotificationPayload,
    InvitationEmailPayload,
    TrainingCompletedEmailPayload,
    TrainingExerciseSummary,
    WelcomeEmailPayload,
)


def _welcome(culture: str = "en-US", name: str = "Alex") -> WelcomeEmailPayload:
    return WelcomeEmailPayload(user_id=uuid4(), user_name=name, recipient_email="a@x.com", culture_name=culture)


def _write_template(root: Path, key: str, culture: str, content: str) -> None:
    directory = root / key
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"{culture}.email").write_text(content, encoding="utf-8")


def test_unknown_culture_falls_back_to_default() -> None:
    message = WelcomeEmailComposer().compose(_welcome(culture="de-DE"))

    assert message.subject == "Welcome to FitTrack, Alex!"
    assert message.is_html is False


def test_language_only_template_matches_regional_culture(tmp_path: Path) -> None:
    _write_template(tmp_path, "welcome", "pl", "Subject: Cześć {{UserName}}\n---\nTreść")
    _write_template(tmp_path, "welcome", "en-us", "Subject: Hi {{UserName}}\n---\nBody")

    message = WelcomeEmailComposer(template_root=tmp_path).compose(_welcome(culture="pl-PL"))

    assert message.subject == "Cześć Alex"
    assert message.body == "Treść"


def test_missing_template_raises(tmp_path: Path) -> None:
    with pytest.raises(TemplateNotFoundError):
        WelcomeEmailComposer(template_root=tmp_path).compose(_welcome())


def test_template_without_separator_is_rejected(tmp_path: Path) -> None:
    _write_template(tmp_path, "welcome", "en-us", "Subject: Hi\nBody without separator")

    with pytest.raises(TemplateFormatError):
        WelcomeEmailComposer(template_root=tmp_path).compose(_welcome())


def test_template_without_subject_header_is_rejected(tmp_path: Path) -> None:
    _write_template(tmp_path, "welcome", "en-us", "Title: Hi\n---\nBody")

    with pytest.raises(TemplateFormatError):
        WelcomeEmailComposer(template_root=tmp_path).compose(_welcome())


def test_subject_cannot_be_split_by_user_input() -> None:
    message = WelcomeEmailComposer().compose(_welcome(name="Alex\r\nBcc: victim@x.com"))

    assert "\n" not in message.subject
    assert "\r" not in message.subject
    assert sanitize_template_value("  a\nb  ") == "a b"
    assert sanitize_template_value(None) == ""


def test_invitation_links_and_expiry(settings) -> None:
    invitation_id = uuid4()
    payload = InvitationEmailPayload(
        invitation_id=invitation_id,
        invitation_code="FIT-1234",
        expires_at=datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc),
        trainer_name="Jordan",
        recipient_email="trainee@x.com",
    )

    message = TrainerInvitationEmailComposer().compose(payload)
    base_url = settings.invitation_base_url.rstrip("/")

    assert message.to == "trainee@x.com"
    assert "Jordan" in message.subject
    assert "FIT-1234" in message.body
    assert f"{base_url}/accept/{invitation_id}" in message.body
    assert f"{base_url}/reject/{invitation_id}" in message.body
    assert "2026-03-01 18:30 UTC" in message.body


def _training(culture: str, exercises) -> TrainingCompletedEmailPayload:
    return TrainingCompletedEmailPayload(
        user_id=uuid4(),
        training_id=uuid4(),
        plan_day_name="Push <day>",
        training_date=date(2026, 2, 14),
        exercises=exercises,
        recipient_email="a@x.com",
        culture_name=culture,
    )


def test_training_table_groups_and_orders_series() -> None:
    exercises = [
        TrainingExerciseSummary(exercise_name="Squat", series=2, reps=5, weight=Decimal("102.50")),
        TrainingExerciseSummary(exercise_name="Bench press", series=1, reps=8, weight=Decimal("80")),
        TrainingExerciseSummary(exercise_name="Squat", series=1, reps=5, weight=Decimal("100.00")),
        TrainingExerciseSummary(exercise_name="Plank", series=1, reps=1, weight=None, unit="s"),
    ]

    message = TrainingCompletedEmailComposer().compose(_training("en-US", exercises))
    body = message.body

    assert message.is_html is True
    assert message.subject == "Training completed: Push <day> (2026-02-14)"
    assert "Push &lt;day&gt;" in body
    assert body.index("Bench press") < body.index("Plank") < body.index("Squat")
    assert body.index(">Series #1<", body.index("Squat")) < body.index(">Series #2<", body.index("Squat"))
    assert ">102.5<" in body
    assert ">100<" in body
    assert ">-<" in body


def test_training_table_uses_polish_labels_and_decimal_comma() -> None:
    exercises = [TrainingExerciseSummary(exercise_name="Przysiad", series=1, reps=5, weight=Decimal("62.5"))]

    body = TrainingCompletedEmailComposer().compose(_training("pl-PL", exercises)).body

    assert "Powtórzenia" in body
    assert ">62,5<" in body


def test_training_without_exercises_renders_message() -> None:
    body = TrainingCompletedEmailComposer().compose(_training("en-US", [])).body

    assert "<table" not in body
    assert "No exercises were recorded for this training." in body


def test_registry_rejects_unknown_kind_and_bad_payload() -> None:
    registry = build_composer_registry()

    with pytest.raises(ComposerNotRegisteredError):
        registry.get("unknown.kind")
    with pytest.raises(NotificationPayloadError):
        registry.compose(TRAINER_INVITATION_NOTIFICATION, '{"invitation_code": "x"}')


def test_composer_without_compose_cannot_be_built() -> None:
    class IncompleteComposer(TemplateComposer):
        payload_model = WelcomeEmailPayload
        template_key = "welcome"

    with pytest.raises(TypeError):
        IncompleteComposer()


def test_payload_without_correlation_id_cannot_be_built() -> None:
    class UntrackedPayload(NotificationPayload):
        user_name: str = "Alex"

    with pytest.raises(TypeError):
        UntrackedPayload(recipient_email="a@x.com")
