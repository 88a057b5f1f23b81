"""File-backed email template composers, one per notification kind."""

from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod
from datetime import timezone
from decimal import Decimal
from pathlib import Path
from threading import RLock
from typing import ClassVar, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Type

from pydantic import ValidationError

from fittrack.core.config import AppSettings, get_settings
from fittrack.notifications.errors import (
    ComposerNotRegisteredError,
    NotificationPayloadError,
    TemplateFormatError,
    TemplateNotFoundError,
)
from fittrack.notifications.payloads import (
    EmailMessage,
    InvitationEmailPayload,
    NotificationPayload,
    TrainingCompletedEmailPayload,
    TrainingExerciseSummary,
    WelcomeEmailPayload,
)

LOGGER = logging.getLogger("fittrack.notifications.composers")

DEFAULT_TEMPLATE_ROOT = Path(__file__).resolve().parent / "templates"
TEMPLATE_SUFFIX = ".email"
SUBJECT_PREFIX = "subject:"
SEPARATOR = "\n---\n"

Template = Tuple[str, str]


class EmailComposer(Protocol):
    """Turns a stored payload into a message. Must be deterministic."""

    notification_type: str

    def deserialize(self, payload_json: str) -> NotificationPayload:
        ...

    def compose(self, payload: NotificationPayload) -> EmailMessage:
        ...


def sanitize_template_value(value: Optional[str]) -> str:
    """Flatten a user-supplied value so it cannot break out of a header line."""

    if not value:
        return ""
    return value.replace("\r", " ").replace("\n", " ").strip()


def render(template: str, replacements: Mapping[str, str]) -> str:
    result = template
    for key, value in replacements.items():
        result = result.replace("{{" + key + "}}", value)
    return result


class TemplateComposer(ABC):
    """Loads ``<root>/<template_key>/<culture>.email`` files.

    A template file starts with a ``Subject:`` header, then a line containing
    only ``---``, then the body. Culture lookup falls back from ``pl-PL`` to
    ``pl`` and then to the configured default culture and its language.
    """

    payload_model: ClassVar[Type[NotificationPayload]]
    template_key: ClassVar[str]

    def __init__(
        self,
        *,
        settings: Optional[AppSettings] = None,
        template_root: Optional[Path] = None,
    ) -> None:
        self._settings = settings or get_settings()
        if template_root is None and self._settings.email_template_root:
            template_root = Path(self._settings.email_template_root)
        self._template_root = template_root or DEFAULT_TEMPLATE_ROOT
        self._cache: Dict[Path, Template] = {}
        self._lock = RLock()

    @property
    def notification_type(self) -> str:
        return self.payload_model.notification_type

    def deserialize(self, payload_json: str) -> NotificationPayload:
        try:
            return self.payload_model.model_validate_json(payload_json)
        except ValidationError as exc:
            raise NotificationPayloadError(
                f"Failed to deserialize {self.notification_type} payload: {exc.error_count()} validation error(s)"
            ) from exc

    @abstractmethod
    def compose(self, payload: NotificationPayload) -> EmailMessage:
        """Render ``payload`` into a ready-to-send message."""

    def compose_json(self, payload_json: str) -> EmailMessage:
        return self.compose(self.deserialize(payload_json))

    def load_template(self, culture_name: str) -> Template:
        path = self._resolve_template_path(culture_name)
        with self._lock:
            cached = self._cache.get(path)
            if cached is None:
                cached = self._read_template(path)
                self._cache[path] = cached
            return cached

    def _candidate_cultures(self, culture_name: str) -> List[str]:
        candidates: List[str] = []
        for name in (culture_name, self._settings.email_default_culture):
            normalized = (name or "").strip().lower()
            if not normalized:
                continue
            candidates.append(normalized)
            language = normalized.split("-", 1)[0]
            if language != normalized:
                candidates.append(language)
        # Preserve order, drop duplicates.
        return list(dict.fromkeys(candidates))

    def _resolve_template_path(self, culture_name: str) -> Path:
        directory = self._template_root / self.template_key
        candidates = self._candidate_cultures(culture_name)
        for candidate in candidates:
            path = directory / f"{candidate}{TEMPLATE_SUFFIX}"
            if path.is_file():
                return path
        raise TemplateNotFoundError(
            f"Email template '{self.template_key}' not found for cultures {candidates} under {directory}"
        )

    @staticmethod
    def _read_template(path: Path) -> Template:
        content = path.read_text(encoding="utf-8").replace("\r\n", "\n")
        separator_index = content.find(SEPARATOR)
        if separator_index <= 0:
            raise TemplateFormatError(f"Invalid email template format in {path}")

        header = content[:separator_index].strip()
        body = content[separator_index + len(SEPARATOR):].strip()
        if not header.lower().startswith(SUBJECT_PREFIX):
            raise TemplateFormatError(f"Template subject header is missing in {path}")

        subject = header[len(SUBJECT_PREFIX):].strip()
        LOGGER.debug("email_template_loaded", extra={"template_path": str(path)})
        return subject, body

    def _render_message(
        self,
        payload: NotificationPayload,
        replacements: Mapping[str, str],
        *,
        subject_replacements: Optional[Mapping[str, str]] = None,
        is_html: bool = False,
    ) -> EmailMessage:
        subject, body = self.load_template(payload.culture_name)
        if subject_replacements is None:
            subject_replacements = replacements
        return EmailMessage(
            to=payload.recipient_email,
            subject=sanitize_template_value(render(subject, subject_replacements)),
            body=render(body, replacements),
            is_html=is_html,
        )


class WelcomeEmailComposer(TemplateComposer):
    payload_model = WelcomeEmailPayload
    template_key = "welcome"

    def compose(self, payload: WelcomeEmailPayload) -> EmailMessage:  # type: ignore[override]
        return self._render_message(payload, {"UserName": sanitize_template_value(payload.user_name)})


class TrainerInvitationEmailComposer(TemplateComposer):
    payload_model = InvitationEmailPayload
    template_key = "trainer_invitation"

    def compose(self, payload: InvitationEmailPayload) -> EmailMessage:  # type: ignore[override]
        base_url = self._settings.invitation_base_url.rstrip("/")
        expires_at = payload.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        replacements = {
            "TrainerName": sanitize_template_value(payload.trainer_name),
            "InvitationCode": sanitize_template_value(payload.invitation_code),
            "AcceptUrl": f"{base_url}/accept/{payload.invitation_id}",
            "RejectUrl": f"{base_url}/reject/{payload.invitation_id}",
            "ExpiresAt": expires_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        }
        return self._render_message(payload, replacements)


_TABLE_LABELS: Dict[str, Dict[str, str]] = {
    "en": {
        "series": "Series",
        "reps": "Reps",
        "weight": "Weight",
        "unit": "Unit",
        "empty": "No exercises were recorded for this training.",
    },
    "pl": {
        "series": "Seria",
        "reps": "Powtórzenia",
        "weight": "Ciężar",
        "unit": "Jednostka",
        "empty": "Dla tego treningu nie zapisano żadnych ćwiczeń.",
    },
}

_HEADER_STYLE = (
    "text-align:left; padding:8px 10px; border-bottom:2px solid #e5e7eb; font-size:12px; "
    "text-transform:uppercase; letter-spacing:0.04em; color:#6b7280;"
)
_GROUP_STYLE = "padding:14px 10px 6px; font-weight:600; color:#111827; border-bottom:1px solid #e5e7eb;"
_CELL_STYLE = "padding:8px 10px; border-bottom:1px solid #f3f4f6; color:#111827;"


class TrainingCompletedEmailComposer(TemplateComposer):
    payload_model = TrainingCompletedEmailPayload
    template_key = "training_completed"

    def compose(self, payload: TrainingCompletedEmailPayload) -> EmailMessage:  # type: ignore[override]
        language = payload.culture_name.strip().lower().split("-", 1)[0]
        labels = _TABLE_LABELS.get(language, _TABLE_LABELS["en"])
        plan_day_name = sanitize_template_value(payload.plan_day_name)
        training_date = payload.training_date.strftime("%Y-%m-%d")
        replacements = {
            "PlanDayName": html.escape(plan_day_name),
            "TrainingDate": training_date,
            "TrainingTable": self._build_table(payload.exercises, labels, language),
        }
        # The subject is plain text; only the body is HTML.
        subject_replacements = {"PlanDayName": plan_day_name, "TrainingDate": training_date}
        return self._render_message(
            payload,
            replacements,
            subject_replacements=subject_replacements,
            is_html=True,
        )

    @staticmethod
    def _format_weight(weight: Optional[Decimal], language: str) -> str:
        if weight is None:
            return "-"
        text = f"{weight:.2f}".rstrip("0").rstrip(".")
        if language == "pl":
            text = text.replace(".", ",")
        return text

    def _build_table(
        self,
        exercises: List[TrainingExerciseSummary],
        labels: Mapping[str, str],
        language: str,
    ) -> str:
        if not exercises:
            return f'<p style="margin:0; font-size:14px; color:#4b5563;">{labels["empty"]}</p>'

        lines = [
            '<table style="width:100%; border-collapse:collapse; margin:12px 0; font-family:Arial, sans-serif;">',
            "  <thead>",
            "    <tr>",
        ]
        for key in ("series", "reps", "weight", "unit"):
            lines.append(f'      <th style="{_HEADER_STYLE}">{labels[key]}</th>')
        lines.extend(["    </tr>", "  </thead>", "  <tbody>"])

        groups: Dict[str, List[TrainingExerciseSummary]] = {}
        for exercise in exercises:
            groups.setdefault(exercise.exercise_name, []).append(exercise)

        for name in sorted(groups):
            lines.append("    <tr>")
            lines.append(
                f'      <td colspan="4" style="{_GROUP_STYLE}">{html.escape(sanitize_template_value(name))}</td>'
            )
            lines.append("    </tr>")
            for entry in sorted(groups[name], key=lambda item: item.series):
                lines.append("    <tr>")
                lines.append(f'      <td style="{_CELL_STYLE}">{labels["series"]} #{entry.series}</td>')
                lines.append(f'      <td style="{_CELL_STYLE}">{entry.reps}</td>')
                lines.append(f'      <td style="{_CELL_STYLE}">{self._format_weight(entry.weight, language)}</td>')
                lines.append(f'      <td style="{_CELL_STYLE}">{html.escape(sanitize_template_value(entry.unit))}</td>')
                lines.append("    </tr>")

        lines.extend(["  </tbody>", "</table>"])
        return "\n".join(lines)


class EmailComposerRegistry:
    """Composer lookup keyed by notification type."""

    def __init__(self, composers: Iterable[EmailComposer]) -> None:
        self._composers: Dict[str, EmailComposer] = {}
        for composer in composers:
            self._composers[composer.notification_type] = composer

    def get(self, notification_type: str) -> EmailComposer:
        composer = self._composers.get(notification_type)
        if composer is None:
            raise ComposerNotRegisteredError(f"No email composer registered for '{notification_type}'")
        return composer

    def compose(self, notification_type: str, payload_json: str) -> EmailMessage:
        composer = self.get(notification_type)
        return composer.compose(composer.deserialize(payload_json))


def build_composer_registry(settings: Optional[AppSettings] = None) -> EmailComposerRegistry:
    settings = settings or get_settings()
    return EmailComposerRegistry(
        [
            WelcomeEmailComposer(settings=settings),
            TrainerInvitationEmailComposer(settings=settings),
            TrainingCompletedEmailComposer(settings=settings),
        ]
    )


_registry: Optional[EmailComposerRegistry] = None


def get_composer_registry() -> EmailComposerRegistry:
    """Return the cached composer registry."""

    global _registry
    if _registry is None:
        _registry = build_composer_registry()
    return _registry


def set_composer_registry(registry: Optional[EmailComposerRegistry]) -> None:
    """Override the cached composer registry (primarily for tests)."""

    global _registry
    _registry = registry
