"""Per-kind scheduling policy: template key and feature-flag lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from fittrack.core.config import AppSettings
from fittrack.notifications.errors import UnknownNotificationTypeError
from fittrack.notifications.payloads import (
    TRAINER_INVITATION_NOTIFICATION,
    TRAINING_COMPLETED_NOTIFICATION,
    WELCOME_NOTIFICATION,
)


@dataclass(frozen=True)
class NotificationPolicy:
    """What the scheduler needs to know about one notification kind."""

    kind: str
    template_key: str

    def is_enabled(self, settings: AppSettings) -> bool:
        if not settings.email_notifications_enabled:
            return False
        return self.kind not in settings.disabled_notification_types


DEFAULT_POLICIES = (
    NotificationPolicy(kind=WELCOME_NOTIFICATION, template_key="welcome"),
    NotificationPolicy(kind=TRAINER_INVITATION_NOTIFICATION, template_key="trainer_invitation"),
    NotificationPolicy(kind=TRAINING_COMPLETED_NOTIFICATION, template_key="training_completed"),
)


class NotificationPolicyRegistry:
    """Lookup of policies by notification kind."""

    def __init__(self, policies: Optional[Iterable[NotificationPolicy]] = None) -> None:
        self._policies: Dict[str, NotificationPolicy] = {}
        for policy in policies if policies is not None else DEFAULT_POLICIES:
            self._policies[policy.kind] = policy

    def get(self, kind: str) -> NotificationPolicy:
        try:
            return self._policies[kind]
        except KeyError as exc:
            known = ", ".join(self.kinds())
            raise UnknownNotificationTypeError(f"No policy registered for '{kind}'; known kinds: {known}") from exc

    def kinds(self) -> List[str]:
        return sorted(self._policies)
