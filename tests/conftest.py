import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("FT_ENVIRONMENT", "test")
os.environ.setdefault("FT_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FT_LOG_JSON", "false")
os.environ.setdefault("FT_TEMPORAL_HOST", "")
os.environ.setdefault("FT_EVENT_TOPIC_ARN", "")
os.environ.setdefault("FT_RETRY_JITTER_RATIO", "0")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from fittrack.core.config import get_settings

get_settings.cache_clear()

from fittrack.core.database import engine  # noqa: E402
from fittrack.core.metrics import get_metrics_registry  # noqa: E402
from fittrack.events_engine import handlers as handlers_module  # noqa: E402
from fittrack.main import create_app  # noqa: E402
from fittrack.models import Base  # noqa: E402
from fittrack.notifications import composers as composers_module  # noqa: E402
from fittrack.notifications import senders as senders_module  # noqa: E402
from fittrack.notifications.payloads import EmailMessage  # noqa: E402
from fittrack.workflow_orchestration import triggers as triggers_module  # noqa: E402


class RecordingTrigger:
    """Background trigger that remembers every id it was asked to enqueue."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.enqueued = []

    def enqueue(self, work_item_id):
        self.enqueued.append(work_item_id)
        return self.result


class StubSender:
    """Email sender with a scripted outcome."""

    def __init__(self, delivered: bool = True, error: Exception | None = None) -> None:
        self.delivered = delivered
        self.error = error
        self.messages: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> bool:
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return self.delivered


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    get_metrics_registry().reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_singletons():
    yield
    triggers_module.set_email_trigger(None)
    triggers_module.set_outbox_delivery_trigger(None)
    senders_module.set_email_sender(None)
    composers_module.set_composer_registry(None)
    handlers_module.set_handler_registry(None)


@pytest.fixture()
def email_trigger() -> RecordingTrigger:
    trigger = RecordingTrigger()
    triggers_module.set_email_trigger(trigger)
    return trigger


@pytest.fixture()
def stub_sender() -> StubSender:
    sender = StubSender()
    senders_module.set_email_sender(sender)
    return sender


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture()
def client(email_trigger, stub_sender) -> TestClient:  # noqa: ANN001
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
