import mongomock
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from braindump.errors import ExtractionError
from braindump.extraction import ExtractionResult
from braindump.intake import IntakePipeline
from braindump.main import create_app
from braindump.models import ParsedIdea, ReminderResult, ReminderStatus
from braindump.store import BrainDumpStore

USER = "auth0|user-1"
OTHER_USER = "auth0|user-2"


class FakeExtractor:
    """Returns canned ideas, or raises when ``error`` is set."""

    model = "claude-test"

    def __init__(self, ideas=None, error=None):
        self.ideas = ideas or []
        self.error = error
        self.calls = []

    def extract(self, content, bucket_names, today=None):
        self.calls.append((content, list(bucket_names)))
        if self.error:
            raise ExtractionError(self.error)
        return ExtractionResult(ideas=list(self.ideas), model=self.model, processing_time_ms=42)


class FakeReminders:
    """Succeeds with sequential ids unless the title is listed in ``fail_titles``."""

    def __init__(self, fail_titles=()):
        self.fail_titles = set(fail_titles)
        self.requests = []

    def check_status(self):
        return ReminderStatus(available=True, lists=["Reminders", "Brain Dump"])

    def create_reminder(self, request):
        self.requests.append(request)
        if request.title in self.fail_titles:
            return ReminderResult(success=False, error="Reminders app not accessible")
        return ReminderResult(success=True, reminderId=f"x-apple-reminder://{len(self.requests)}")


class StubVerifier:
    """Treats the bearer token itself as the subject claim."""

    def verify(self, token):
        if token == "bad":
            raise HTTPException(status_code=401, detail="Invalid token: bad signature")
        return {"sub": token}


@pytest.fixture
def store():
    return BrainDumpStore(mongomock.MongoClient()["braindump-test"])


@pytest.fixture
def extractor():
    return FakeExtractor(ideas=[
        ParsedIdea(title="Buy oil", content="need to buy oil for the bike", suggestedBucket="Motorcycles",
                   isActionable=True, suggestedLabels=["maintenance"]),
        ParsedIdea(title="Song idea", content="riff in D minor", suggestedBucket="Music"),
    ])


@pytest.fixture
def reminders():
    return FakeReminders()


@pytest.fixture
def pipeline(store, extractor):
    return IntakePipeline(store, extractor)


@pytest.fixture
def app(store, extractor, reminders):
    return create_app(store=store, extractor=extractor, reminders=reminders, verifier=StubVerifier())


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def auth():
    return {"Authorization": f"Bearer {USER}"}
