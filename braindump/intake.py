# braindump/intake.py
# Sessions move pending -> parsed -> processed, or pending -> failed.
# Every move is a compare-and-set on the stored status.

from datetime import datetime
from pathlib import PurePath

import structlog
from pydantic import TypeAdapter, ValidationError
from pymongo.errors import PyMongoError

from braindump.errors import ExtractionError, NotFoundError, SessionStateError, UploadError, UploadTooLargeError
from braindump.extraction import IdeaExtractor
from braindump.models import (
    NEUTRAL_GRAY,
    UNSORTED,
    ConfirmedIdea,
    ConfirmError,
    ConfirmResult,
    IntakeSession,
    IntakeStatus,
)
from braindump.store import BrainDumpStore

logger = structlog.get_logger(__name__)

TRANSITIONS = {
    IntakeStatus.PENDING: {IntakeStatus.PARSED, IntakeStatus.FAILED},
    IntakeStatus.PARSED: {IntakeStatus.PROCESSED},
    IntakeStatus.PROCESSED: set(),
    IntakeStatus.FAILED: set(),
}

ALLOWED_CONTENT_TYPES = {"text/plain", "text/markdown", "text/x-markdown"}
ALLOWED_EXTENSIONS = {".txt", ".md", ".markdown"}

_DATETIME = TypeAdapter(datetime)


def parse_reminder(value: str | None) -> datetime | None:
    """ISO 8601 reminder time, or None when absent or unparseable."""
    if not value:
        return None
    try:
        return _DATETIME.validate_python(value)
    except ValidationError:
        return None


def read_upload(filename: str | None, content_type: str | None, data: bytes, max_bytes: int) -> str:
    """Validate an uploaded brain dump file and decode it as UTF-8 text."""
    ext = PurePath(filename or "").suffix.lower()
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in ALLOWED_CONTENT_TYPES and ext not in ALLOWED_EXTENSIONS:
        raise UploadError("Only .txt and .md files are allowed")
    if len(data) > max_bytes:
        raise UploadTooLargeError(f"File exceeds the {max_bytes // (1024 * 1024)}MB limit")
    return data.decode("utf-8", errors="replace")


class IntakePipeline:
    def __init__(self, store: BrainDumpStore, extractor: IdeaExtractor):
        self.store = store
        self.extractor = extractor

    def _transition(self, user_id: str, session: IntakeSession, to_status: IntakeStatus,
                    data: dict | None = None) -> IntakeSession:
        if to_status not in TRANSITIONS[session.status]:
            raise SessionStateError(f"Intake session is {session.status.value}, cannot move to {to_status.value}")
        updated = self.store.transition_session(user_id, session.id, session.status, to_status, data)
        if updated is None:
            raise SessionStateError(f"Intake session {session.id} changed state concurrently")
        logger.info("intake_transition", session_id=session.id, from_status=session.status.value,
                    to_status=to_status.value)
        return updated

    def start(self, user_id: str, content: str, filename: str | None = None) -> IntakeSession:
        """Create a pending session and run extraction on it.

        The returned session is either ``parsed`` or ``failed``; a failure is
        recorded on the session rather than raised.
        """
        session = self.store.create_session(user_id, content, filename)
        logger.info("intake_started", user_id=user_id, session_id=session.id,
                    chars=len(content), filename=filename)
        return self.extract(user_id, session)

    def extract(self, user_id: str, session: IntakeSession) -> IntakeSession:
        buckets = self.store.ensure_default_buckets(user_id)
        try:
            result = self.extractor.extract(session.rawContent, [b.name for b in buckets])
        except ExtractionError as e:
            logger.warning("intake_failed", session_id=session.id, error=str(e))
            return self._transition(user_id, session, IntakeStatus.FAILED, {"errorMessage": str(e)})

        return self._transition(user_id, session, IntakeStatus.PARSED, {
            "parsedIdeas": [idea.model_dump() for idea in result.ideas],
            "claudeModel": result.model,
            "processingTimeMs": result.processing_time_ms,
        })

    def confirm(self, user_id: str, session_id: str, ideas: list[ConfirmedIdea]) -> ConfirmResult:
        """Turn reviewed ideas into cards and mark the session processed.

        Cards are written one at a time. A card that fails to persist is
        reported in ``errors`` and the rest of the batch still runs; cards
        already written are kept.
        """
        session = self.store.get_session(user_id, session_id)
        if session is None:
            raise NotFoundError("Intake session not found")
        if IntakeStatus.PROCESSED not in TRANSITIONS[session.status]:
            raise SessionStateError(f"Intake session is {session.status.value}; only parsed sessions can be confirmed")

        buckets = self.store.ensure_default_buckets(user_id)
        bucket_ids = {b.name.lower(): b.id for b in buckets}

        cards, errors = [], []
        for index, idea in enumerate(ideas):
            name = (idea.bucketName or idea.suggestedBucket or UNSORTED).lower()
            bucket_id = bucket_ids.get(name) or bucket_ids.get(UNSORTED.lower())
            if bucket_id is None:
                bucket_id = self.store.ensure_unsorted_bucket(user_id).id
                bucket_ids[UNSORTED.lower()] = bucket_id

            # an explicit empty list means the user cleared every label
            labels = idea.labels if idea.labels is not None else (idea.suggestedLabels or [])
            raw_reminder = idea.reminder or idea.suggestedReminder
            remind_at = parse_reminder(raw_reminder)
            if raw_reminder and remind_at is None:
                logger.warning("intake_reminder_dropped", session_id=session.id, index=index,
                               reminder=raw_reminder[:100])
            data = {
                "title": idea.title,
                "content": idea.content,
                "labels": [{"name": label, "color": NEUTRAL_GRAY} for label in labels],
                "isActionable": idea.isActionable,
                "reminder": {"remindAt": remind_at, "pushedToApple": False} if remind_at else None,
                "sourceIntakeId": session.id,
            }
            try:
                cards.append(self.store.create_card(user_id, bucket_id, data))
            except (PyMongoError, NotFoundError) as e:
                logger.error("intake_card_failed", session_id=session.id, index=index, error=str(e))
                errors.append(ConfirmError(index=index, title=idea.title or "Untitled", error=str(e)))

        try:
            self._transition(user_id, session, IntakeStatus.PROCESSED)
        except SessionStateError:
            # another confirm finished first; report the cards this call wrote
            logger.warning("intake_confirm_raced", session_id=session.id, created=len(cards))
        logger.info("intake_confirmed", user_id=user_id, session_id=session.id,
                    created=len(cards), failed=len(errors))
        return ConfirmResult(message=f"Created {len(cards)} cards", cards=cards, errors=errors)
