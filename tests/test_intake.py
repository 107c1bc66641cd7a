"""Tests for braindump.intake: session lifecycle and confirmation."""

from datetime import datetime, timezone

import pytest
from pymongo.errors import WriteError

from braindump.errors import NotFoundError, SessionStateError, UploadError, UploadTooLargeError
from braindump.intake import IntakePipeline, parse_reminder, read_upload
from braindump.models import ConfirmedIdea, IntakeStatus
from conftest import OTHER_USER, USER, FakeExtractor


class TestStart:
    def test_parsed_session(self, pipeline, store, extractor):
        session = pipeline.start(USER, "buy oil, also a riff in D minor")

        assert session.status == IntakeStatus.PARSED
        assert [i.title for i in session.parsedIdeas] == ["Buy oil", "Song idea"]
        assert session.claudeModel == "claude-test"
        assert session.processingTimeMs == 42
        assert store.get_session(USER, session.id) == session

    def test_extractor_sees_bootstrapped_bucket_names(self, pipeline, extractor):
        pipeline.start(USER, "text")
        content, names = extractor.calls[0]
        assert content == "text"
        assert names == ["Work", "Music", "Social", "Motorcycles", "Health", "Ideas", "Unsorted"]

    def test_filename_is_recorded(self, pipeline):
        assert pipeline.start(USER, "text", "dump.md").filename == "dump.md"

    def test_failed_extraction(self, store):
        pipeline = IntakePipeline(store, FakeExtractor(error="Failed to parse brain dump: overloaded"))

        session = pipeline.start(USER, "text")

        assert session.status == IntakeStatus.FAILED
        assert session.errorMessage == "Failed to parse brain dump: overloaded"
        assert session.parsedIdeas == []
        assert store.get_session(USER, session.id).status == IntakeStatus.FAILED


class TestConfirm:
    def test_creates_card_in_matching_bucket(self, pipeline, store):
        session = pipeline.start(USER, "buy oil")
        idea = ConfirmedIdea(title="Buy oil", suggestedBucket="Motorcycles", isActionable=True)

        result = pipeline.confirm(USER, session.id, [idea])

        motorcycles = next(b for b in store.list_buckets(USER) if b.name == "Motorcycles")
        [card] = store.list_cards(USER, motorcycles.id)
        assert card.title == "Buy oil"
        assert card.isActionable is True
        assert card.sourceIntakeId == session.id
        assert result.cards == [card]
        assert result.message == "Created 1 cards"
        assert store.get_session(USER, session.id).status == IntakeStatus.PROCESSED

    def test_bucket_match_is_case_insensitive_and_edits_win(self, pipeline, store):
        session = pipeline.start(USER, "text")
        idea = ConfirmedIdea(title="Gig", bucketName="mUsIc", suggestedBucket="Work")

        [card] = pipeline.confirm(USER, session.id, [idea]).cards

        assert store.get_bucket(USER, card.bucketId).name == "Music"

    def test_unknown_bucket_goes_to_unsorted(self, pipeline, store):
        session = pipeline.start(USER, "text")
        [card] = pipeline.confirm(USER, session.id, [ConfirmedIdea(title="?", suggestedBucket="Gardening")]).cards
        assert store.get_bucket(USER, card.bucketId).name == "Unsorted"

    def test_missing_unsorted_is_created_once(self, pipeline, store):
        session = pipeline.start(USER, "text")
        unsorted = next(b for b in store.list_buckets(USER) if b.name == "Unsorted")
        store.buckets.delete_one({"userId": USER, "name": "Unsorted"})

        ideas = [ConfirmedIdea(title=f"idea {i}", suggestedBucket="Nowhere") for i in range(3)]
        cards = pipeline.confirm(USER, session.id, ideas).cards

        created = [b for b in store.list_buckets(USER) if b.name == "Unsorted"]
        assert len(created) == 1
        assert created[0].id != unsorted.id
        assert created[0].order == 99
        assert {c.bucketId for c in cards} == {created[0].id}
        assert [c.order for c in cards] == [0, 1, 2]

    def test_labels_and_reminder(self, pipeline):
        session = pipeline.start(USER, "text")
        idea = ConfirmedIdea(title="Dentist", suggestedLabels=["health", "call"],
                             suggestedReminder="2025-12-26T09:00:00Z")

        [card] = pipeline.confirm(USER, session.id, [idea]).cards

        assert [(l.name, l.color) for l in card.labels] == [("health", "#6b7280"), ("call", "#6b7280")]
        assert card.reminder.remindAt == datetime(2025, 12, 26, 9, 0, tzinfo=timezone.utc)
        assert card.reminder.pushedToApple is False

    def test_cleared_labels_stay_cleared(self, pipeline):
        session = pipeline.start(USER, "text")
        idea = ConfirmedIdea(title="t", labels=[], suggestedLabels=["urgent"])

        [card] = pipeline.confirm(USER, session.id, [idea]).cards

        assert card.labels == []

    def test_edited_labels_replace_suggestions(self, pipeline):
        session = pipeline.start(USER, "text")
        idea = ConfirmedIdea(title="t", labels=["mine"], suggestedLabels=["urgent"])
        [card] = pipeline.confirm(USER, session.id, [idea]).cards
        assert [l.name for l in card.labels] == ["mine"]

    def test_unparseable_reminder_is_dropped_for_that_idea_only(self, pipeline, store):
        session = pipeline.start(USER, "text")
        ideas = [
            ConfirmedIdea(title="ok", suggestedBucket="Work", reminder="2025-12-26T09:00:00+00:00"),
            ConfirmedIdea(title="dentist", reminder="next Friday morning"),
        ]

        result = pipeline.confirm(USER, session.id, ideas)

        assert [c.title for c in result.cards] == ["ok", "dentist"]
        assert result.errors == []
        assert result.cards[0].reminder.remindAt == datetime(2025, 12, 26, 9, 0, tzinfo=timezone.utc)
        assert result.cards[1].reminder is None
        assert store.get_session(USER, session.id).status == IntakeStatus.PROCESSED

    def test_second_confirm_is_rejected(self, pipeline, store):
        session = pipeline.start(USER, "text")
        ideas = [ConfirmedIdea(title="once")]
        pipeline.confirm(USER, session.id, ideas)

        with pytest.raises(SessionStateError):
            pipeline.confirm(USER, session.id, ideas)
        assert len(store.list_cards(USER)) == 1

    def test_failed_session_cannot_be_confirmed(self, store):
        pipeline = IntakePipeline(store, FakeExtractor(error="boom"))
        session = pipeline.start(USER, "text")
        with pytest.raises(SessionStateError):
            pipeline.confirm(USER, session.id, [ConfirmedIdea(title="x")])

    def test_unknown_or_foreign_session(self, pipeline):
        session = pipeline.start(USER, "text")
        with pytest.raises(NotFoundError):
            pipeline.confirm(OTHER_USER, session.id, [])
        with pytest.raises(NotFoundError):
            pipeline.confirm(USER, "not-an-id", [])

    def test_card_failure_is_reported_and_batch_continues(self, pipeline, store, mocker):
        session = pipeline.start(USER, "text")
        real_create = store.create_card
        calls = {"n": 0}

        def flaky(user_id, bucket_id, data=None):
            calls["n"] += 1
            if calls["n"] == 2:
                raise WriteError("disk full")
            return real_create(user_id, bucket_id, data)

        mocker.patch.object(store, "create_card", side_effect=flaky)
        ideas = [ConfirmedIdea(title=t) for t in ("a", "b", "c")]

        result = pipeline.confirm(USER, session.id, ideas)

        assert [c.title for c in result.cards] == ["a", "c"]
        assert [(e.index, e.title) for e in result.errors] == [(1, "b")]
        assert result.message == "Created 2 cards"
        assert store.get_session(USER, session.id).status == IntakeStatus.PROCESSED


class TestParseReminder:
    def test_iso_with_zone(self):
        assert parse_reminder("2025-12-26T09:00:00Z") == datetime(2025, 12, 26, 9, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "next Friday morning", "2025-13-40T99:00:00"])
    def test_absent_or_garbage(self, value):
        assert parse_reminder(value) is None


class TestReadUpload:
    def test_markdown_by_extension(self):
        assert read_upload("notes.MD", "application/octet-stream", "# hi".encode(), 100) == "# hi"

    def test_plain_text_by_content_type(self):
        assert read_upload("dump", "text/plain; charset=utf-8", b"hello", 100) == "hello"

    def test_rejects_other_types(self):
        with pytest.raises(UploadError):
            read_upload("photo.png", "image/png", b"\x89PNG", 100)

    def test_size_cap(self):
        with pytest.raises(UploadTooLargeError):
            read_upload("big.txt", "text/plain", b"x" * 101, 100)

    def test_invalid_utf8_is_replaced(self):
        assert read_upload("a.txt", "text/plain", b"caf\xe9", 100) == "caf\ufffd"
