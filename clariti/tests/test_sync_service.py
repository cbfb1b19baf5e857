"""
Sync orchestrator tests - fake provider clients, mocked model gateway,
real in-memory store
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import func, select

from clariti.exceptions import AuthExpiredError, IntegrationNotConnectedError, ProviderError
from clariti.models.integration import Integration, IntegrationProvider
from clariti.models.task import Task, TaskCategory, TaskSource
from clariti.providers.records import (
    CalendarRawEvent,
    CanvasRawItem,
    GmailRawMessage,
    SlackRawMessage,
    SlackRawReminder,
    SlackRawStar,
)
from clariti.schemas import SyncState
from clariti.services.content_classifier import ContentClassifier
from clariti.services.sync_service import SyncService
from clariti.utils.helpers import utcnow

from conftest import FakeProviderClient, gmail_message


def _classifier(answer=None, error=None) -> ContentClassifier:
    gateway = MagicMock()
    gateway.generate_structured_response = AsyncMock(return_value=answer, side_effect=error)
    return ContentClassifier(gateway=gateway)


def _factory(client):
    return lambda source, integration: client


def _assignment(item_id, name, due_at, course="Biology 101"):
    return CanvasRawItem(
        item_type="assignment",
        course_id=7,
        course_name=course,
        data={"id": item_id, "name": name, "due_at": due_at, "points_possible": 10},
    )


def _quiz(item_id, title, due_at):
    return CanvasRawItem(
        item_type="quiz",
        course_id=7,
        course_name="Biology 101",
        data={"id": item_id, "title": title, "due_at": due_at},
    )


async def _tasks(db, source=None):
    query = select(Task).order_by(Task.source_id)
    if source is not None:
        query = query.where(Task.source == source)
    return (await db.execute(query)).scalars().all()


# ===================== CANVAS =====================


class TestCanvasSync:

    @pytest.mark.asyncio
    async def test_null_due_assignment_filtered_quiz_kept(self, db_session, seed_data):
        client = FakeProviderClient([
            _assignment(1, "Reading response", None),
            _quiz(2, "Quiz 1", "2025-03-01T23:59:00Z"),
        ])
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(client), rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.CANVAS)

        assert summary.success is True
        assert summary.state == SyncState.DONE
        assert summary.items_processed == 2
        assert summary.created == 1
        assert summary.filtered == 1
        assert summary.item_count == 1

        [task] = await _tasks(db_session)
        assert task.source_id == "quiz_2"
        assert task.category == TaskCategory.QUIZ
        assert task.due_date == datetime(2025, 3, 1, 23, 59)

    @pytest.mark.asyncio
    async def test_second_sync_is_idempotent(self, db_session, seed_data):
        items = [_assignment(1, "Lab 1", "2026-10-25T23:59:00Z"), _assignment(2, "Lab 2", "2026-11-01T23:59:00Z")]
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient(items)), rebuild_sources=[])

        first = await service.sync_source(seed_data["user"], TaskSource.CANVAS)
        second = await service.sync_source(seed_data["user"], TaskSource.CANVAS)

        assert (first.created, first.updated) == (2, 0)
        assert (second.created, second.updated) == (0, 2)
        assert len(await _tasks(db_session)) == 2

    @pytest.mark.asyncio
    async def test_rebuild_with_no_items_clears_source(self, db_session, seed_data):
        user = seed_data["user"]
        db_session.add_all([
            Task(user_id=user.id, title="Old A", source=TaskSource.CANVAS, source_id="assignment_1",
                 category=TaskCategory.ASSIGNMENT),
            Task(user_id=user.id, title="Old B", source=TaskSource.CANVAS, source_id="quiz_2",
                 category=TaskCategory.QUIZ),
            Task(user_id=user.id, title="Mail", source=TaskSource.GMAIL, source_id="email_3"),
        ])
        await db_session.commit()

        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient([])), rebuild_sources=["canvas"])
        summary = await service.sync_source(user, TaskSource.CANVAS)

        assert summary.success is True
        assert summary.purged == 2
        assert summary.item_count == 0
        assert await _tasks(db_session, TaskSource.CANVAS) == []
        assert len(await _tasks(db_session, TaskSource.GMAIL)) == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_does_not_purge(self, db_session, seed_data):
        user = seed_data["user"]
        db_session.add(Task(user_id=user.id, title="Keep me", source=TaskSource.CANVAS,
                            source_id="assignment_1", category=TaskCategory.ASSIGNMENT))
        await db_session.commit()

        client = FakeProviderClient(error=ProviderError("canvas", "Failed to fetch Canvas courses", status_code=503))
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(client), rebuild_sources=["canvas"])
        summary = await service.sync_source(user, TaskSource.CANVAS)

        assert summary.success is False
        assert summary.state == SyncState.FAILED
        assert "503" in summary.error
        assert len(await _tasks(db_session)) == 1

    @pytest.mark.asyncio
    async def test_classifier_outage_falls_back(self, db_session, seed_data):
        items = [
            _assignment(1, "Problem set 3", "2026-10-25T23:59:00Z"),
            _assignment(2, "Attendance week 8", "2026-10-25T23:59:00Z"),
        ]
        service = SyncService(db_session, classifier=_classifier(error=RuntimeError("AI service not configured")),
                              client_factory=_factory(FakeProviderClient(items)), rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.CANVAS)

        assert summary.success is True
        assert summary.created == 1
        assert summary.filtered == 1
        [task] = await _tasks(db_session)
        assert task.title == "Problem set 3"

    @pytest.mark.asyncio
    async def test_one_bad_item_does_not_stop_the_batch(self, db_session, seed_data):
        broken = CanvasRawItem(item_type="assignment", course_id=7, course_name="Bio",
                               data={"id": 99, "name": 12345, "due_at": "2026-10-25T23:59:00Z"})
        items = [broken, _assignment(1, "Lab 1", "2026-10-25T23:59:00Z")]
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient(items)), rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.CANVAS)

        assert summary.failed == 1
        assert summary.created == 1
        assert summary.items_processed == 1
        assert summary.success is True

    @pytest.mark.asyncio
    async def test_last_synced_at_recorded(self, db_session, seed_data):
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient([])), rebuild_sources=[])
        await service.sync_source(seed_data["user"], TaskSource.CANVAS)
        assert seed_data["canvas"].last_synced_at is not None


# ===================== GMAIL / GOOGLE =====================


class TestGoogleSync:

    @pytest.mark.asyncio
    async def test_meeting_email_creates_timed_meeting(self, db_session, seed_data):
        tomorrow = (utcnow() + timedelta(days=1)).date()
        raw = GmailRawMessage(data=gmail_message("abc", "Team sync tomorrow at 3pm", "Agenda attached."))
        classifier = _classifier({
            "isImportant": True,
            "title": None,
            "category": "meeting",
            "dueDate": tomorrow.isoformat(),
        })
        service = SyncService(db_session, classifier=classifier,
                              client_factory=_factory(FakeProviderClient([raw])), rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.GMAIL)

        assert summary.created == 2
        email_task, meeting_task = await _tasks(db_session, TaskSource.GMAIL)
        assert email_task.source_id == "email_abc"
        assert meeting_task.source_id == "meeting_abc"
        assert meeting_task.category == TaskCategory.MEETING
        assert meeting_task.due_date == datetime(tomorrow.year, tomorrow.month, tomorrow.day, 15, 0)

    @pytest.mark.asyncio
    async def test_duplicate_records_in_one_batch_processed_once(self, db_session, seed_data):
        message = gmail_message("dup", "Action required: sign the form", "Please sign.")
        items = [GmailRawMessage(data=message), GmailRawMessage(data=message)]
        service = SyncService(db_session, classifier=_classifier({"isImportant": True, "category": "email"}),
                              client_factory=_factory(FakeProviderClient(items)), rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.GMAIL)

        assert summary.items_processed == 1
        assert summary.created == 1
        count = (await db_session.execute(select(func.count()).select_from(Task))).scalar()
        assert count == 1

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_before_fetch(self, db_session, seed_data):
        google = seed_data["google"]
        google.expires_at = utcnow() - timedelta(minutes=5)
        await db_session.commit()

        async def refresh(integration):
            integration.access_token = "fresh-token"
            integration.expires_at = utcnow() + timedelta(hours=1)
            return integration

        refresher = AsyncMock(side_effect=refresh)
        seen_tokens = []

        def factory(source, integration):
            seen_tokens.append(integration.access_token)
            return FakeProviderClient([])

        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=factory, token_refresher=refresher, rebuild_sources=[])
        summary = await service.sync_source(seed_data["user"], TaskSource.GOOGLE_CALENDAR)

        assert summary.success is True
        assert refresher.await_count == 1
        assert seen_tokens == ["fresh-token"]

    @pytest.mark.asyncio
    async def test_rejected_token_retried_once_after_refresh(self, db_session, seed_data):
        clients = [
            FakeProviderClient(error=AuthExpiredError("gmail", "access token rejected", status_code=401)),
            FakeProviderClient([]),
        ]
        refresher = AsyncMock(side_effect=lambda integration: integration)
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=lambda source, integration: clients.pop(0),
                              token_refresher=refresher, rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.GMAIL)

        assert summary.success is True
        assert refresher.await_count == 1
        assert clients == []

    @pytest.mark.asyncio
    async def test_refresh_failure_reports_auth_expired(self, db_session, seed_data):
        google = seed_data["google"]
        google.expires_at = utcnow() - timedelta(minutes=5)
        await db_session.commit()

        refresher = AsyncMock(side_effect=AuthExpiredError("google", "refresh token rejected", status_code=400))
        client = FakeProviderClient([])
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(client), token_refresher=refresher, rebuild_sources=[])

        summary = await service.sync_source(seed_data["user"], TaskSource.GMAIL)

        assert summary.success is False
        assert summary.auth_expired is True
        assert client.calls == 0


# ===================== CONNECTIONS / SYNC ALL =====================


class TestSyncAll:

    @pytest.mark.asyncio
    async def test_missing_integration_raises(self, db_session, seed_data):
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient([])))
        with pytest.raises(IntegrationNotConnectedError):
            await service.sync_source(seed_data["user"], TaskSource.SLACK)

    @pytest.mark.asyncio
    async def test_disconnected_integration_raises(self, db_session, seed_data):
        seed_data["canvas"].is_connected = False
        await db_session.commit()
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient([])))
        with pytest.raises(IntegrationNotConnectedError):
            await service.sync_source(seed_data["user"], TaskSource.CANVAS)

    @pytest.mark.asyncio
    async def test_one_provider_failure_isolated(self, db_session, seed_data):
        def factory(source, integration):
            if source == TaskSource.GMAIL:
                return FakeProviderClient(error=ProviderError("gmail", "quota exceeded", status_code=429))
            if source == TaskSource.CANVAS:
                return FakeProviderClient([_assignment(1, "Lab 1", "2026-10-25T23:59:00Z")])
            return FakeProviderClient([])

        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=factory, rebuild_sources=[])
        response = await service.sync_all(seed_data["user"])

        assert response.success is True
        assert response.message == "Sync completed for all integrations"
        by_provider = {r["provider"]: r for r in response.results}
        assert set(by_provider) == {"canvas", "gmail", "google_calendar"}
        assert by_provider["canvas"]["success"] is True
        assert by_provider["canvas"]["item_count"] == 1
        assert by_provider["gmail"]["success"] is False
        assert by_provider["google_calendar"]["success"] is True

    @pytest.mark.asyncio
    async def test_uniqueness_holds_across_sources_and_runs(self, db_session, seed_data):
        def factory(source, integration):
            if source == TaskSource.CANVAS:
                return FakeProviderClient([_assignment(1, "Lab 1", "2026-10-25T23:59:00Z")])
            return FakeProviderClient([])

        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=factory, rebuild_sources=[])
        for _ in range(3):
            await service.sync_all(seed_data["user"])

        rows = (await db_session.execute(
            select(Task.user_id, Task.source, Task.source_id, func.count())
            .group_by(Task.user_id, Task.source, Task.source_id)
        )).all()
        assert all(row[3] == 1 for row in rows)


# ===================== EVERY SOURCE =====================


def _event(event_id, summary, start="2026-10-21T15:00:00Z", end="2026-10-21T16:00:00Z", **extra):
    data = {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
        "htmlLink": f"https://calendar.google.com/event?eid={event_id}",
    }
    data.update(extra)
    return CalendarRawEvent(data=data)


def _records(source):
    if source == TaskSource.GMAIL:
        return [
            GmailRawMessage(data=gmail_message("mtg", "Team sync tomorrow at 3pm", "Agenda attached.")),
            GmailRawMessage(data=gmail_message("hw", "Homework 4", "Homework 4 is due by Oct 30. Submit on Canvas.")),
        ]
    if source == TaskSource.GOOGLE_CALENDAR:
        return [_event("ev1", "Lab group sync")]
    return [
        SlackRawMessage(channel_id="C1", channel_name="general",
                        data={"ts": "1792400400.000100", "text": "Can you finish the draft by tomorrow?"}),
        SlackRawStar(data={"type": "message", "channel": "C1",
                           "message": {"ts": "1792400500.000200", "text": "Review the slides due tomorrow"}}),
        SlackRawReminder(data={"id": "Rm1", "text": "Submit timesheet", "time": 1792500000}),
    ]


# (tasks with a model answer, tasks with the keyword fallback)
EXPECTED_TASKS = {
    TaskSource.GMAIL: (3, 1),
    TaskSource.GOOGLE_CALENDAR: (1, 1),
    TaskSource.SLACK: (3, 1),
}


async def _connect_slack(db, user):
    db.add(Integration(user_id=user.id, provider=IntegrationProvider.SLACK, access_token="xoxp-token"))
    await db.commit()


def _model_answer():
    return {
        "isImportant": True,
        "category": "meeting",
        "dueDate": (utcnow() + timedelta(days=1)).date().isoformat(),
    }


class TestEverySource:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", list(EXPECTED_TASKS))
    async def test_second_sync_is_idempotent(self, db_session, seed_data, source):
        user = seed_data["user"]
        await _connect_slack(db_session, user)
        expected, _ = EXPECTED_TASKS[source]
        service = SyncService(db_session, classifier=_classifier(_model_answer()),
                              client_factory=lambda s, integration: FakeProviderClient(_records(s)),
                              rebuild_sources=[])

        first = await service.sync_source(user, source)
        before = {t.source_id: (t.title, t.due_date) for t in await _tasks(db_session, source)}
        second = await service.sync_source(user, source)
        after = {t.source_id: (t.title, t.due_date) for t in await _tasks(db_session, source)}

        assert (first.created, first.updated, first.failed) == (expected, 0, 0)
        assert (second.created, second.updated, second.failed) == (0, expected, 0)
        assert len(after) == expected
        assert after == before

    @pytest.mark.asyncio
    async def test_meeting_twin_stays_single_across_runs(self, db_session, seed_data):
        service = SyncService(db_session, classifier=_classifier(_model_answer()),
                              client_factory=lambda s, integration: FakeProviderClient(_records(s)),
                              rebuild_sources=[])
        for _ in range(2):
            await service.sync_source(seed_data["user"], TaskSource.GMAIL)

        ids = [t.source_id for t in await _tasks(db_session, TaskSource.GMAIL)]
        assert ids == ["email_hw", "email_mtg", "meeting_mtg"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", list(EXPECTED_TASKS))
    async def test_classifier_outage_falls_back(self, db_session, seed_data, source):
        user = seed_data["user"]
        await _connect_slack(db_session, user)
        _, expected = EXPECTED_TASKS[source]
        service = SyncService(db_session, classifier=_classifier(error=RuntimeError("AI service not configured")),
                              client_factory=lambda s, integration: FakeProviderClient(_records(s)),
                              rebuild_sources=[])

        summary = await service.sync_source(user, source)

        assert summary.success is True
        assert summary.failed == 0
        assert summary.created == expected
        assert summary.items_processed == len(_records(source))

    @pytest.mark.asyncio
    async def test_resync_keeps_user_completion(self, db_session, seed_data):
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient([_event("ev1", "Lab group sync")])),
                              rebuild_sources=[])
        await service.sync_source(seed_data["user"], TaskSource.GOOGLE_CALENDAR)

        [task] = await _tasks(db_session)
        task.completed = True
        task.completed_at = utcnow()
        await db_session.commit()

        summary = await service.sync_source(seed_data["user"], TaskSource.GOOGLE_CALENDAR)

        assert summary.updated == 1
        [task] = await _tasks(db_session)
        assert task.completed is True
        assert task.completed_at is not None

    @pytest.mark.asyncio
    async def test_storage_failure_rolls_back_only_that_item(self, db_session, seed_data):
        user = seed_data["user"]
        db_session.add(Task(user_id=user.id, title="Stale event", source=TaskSource.GOOGLE_CALENDAR,
                            source_id="event_old", category=TaskCategory.MEETING))
        await db_session.commit()

        items = [
            _event("ev1", "Lab group sync"),
            # JSON column cannot store this location, so the flush fails
            _event("ev2", "Office hours", location=object()),
            _event("ev3", "Study group"),
            _event("ev4", "Project check-in"),
        ]
        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=_factory(FakeProviderClient(items)),
                              rebuild_sources=["google_calendar"])

        summary = await service.sync_source(user, TaskSource.GOOGLE_CALENDAR)

        assert summary.success is True
        assert summary.state == SyncState.DONE
        assert summary.purged == 1
        assert (summary.created, summary.failed) == (3, 1)
        ids = [t.source_id for t in await _tasks(db_session)]
        assert ids == ["event_ev1", "event_ev3", "event_ev4"]
        assert seed_data["google"].last_synced_at is not None

    @pytest.mark.asyncio
    async def test_records_without_ids_counted_as_filtered(self, db_session, seed_data):
        no_id = gmail_message("x", "Quiz 3 logistics", "Bring a pencil")
        del no_id["id"]
        canvas_items = [
            CanvasRawItem(item_type="assignment", course_id=7, data={"name": "A", "due_at": "2026-10-25T23:59:00Z"}),
            CanvasRawItem(item_type="assignment", course_id=7, data={"name": "B", "due_at": "2026-10-25T23:59:00Z"}),
        ]

        def factory(source, integration):
            if source == TaskSource.GMAIL:
                return FakeProviderClient([GmailRawMessage(data=no_id)])
            return FakeProviderClient(canvas_items)

        service = SyncService(db_session, classifier=_classifier({"isImportant": True}),
                              client_factory=factory, rebuild_sources=[])

        gmail = await service.sync_source(seed_data["user"], TaskSource.GMAIL)
        canvas = await service.sync_source(seed_data["user"], TaskSource.CANVAS)

        assert (gmail.failed, gmail.filtered, gmail.items_processed) == (0, 1, 1)
        assert (canvas.failed, canvas.filtered, canvas.items_processed) == (0, 2, 2)
        assert await _tasks(db_session) == []
