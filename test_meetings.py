# test_meetings.py
"""
Pruebas de reuniones y participantes.
"""
import pytest

from conftest import run_ticks
from speaktime.exceptions import (
    InvalidInputError,
    MeetingNotFoundError,
    ParticipantNotFoundError,
    RemoteOperationError,
)
from speaktime.meetings import MeetingRepository
from speaktime.models import Meeting, Participant, SpeakingSession
from speaktime.store import StoreError


@pytest.mark.unit
class TestCreateMeeting:

    @pytest.mark.asyncio
    async def test_create_with_participants(self, tracker, meeting):
        assert meeting.title == "Weekly sync"
        assert meeting.created_by == "owner-1"
        assert meeting.is_active is True
        assert tracker.meetings.active_meeting_id == meeting.id

        participants = await tracker.meetings.list_participants(meeting.id)
        assert [p.name for p in participants] == ["Alice", "Bob"]
        assert all(p.total_speaking_time == 0 and not p.is_currently_speaking for p in participants)

    @pytest.mark.asyncio
    async def test_names_are_trimmed_and_blanks_skipped(self, tracker):
        meeting = await tracker.create_meeting("  Planning ", [" Ana ", "", "   ", "Luis"])

        participants = await tracker.meetings.list_participants(meeting.id)
        assert meeting.title == "Planning"
        assert [p.name for p in participants] == ["Ana", "Luis"]

    @pytest.mark.asyncio
    async def test_title_required(self, tracker):
        with pytest.raises(InvalidInputError) as exc_info:
            await tracker.create_meeting("   ", ["Ana"])

        assert exc_info.value.user_message == "Please enter a meeting title"
        assert await tracker.store.select(Meeting) == []

    @pytest.mark.asyncio
    async def test_participant_required(self, tracker):
        with pytest.raises(InvalidInputError) as exc_info:
            await tracker.create_meeting("Planning", ["", " "])

        assert exc_info.value.user_message == "Please add at least one participant"

    @pytest.mark.asyncio
    async def test_new_meeting_supersedes_active(self, tracker, meeting, view):
        second = await tracker.create_meeting("Daily", ["Eva"])

        first = await tracker.meetings.get_meeting(meeting.id)
        assert first.is_active is False
        assert first.ended_at is not None
        assert tracker.meetings.active_meeting_id == second.id
        assert (await tracker.meetings.active_meeting()).id == second.id
        assert meeting.id not in tracker.views
        assert not view.is_open

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, tracker, monkeypatch):
        async def broken_insert(model, **values):
            raise StoreError("disk full")

        monkeypatch.setattr(tracker.store, "insert", broken_insert)

        with pytest.raises(RemoteOperationError) as exc_info:
            await tracker.create_meeting("Planning", ["Ana"])

        assert exc_info.value.user_message == "Failed to create meeting"
        assert tracker.meetings.active_meeting_id is None


@pytest.mark.unit
class TestEndMeeting:

    @pytest.mark.asyncio
    async def test_open_session_is_credited_on_end(self, tracker, meeting, people, view, clock):
        alice = people["Alice"]
        await view.start_speaking(alice.id)
        run_ticks(view, clock, 2)
        clock.advance(40)

        ended = await tracker.end_meeting(meeting.id)

        assert ended.is_active is False
        assert ended.ended_at == clock.now()
        alice_row = await tracker.store.get(Participant, alice.id)
        assert alice_row.total_speaking_time == 42
        assert alice_row.speaking_sessions == 1
        assert alice_row.is_currently_speaking is False

        sessions = await tracker.store.select(SpeakingSession, meeting_id=meeting.id)
        assert [s.duration for s in sessions] == [42]
        assert tracker.meetings.active_meeting_id is None
        assert await tracker.meetings.active_meeting() is None
        assert meeting.id not in tracker.views
        assert view.controller.open_session is None

    @pytest.mark.asyncio
    async def test_end_without_speakers(self, tracker, meeting, people):
        await tracker.end_meeting(meeting.id)

        participants = await tracker.meetings.list_participants(meeting.id)
        assert all(p.speaking_sessions == 0 for p in participants)

    @pytest.mark.asyncio
    async def test_end_missing_meeting(self, tracker):
        with pytest.raises(MeetingNotFoundError):
            await tracker.end_meeting(404)


@pytest.mark.unit
class TestActiveMeeting:

    @pytest.mark.asyncio
    async def test_load_active_on_startup(self, tracker, meeting):
        fresh = MeetingRepository(tracker.store)

        assert fresh.active_meeting_id is None
        loaded = await fresh.load_active()

        assert loaded.id == meeting.id
        assert fresh.active_meeting_id == meeting.id

    @pytest.mark.asyncio
    async def test_reference_is_not_reread(self, tracker, meeting):
        # Un cambio directo en el store no mueve la referencia
        await tracker.store.update(Meeting, {"is_active": False}, id=meeting.id)

        assert tracker.meetings.active_meeting_id == meeting.id

    @pytest.mark.asyncio
    async def test_list_meetings_newest_first(self, tracker, meeting, clock):
        second = await tracker.create_meeting("Daily", ["Eva"])

        meetings = await tracker.meetings.list_meetings()

        assert [m.id for m in meetings] == [second.id, meeting.id]


@pytest.mark.unit
class TestParticipants:

    @pytest.mark.asyncio
    async def test_add_participant(self, tracker, meeting, view):
        carol = await tracker.meetings.add_participant(meeting.id, " Carol ")

        assert carol.name == "Carol"
        assert [p.name for p in view.participants] == ["Alice", "Bob", "Carol"]

    @pytest.mark.asyncio
    async def test_add_participant_validation(self, tracker, meeting):
        with pytest.raises(InvalidInputError):
            await tracker.meetings.add_participant(meeting.id, "  ")
        with pytest.raises(MeetingNotFoundError):
            await tracker.meetings.add_participant(999, "Carol")

    @pytest.mark.asyncio
    async def test_list_in_ranking_order(self, tracker, meeting, people):
        await tracker.store.update(Participant, {"total_speaking_time": 15}, id=people["Bob"].id)

        participants = await tracker.meetings.list_participants(meeting.id)

        assert [p.name for p in participants] == ["Bob", "Alice"]

    @pytest.mark.asyncio
    async def test_remove_participant_drops_sessions(self, tracker, meeting, people, view, clock):
        bob = people["Bob"]
        await view.start_speaking(bob.id)
        run_ticks(view, clock, 1)
        await view.stop_speaking(bob.id)

        await tracker.meetings.remove_participant(bob.id)

        assert await tracker.store.get(Participant, bob.id) is None
        assert await tracker.store.select(SpeakingSession, participant_id=bob.id) == []
        assert [p.name for p in view.participants] == ["Alice"]

    @pytest.mark.asyncio
    async def test_remove_missing_participant(self, tracker):
        with pytest.raises(ParticipantNotFoundError):
            await tracker.meetings.remove_participant(999)


@pytest.mark.unit
class TestTracker:

    @pytest.mark.asyncio
    async def test_view_for_missing_meeting(self, tracker):
        with pytest.raises(MeetingNotFoundError):
            await tracker.view_for(123)
        assert tracker.views == {}

    @pytest.mark.asyncio
    async def test_view_is_shared(self, tracker, meeting, view):
        assert await tracker.view_for(meeting.id) is view

    @pytest.mark.asyncio
    async def test_tick_reaches_open_views(self, tracker, people, view, clock):
        await view.start_speaking(people["Alice"].id)

        run_ticks(tracker, clock, 3)

        assert view.timer.elapsed_seconds(people["Alice"].id) == 3

    @pytest.mark.asyncio
    async def test_ticker_lifecycle(self, tracker, meeting, view):
        tracker.start_ticker(0.01)
        ticker = tracker._ticker
        assert not ticker.done()

        await tracker.shutdown()

        assert ticker.cancelled()
        assert tracker._ticker is None
        assert tracker.views == {}
        assert tracker.feed.subscriber_count == 0
