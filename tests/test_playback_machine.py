"""Tests for the guard playback state machine."""

import pytest

from guard_training.playback.machine import (
    CompletionStatus,
    PlaybackError,
    PlaybackSession,
    Step,
    score_quiz,
)
from guard_training.playback.media import ReportedPlayer
from guard_training.playback.types import Material, MaterialKind, QuizQuestion, QuizResult, Slide


class RecordingWriter:
    """Completion writer that records every call."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def __call__(self, guard_id, material_id, kind, title, score=None, passed=None):
        self.calls.append({
            "guard_id": guard_id,
            "material_id": material_id,
            "kind": kind,
            "title": title,
            "score": score,
            "passed": passed,
        })
        if self.fail:
            raise RuntimeError("database unavailable")
        return {"id": "rec-1"}


class FakeHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual scheduler: ticks run only when the test calls fire()."""

    def __init__(self):
        self.pending = []

    def __call__(self, interval_s, fn):
        handle = FakeHandle()
        self.pending.append((handle, fn))
        return handle

    def fire(self):
        due, self.pending = self.pending, []
        for handle, fn in due:
            if not handle.cancelled:
                fn()

    @property
    def active(self):
        return [h for h, _ in self.pending if not h.cancelled]


class FakePlayer:
    def __init__(self, duration=100.0):
        self.position = 0.0
        self._duration = duration

    def current_time(self):
        return self.position

    def duration(self):
        return self._duration


def _quiz(n=2):
    return [
        QuizQuestion(question=f"Q{i}", options=["a", "b", "c"], answer=i % 3)
        for i in range(n)
    ]


def card(slides, quiz=None):
    return Material(id="m-card", title="카드 교육", kind=MaterialKind.CARD, slides=slides, quiz=_quiz() if quiz is None else quiz)


def video(urls, quiz=None):
    return Material(id="m-video", title="영상 교육", kind=MaterialKind.VIDEO, videos=urls, quiz=_quiz() if quiz is None else quiz)


def session_for(material, writer=None, **kwargs):
    return PlaybackSession(material, "guard-1", writer or RecordingWriter(), **kwargs)


class TestScoreQuiz:
    """Tests for quiz scoring."""

    def test_all_correct(self):
        result = score_quiz(_quiz(2), [0, 1])
        assert result == QuizResult(score=100, passed=True)

    def test_half_correct_fails(self):
        result = score_quiz(_quiz(2), [0, 2])
        assert result == QuizResult(score=50, passed=False)

    def test_rounds_half_up(self):
        # 1/8 = 12.5 -> 13
        assert score_quiz(_quiz(8), [0] + [None] * 7).score == 13
        # 2/3 = 66.67 -> 67
        assert score_quiz(_quiz(3), [0, 1, 0]).score == 67

    @pytest.mark.parametrize("correct,total,passed", [(3, 5, True), (2, 4, False), (5, 9, False)])
    def test_pass_threshold_is_sixty(self, correct, total, passed):
        quiz = _quiz(total)
        answers = [q.answer if i < correct else (q.answer + 1) % 3 for i, q in enumerate(quiz)]
        result = score_quiz(quiz, answers)
        assert result.passed is passed
        assert result.passed == (result.score >= 60)

    def test_empty_quiz_is_rejected(self):
        with pytest.raises(ValueError):
            score_quiz([], [])


class TestSessionCreation:
    """Tests for session construction."""

    def test_requires_guard_id(self):
        with pytest.raises(PlaybackError):
            PlaybackSession(card([Slide("a.png")]), "", RecordingWriter())

    def test_rejects_unplayable_material(self):
        with pytest.raises(PlaybackError):
            session_for(card([]))
        with pytest.raises(PlaybackError):
            session_for(video([]))

    def test_starts_in_content_at_first_item(self):
        s = session_for(card([Slide("a.png"), Slide("b.png")]))
        assert s.step == Step.CONTENT
        assert s.content_cursor == 0
        assert s.completion_status == CompletionStatus.NONE


class TestCardGating:
    """Tests for card slide gating."""

    def test_slides_without_audio_unlock_immediately(self):
        s = session_for(card([Slide("a.png"), Slide("b.png"), Slide("c.png")]))
        for expected in range(3):
            assert s.content_cursor == expected
            assert s.can_proceed
            if expected < 2:
                s.next()
        assert s.can_take_quiz

    def test_slide_with_audio_blocks_until_audio_ends(self):
        s = session_for(card([Slide("a.png", "a.mp3"), Slide("b.png")]))
        assert not s.can_proceed
        with pytest.raises(PlaybackError):
            s.next()
        assert s.content_cursor == 0

        s.audio_started()
        s.audio_toggle()  # pause
        s.audio_toggle()  # resume
        assert not s.can_proceed

        s.audio_ended()
        assert s.can_proceed
        s.next()
        assert s.content_cursor == 1

    def test_blocked_autoplay_recovers_with_manual_play(self):
        s = session_for(card([Slide("a.png", "a.mp3")]))
        s.audio_blocked()
        assert not s.audio_playing
        assert s.snapshot()["audio_controls"] is True
        s.audio_toggle()
        assert s.audio_playing
        s.audio_ended()
        assert s.can_take_quiz

    def test_audio_events_rejected_on_silent_slide(self):
        s = session_for(card([Slide("a.png")]))
        with pytest.raises(PlaybackError):
            s.audio_ended()

    def test_going_back_resets_gating(self):
        s = session_for(card([Slide("a.png", "a.mp3"), Slide("b.png")]))
        s.audio_ended()
        s.next()
        s.previous()
        assert s.content_cursor == 0
        assert not s.can_proceed

    def test_previous_at_first_slide_is_invalid(self):
        s = session_for(card([Slide("a.png")]))
        with pytest.raises(PlaybackError):
            s.previous()


class TestVideoGating:
    """Tests for video progress gating."""

    def test_unlocks_at_eighty_percent(self):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        s.video_progress(79.9)
        assert not s.can_proceed
        s.video_progress(80)
        assert s.can_proceed

    def test_progress_keeps_highest_value(self):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        s.video_progress(85)
        s.video_progress(10)
        assert s.video_progress_percent == 85
        assert s.can_proceed

    def test_end_event_unlocks(self):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        s.video_progress(20)
        s.video_ended()
        assert s.can_proceed
        assert s.video_progress_percent == 100

    def test_seek_past_threshold_unlocks_before_end(self):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        s.video_progress(85)
        assert s.can_proceed
        s.video_ended()
        assert s.can_take_quiz

    def test_player_error_blocks_until_retry(self):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        s.video_progress(90)
        s.video_error()
        assert not s.can_proceed
        s.video_progress(100)
        assert s.video_progress_percent == 90
        s.player_retry()
        assert s.can_proceed

    def test_next_video_starts_locked(self):
        s = session_for(video(["https://cdn.example.com/a.mp4", "https://cdn.example.com/b.mp4"]))
        s.video_ended()
        s.next()
        assert s.content_cursor == 1
        assert s.video_progress_percent == 0
        assert not s.can_proceed

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_progress_is_rejected(self, value):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        s.video_progress(30)
        with pytest.raises(PlaybackError):
            s.video_progress(value)
        assert s.video_progress_percent == 30
        assert not s.can_proceed

    def test_card_events_rejected_for_video(self):
        s = session_for(video(["https://cdn.example.com/a.mp4"]))
        with pytest.raises(PlaybackError):
            s.audio_ended()


class TestEmbeddedPolling:
    """Tests for embedded player progress polling."""

    def test_polls_while_playing_and_stops_on_pause(self):
        scheduler = FakeScheduler()
        player = FakePlayer(duration=200)
        s = session_for(video(["https://youtu.be/dQw4w9WgXcQ"]), scheduler=scheduler)
        s.attach_player(player)
        s.video_playing()
        assert s.polling

        player.position = 100
        scheduler.fire()
        assert s.video_progress_percent == 50
        player.position = 170
        scheduler.fire()
        assert s.can_proceed

        s.video_paused()
        assert not s.polling
        assert scheduler.active == []

    def test_direct_media_is_not_polled(self):
        scheduler = FakeScheduler()
        s = session_for(video(["https://cdn.example.com/a.mp4"]), scheduler=scheduler)
        s.attach_player(FakePlayer())
        s.video_playing()
        assert not s.polling
        assert scheduler.pending == []

    def test_polling_stops_on_error_end_and_video_change(self):
        scheduler = FakeScheduler()
        urls = ["https://www.youtube.com/embed/dQw4w9WgXcQ", "https://www.youtube.com/watch?v=9bZkp7q19f0"]
        s = session_for(video(urls), scheduler=scheduler)
        s.attach_player(FakePlayer())

        s.video_playing()
        s.video_error()
        assert not s.polling

        s.player_retry()
        s.video_playing()
        s.video_ended()
        assert not s.polling

        s.video_playing()
        s.next()
        assert not s.polling
        assert scheduler.active == []

    def test_close_cancels_polling(self):
        scheduler = FakeScheduler()
        s = session_for(video(["dQw4w9WgXcQ"]), scheduler=scheduler)
        s.attach_player(FakePlayer())
        s.video_playing()
        s.close()
        assert scheduler.active == []
        with pytest.raises(PlaybackError):
            s.video_playing()

    def test_reported_clock_drives_polling(self):
        scheduler = FakeScheduler()
        s = session_for(video(["https://youtu.be/dQw4w9WgXcQ"]), scheduler=scheduler)
        s.attach_player(ReportedPlayer())
        s.video_playing()

        scheduler.fire()
        assert s.video_progress_percent == 0

        s.player_position(45, 60)
        scheduler.fire()
        assert s.video_progress_percent == 75
        assert not s.can_proceed
        with pytest.raises(PlaybackError):
            s.player_position(float("nan"), 60)
        with pytest.raises(PlaybackError):
            s.player_position(-5, 60)
        scheduler.fire()
        assert s.video_progress_percent == 75
        s.player_position(50, 60)
        scheduler.fire()
        assert s.can_proceed

    def test_reported_clock_resets_on_video_change(self):
        scheduler = FakeScheduler()
        urls = ["https://youtu.be/dQw4w9WgXcQ", "https://youtu.be/9bZkp7q19f0"]
        s = session_for(video(urls), scheduler=scheduler)
        s.attach_player(ReportedPlayer())
        s.player_position(100, 100)
        s.video_ended()
        s.next()
        s.video_playing()
        scheduler.fire()
        assert s.video_progress_percent == 0
        assert not s.can_proceed

    def test_player_position_requires_reporting_player(self):
        s = session_for(video(["https://youtu.be/dQw4w9WgXcQ"]))
        with pytest.raises(PlaybackError):
            s.player_position(10, 100)
        s.attach_player(FakePlayer())
        with pytest.raises(PlaybackError):
            s.player_position(10, 100)


class TestQuizFlow:
    """Tests for quiz and result transitions."""

    def _at_quiz(self, writer=None, quiz=None):
        s = session_for(card([Slide("a.png")], quiz=quiz), writer=writer)
        s.start_quiz()
        return s

    def test_quiz_requires_completed_content(self):
        s = session_for(card([Slide("a.png", "a.mp3")]))
        with pytest.raises(PlaybackError):
            s.start_quiz()
        assert s.step == Step.CONTENT

    def test_submit_requires_every_answer(self):
        s = self._at_quiz()
        s.answer(0, 0)
        assert not s.can_submit
        with pytest.raises(PlaybackError):
            s.submit()
        assert s.step == Step.QUIZ

    def test_answer_out_of_range(self):
        s = self._at_quiz()
        with pytest.raises(PlaybackError):
            s.answer(5, 0)
        with pytest.raises(PlaybackError):
            s.answer(0, 3)

    def test_all_correct_writes_one_record(self):
        writer = RecordingWriter()
        s = self._at_quiz(writer)
        s.answer(0, 0)
        s.answer(1, 1)
        result = s.submit()
        assert result == QuizResult(score=100, passed=True)
        assert s.step == Step.RESULT
        assert s.completion_status == CompletionStatus.SAVED
        assert len(writer.calls) == 1
        call = writer.calls[0]
        assert call["guard_id"] == "guard-1"
        assert call["material_id"] == "m-card"
        assert call["kind"] == MaterialKind.CARD
        assert call["score"] == 100 and call["passed"] is True

    def test_half_correct_fails_without_write(self):
        writer = RecordingWriter()
        s = self._at_quiz(writer)
        s.answer(0, 0)
        s.answer(1, 2)
        result = s.submit()
        assert result == QuizResult(score=50, passed=False)
        assert writer.calls == []
        assert s.can_retry_quiz

    def test_retry_clears_answers(self):
        writer = RecordingWriter()
        s = self._at_quiz(writer)
        s.answer(0, 1)
        s.answer(1, 2)
        s.submit()
        s.retry_quiz()
        assert s.step == Step.QUIZ
        assert s.quiz_answers == [None, None]
        assert s.result is None
        assert not s.can_submit

        s.answer(0, 0)
        s.answer(1, 1)
        s.submit()
        assert len(writer.calls) == 1

    def test_writer_given_to_submit_is_used(self):
        default_writer = RecordingWriter()
        request_writer = RecordingWriter()
        s = self._at_quiz(default_writer)
        s.answer(0, 0)
        s.answer(1, 1)
        s.submit(writer=request_writer)
        assert default_writer.calls == []
        assert len(request_writer.calls) == 1
        assert s.completion_status == CompletionStatus.SAVED

    def test_writer_given_to_next_is_used_without_quiz(self):
        default_writer = RecordingWriter()
        request_writer = RecordingWriter()
        s = session_for(card([Slide("a.png")], quiz=[]), writer=default_writer)
        s.next(writer=request_writer)
        assert s.step == Step.RESULT
        assert default_writer.calls == []
        assert request_writer.calls[0]["score"] == 100

    def test_retry_not_allowed_after_pass(self):
        s = self._at_quiz()
        s.answer(0, 0)
        s.answer(1, 1)
        s.submit()
        with pytest.raises(PlaybackError):
            s.retry_quiz()

    def test_empty_quiz_passes_on_content_completion(self):
        writer = RecordingWriter()
        s = session_for(video(["https://cdn.example.com/a.mp4"], quiz=[]), writer=writer)
        s.video_ended()
        s.next()
        assert s.step == Step.RESULT
        assert s.result == QuizResult(score=100, passed=True)
        assert len(writer.calls) == 1

    def test_write_failure_is_surfaced_without_retry(self):
        writer = RecordingWriter(fail=True)
        s = self._at_quiz(writer)
        s.answer(0, 0)
        s.answer(1, 1)
        s.submit()
        assert s.step == Step.RESULT
        assert s.completion_status == CompletionStatus.FAILED
        assert "database unavailable" in s.completion_error
        assert len(writer.calls) == 1

    def test_content_events_rejected_during_quiz(self):
        s = self._at_quiz()
        with pytest.raises(PlaybackError):
            s.next()
        with pytest.raises(PlaybackError):
            s.previous()


class TestScenarios:
    """End-to-end walks through a material."""

    def test_three_silent_slides_reach_quiz(self):
        s = session_for(card([Slide("1.png"), Slide("2.png"), Slide("3.png")]))
        s.next()
        s.next()
        assert s.content_cursor == 2
        assert s.can_take_quiz
        s.next()
        assert s.step == Step.QUIZ

    def test_snapshot_reports_card_state(self):
        s = session_for(card([Slide("1.png", "1.mp3"), Slide("2.png")]))
        snap = s.snapshot()
        assert snap["step"] == "content"
        assert snap["material_type"] == "card"
        assert snap["image"] == "1.png"
        assert snap["slide_unlocked"] is False
        assert snap["content_count"] == 2

    def test_snapshot_reports_video_state(self):
        s = session_for(video(["https://youtu.be/dQw4w9WgXcQ"]))
        snap = s.snapshot()
        assert snap["embedded"] is True
        assert snap["video_id"] == "dQw4w9WgXcQ"
