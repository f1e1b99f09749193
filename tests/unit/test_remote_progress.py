"""
Unit Tests for Remote Progress Tracker
"""

from datetime import date

import pytest

from metis_clew.remote_progress import RemoteProgressTracker, RemoteStats
from metis_clew.skill_progression import SkillLevel

USER = "user-123"


class TestRemoteProgressTracker:
    """Test suite for RemoteProgressTracker."""

    def test_disabled_without_supabase(self):
        tracker = RemoteProgressTracker(None)
        assert tracker.record_session(USER) is False
        assert tracker.record_explanation(USER) is False
        assert tracker.get_stats(USER) is None

    def test_record_session_once_per_day(self, fake_supabase):
        tracker = RemoteProgressTracker(fake_supabase)
        day = date(2024, 3, 1)

        assert tracker.record_session(USER, day) is True
        assert tracker.record_session(USER, day) is True
        assert len(fake_supabase.tables["user_sessions"]) == 1

        tracker.record_session(USER, date(2024, 3, 2))
        assert len(fake_supabase.tables["user_sessions"]) == 2

    def test_record_explanation_creates_preferences(self, fake_supabase):
        tracker = RemoteProgressTracker(fake_supabase)
        assert tracker.record_explanation(USER, date(2024, 3, 1)) is True

        prefs = fake_supabase.tables["user_preferences"][0]
        assert prefs["total_explanations"] == 1
        assert prefs["skill_level"] == "beginner"
        assert fake_supabase.tables["user_sessions"][0]["patterns_learned"] == 1

    def test_record_explanation_derives_skill_level(self, fake_supabase):
        fake_supabase.tables["user_preferences"] = [
            {"id": "p1", "user_id": USER, "total_explanations": 9, "skill_level": "beginner"},
        ]
        tracker = RemoteProgressTracker(fake_supabase)
        tracker.record_explanation(USER, date(2024, 3, 1))

        prefs = fake_supabase.tables["user_preferences"][0]
        assert prefs["total_explanations"] == 10
        assert prefs["skill_level"] == "intermediate"

    def test_record_explanation_increments_day(self, fake_supabase):
        tracker = RemoteProgressTracker(fake_supabase)
        day = date(2024, 3, 1)
        tracker.record_session(USER, day)
        tracker.record_explanation(USER, day)
        tracker.record_explanation(USER, day)

        sessions = fake_supabase.tables["user_sessions"]
        assert len(sessions) == 1
        assert sessions[0]["patterns_learned"] == 2

    def test_write_failure_returns_false(self, fake_supabase):
        fake_supabase.failing_tables.add("user_preferences")
        assert RemoteProgressTracker(fake_supabase).record_explanation(USER) is False

    def test_get_stats(self, fake_supabase):
        fake_supabase.tables["user_sessions"] = [
            {"id": "s1", "user_id": USER, "session_date": "2024-03-01", "patterns_learned": 4},
            {"id": "s2", "user_id": USER, "session_date": "2024-03-02", "patterns_learned": 7},
            {"id": "s3", "user_id": "someone-else", "session_date": "2024-03-02", "patterns_learned": 99},
        ]
        fake_supabase.tables["user_preferences"] = [
            {"id": "p1", "user_id": USER, "total_explanations": 11,
             "skill_level": "intermediate", "dominant_pattern": "structural"},
        ]

        stats = RemoteProgressTracker(fake_supabase).get_stats(USER)
        assert stats == RemoteStats(
            session_count=2,
            total_patterns=11,
            total_explanations=11,
            skill_level=SkillLevel.INTERMEDIATE,
            dominant_pattern="structural",
        )

    def test_get_stats_defaults_for_new_user(self, fake_supabase):
        stats = RemoteProgressTracker(fake_supabase).get_stats(USER)
        assert stats == RemoteStats()

    def test_get_stats_failure_returns_none(self, fake_supabase):
        fake_supabase.failing_tables.add("user_sessions")
        assert RemoteProgressTracker(fake_supabase).get_stats(USER) is None

    def test_stats_dict_round_trip(self):
        stats = RemoteStats(session_count=2, skill_level=SkillLevel.ADVANCED)
        data = stats.to_dict()
        assert data["skill_level"] == "advanced"
        assert RemoteStats.from_dict(data) == stats


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
