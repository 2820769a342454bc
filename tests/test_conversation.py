"""Tests for the per-session conversation context store."""

from agents.assistant.conversation import ConversationStore, DEFAULT_SESSION_ID


class TestRollingWindow:
    """Sessions keep only the most recent exchanges."""

    def test_keeps_last_five_exchanges(self, store):
        """Should cap a session at 10 turns, dropping the oldest first."""
        for i in range(8):
            store.add_turn("user", f"question {i}", session_id="s1")
            store.add_turn("assistant", f"answer {i}", session_id="s1")

        turns = store.get_recent_turns(count=10, session_id="s1")
        assert len(turns) == 10
        assert turns[0].content == "question 3"
        assert turns[-1].content == "answer 7"

    def test_recent_turns_count_is_in_exchanges(self, store):
        """Should return count * 2 turns in chronological order."""
        for i in range(4):
            store.add_turn("user", f"q{i}", session_id="s1")
            store.add_turn("assistant", f"a{i}", session_id="s1")

        turns = store.get_recent_turns(count=2, session_id="s1")
        assert [t.content for t in turns] == ["q2", "a2", "q3", "a3"]

    def test_follow_up_replies_stay_with_their_exchange(self, store):
        """Should keep a confirmation reply in the same exchange as the command it answers."""
        store.add_turn("user", "turn on zone 1", session_id="s1")
        store.add_turn("assistant", "Started", session_id="s1")
        store.add_turn("user", "stop all zones", session_id="s1")
        store.add_turn("assistant", "Confirm: Stop all active zones?", session_id="s1")
        store.add_turn("assistant", "✓ Stopped all zones", session_id="s1")

        turns = store.get_recent_turns(count=1, session_id="s1")
        assert [t.role for t in turns] == ["user", "assistant", "assistant"]
        assert turns[0].content == "stop all zones"

    def test_window_trims_whole_exchanges(self):
        store = ConversationStore(max_exchanges=1)
        store.add_turn("user", "first")
        store.add_turn("assistant", "reply")
        store.add_turn("user", "second")
        store.add_turn("assistant", "held")
        store.add_turn("assistant", "done")

        assert [t.content for t in store.get_recent_turns(count=5)] == ["second", "held", "done"]

    def test_sessions_are_isolated(self, store):
        """Should not leak turns between session ids."""
        store.add_turn("user", "mine", session_id="alice")
        store.add_turn("user", "theirs", session_id="bob")

        assert [t.content for t in store.get_recent_turns(session_id="alice")] == ["mine"]
        assert [t.content for t in store.get_recent_turns(session_id="bob")] == ["theirs"]

    def test_missing_session_uses_default(self, store):
        store.add_turn("user", "hello")
        assert store.is_active(DEFAULT_SESSION_ID)
        assert store.get_recent_turns(session_id=DEFAULT_SESSION_ID)[0].content == "hello"


class TestFormatting:
    def test_format_for_context(self, store):
        store.add_turn("user", "Start zone 2", intent="startZone", session_id="s1")
        store.add_turn("assistant", "Started", session_id="s1")

        text = store.format_for_context("s1")
        assert text.splitlines() == [
            "**Recent Conversation History:**",
            "User: Start zone 2",
            "Assistant: Started",
        ]

    def test_format_empty_session(self, store):
        assert store.format_for_context("nobody") == ""


class TestExpiry:
    """Idle sessions are evicted after the timeout."""

    def test_session_evicted_after_timeout(self, store, clock):
        """Should drop a session idle for more than 30 minutes on the next write."""
        store.add_turn("user", "old", session_id="idle")
        clock.advance(minutes=31)
        store.add_turn("user", "new", session_id="other")

        assert not store.is_active("idle")
        assert store.get_stats()["active_sessions"] == 1

    def test_reads_treat_expired_session_as_empty(self, store, clock):
        """Should hide an expired session even before a sweep runs."""
        store.add_turn("user", "old", session_id="idle")
        clock.advance(minutes=31)

        assert store.get_recent_turns(session_id="idle") == []

    def test_late_write_starts_fresh_session(self, store, clock):
        store.add_turn("user", "before", session_id="s1")
        clock.advance(minutes=45)
        store.add_turn("user", "after", session_id="s1")

        assert [t.content for t in store.get_recent_turns(session_id="s1")] == ["after"]

    def test_activity_keeps_session_alive(self, store, clock):
        store.add_turn("user", "one", session_id="s1")
        clock.advance(minutes=20)
        store.add_turn("user", "two", session_id="s1")
        clock.advance(minutes=20)

        assert store.is_active("s1")
        assert len(store.get_recent_turns(session_id="s1")) == 2

    def test_eviction_listeners_notified(self, store, clock):
        evicted = []
        store.add_eviction_listener(evicted.append)
        store.add_turn("user", "x", session_id="s1")
        clock.advance(minutes=31)

        assert store.sweep() == ["s1"]
        assert evicted == ["s1"]


class TestLifecycle:
    def test_clear_session(self, store):
        evicted = []
        store.add_eviction_listener(evicted.append)
        store.add_turn("user", "x", session_id="s1")

        store.clear_session("s1")
        assert not store.is_active("s1")
        assert evicted == ["s1"]

    def test_shutdown_clears_everything(self, store):
        store.add_turn("user", "a", session_id="s1")
        store.add_turn("user", "b", session_id="s2")

        store.shutdown()
        assert store.get_stats() == {"active_sessions": 0, "total_turns": 0}

    def test_from_config(self, settings):
        store = ConversationStore.from_config({"max_exchanges": 2, "session_timeout_minutes": 5})
        for i in range(5):
            store.add_turn("user", str(i))
        assert [t.content for t in store.get_recent_turns(count=10)] == ["3", "4"]
        assert store.session_timeout.total_seconds() == 300
