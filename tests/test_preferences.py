from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from portal.utils.preferences import (
    MAX_NOTIFICATIONS,
    UiState,
    add_notification,
    load_state,
    mark_all_read,
    mark_read,
    remove_notification,
    save_state,
    set_sidebar_open,
    set_widget_visible,
    toggle_sidebar,
    toggle_theme,
    unread_count,
)


@pytest.fixture
def prefs_path(monkeypatch, tmp_path):
    monkeypatch.setenv("PORTAL_DATA_DIR", str(tmp_path))
    return tmp_path / "preferences.json"


class TestReducers:
    def test_defaults(self):
        state = UiState()
        assert state.theme == "light"
        assert state.sidebar_open is True
        assert state.sidebar_collapsed is False
        assert state.widget_visible("stats") is True
        assert state.widget_visible("overdue_guides") is False
        assert state.notifications == ()

    def test_toggle_theme(self):
        state = toggle_theme(UiState())
        assert state.theme == "dark"
        assert toggle_theme(state).theme == "light"

    def test_sidebar(self):
        state = toggle_sidebar(UiState())
        assert state.sidebar_collapsed is True
        assert state.sidebar_open is True
        assert set_sidebar_open(state, False).sidebar_open is False

    def test_widget_visibility(self):
        state = set_widget_visible(UiState(), "overdue_guides", True)
        assert state.widget_visible("overdue_guides") is True
        assert state.widget_visible("stats") is True

    def test_unknown_widget_hidden(self):
        assert UiState().widget_visible("weather") is False

    def test_reducers_do_not_mutate(self):
        state = UiState()
        toggle_theme(state)
        add_notification(state, "x")
        assert state == UiState()


class TestNotifications:
    def test_add_prepends_unread(self):
        now = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
        state = add_notification(UiState(), "Primeira", now=now)
        state = add_notification(state, "Segunda", "detalhe", "success", now=now)
        assert [n.title for n in state.notifications] == ["Segunda", "Primeira"]
        assert state.notifications[0].type == "success"
        assert state.notifications[0].read is False
        assert state.notifications[0].created_at == now.isoformat()
        assert state.notifications[0].id != state.notifications[1].id
        assert unread_count(state) == 2

    def test_capped(self):
        state = UiState()
        for i in range(MAX_NOTIFICATIONS + 5):
            state = add_notification(state, f"n{i}")
        assert len(state.notifications) == MAX_NOTIFICATIONS
        assert state.notifications[0].title == f"n{MAX_NOTIFICATIONS + 4}"

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            add_notification(UiState(), "x", type="fatal")

    def test_mark_read(self):
        state = add_notification(add_notification(UiState(), "a"), "b")
        target = state.notifications[1].id
        state = mark_read(state, target)
        assert unread_count(state) == 1
        assert state.notifications[1].read is True

    def test_mark_all_read(self):
        state = add_notification(add_notification(UiState(), "a"), "b")
        assert unread_count(mark_all_read(state)) == 0

    def test_remove(self):
        state = add_notification(add_notification(UiState(), "a"), "b")
        state = remove_notification(state, state.notifications[0].id)
        assert [n.title for n in state.notifications] == ["a"]


class TestPersistence:
    def test_missing_file_gives_defaults(self, prefs_path):
        assert load_state() == UiState()

    def test_save_and_load(self, prefs_path):
        state = add_notification(toggle_theme(UiState()), "Nota emitida", type="success")
        state = set_widget_visible(state, "stats", False)
        save_state(state)
        loaded = load_state()
        assert loaded == state
        assert json.loads(prefs_path.read_text())["theme"] == "dark"

    def test_no_tmp_file_left(self, prefs_path):
        save_state(UiState())
        assert not prefs_path.with_suffix(".tmp").exists()

    def test_corrupt_file_backed_up(self, prefs_path):
        prefs_path.write_text("{not json")
        assert load_state() == UiState()
        assert not prefs_path.exists()
        backups = list(prefs_path.parent.glob("preferences.json.corrupt.*"))
        assert len(backups) == 1
        assert backups[0].read_text() == "{not json"

    def test_non_object_root_backed_up(self, prefs_path):
        prefs_path.write_text("[1, 2]")
        assert load_state() == UiState()
        assert list(prefs_path.parent.glob("preferences.json.corrupt.*"))

    @pytest.mark.parametrize(
        "data",
        [{"widgets": ["stats"]}, {"notifications": {"id": "a"}}, {"widgets": "stats"}],
    )
    def test_wrong_section_types_backed_up(self, prefs_path, data):
        prefs_path.write_text(json.dumps(data))
        assert load_state() == UiState()
        assert list(prefs_path.parent.glob("preferences.json.corrupt.*"))

    def test_unknown_values_fall_back(self, prefs_path):
        prefs_path.write_text(
            json.dumps(
                {
                    "theme": "neon",
                    "widgets": {"stats": False},
                    "notifications": [{"title": "sem id"}, "a", {"id": "a", "title": "ok"}],
                }
            )
        )
        state = load_state()
        assert state.theme == "light"
        assert state.widget_visible("stats") is False
        assert state.widget_visible("recent_invoices") is True
        assert [n.id for n in state.notifications] == ["a"]
