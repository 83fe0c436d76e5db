import pytest

import config
import notify
import sheets


@pytest.fixture
def settings(monkeypatch):
    cfg = config.Settings(
        sheet_id="sheet-123",
        apps_script_url="https://script.example/exec",
        telegram_bot_token="123456:ABC",
        telegram_chat_id="-100200",
    )
    monkeypatch.setattr(config, "settings", cfg)
    return cfg


@pytest.fixture
def ledger(monkeypatch):
    """Fake Balance sheet + Apps Script webhook."""

    class Ledger:
        rows = [["S", "10"], ["M", "5"], ["L", "4"], ["XL", "3"], ["XXL", "2"], ["Black", "3"], ["Beige", "1"]]
        read_error = None
        reads = 0
        posts = []
        status = 200
        reply = "OK"
        post_error = None

    state = Ledger()
    state.posts = []

    def fake_fetch_rows(cfg):
        state.reads += 1
        if state.read_error is not None:
            raise state.read_error
        return state.rows

    async def fake_post_json(url, payload, timeout):
        state.posts.append((url, payload))
        if state.post_error is not None:
            raise state.post_error
        return state.status, state.reply

    monkeypatch.setattr(sheets, "_fetch_rows", fake_fetch_rows)
    monkeypatch.setattr(sheets, "_post_json", fake_post_json)
    return state


@pytest.fixture
def telegram(monkeypatch):
    """Replaces aiogram's Bot; collects sent messages."""

    class FakeSession:
        closed = False

        async def close(self):
            FakeSession.closed = True

    class FakeBot:
        sent = []
        error = None

        def __init__(self, token):
            self.token = token
            self.session = FakeSession()

        async def send_message(self, chat_id, text, **kwargs):
            if FakeBot.error is not None:
                raise FakeBot.error
            FakeBot.sent.append({"chat_id": chat_id, "text": text, **kwargs})

    FakeBot.sent = []
    FakeBot.error = None
    FakeSession.closed = False
    FakeBot.Session = FakeSession
    monkeypatch.setattr(notify, "Bot", FakeBot)
    return FakeBot
