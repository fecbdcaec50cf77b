"""Tests for the command line entry point."""
from datetime import datetime

import pytest

from src import app, settings
from src.content_cache import ContentCache
from src.gemini_client import GeneratedEmail, Signature
from src.queue.json_queue import JsonQueueStore
from src.queue.models import QueueStatus

from conftest import make_item


@pytest.fixture
def configured(monkeypatch, queue_path):
    monkeypatch.setattr(settings, "QUEUE_FILE", queue_path)
    monkeypatch.setattr(settings, "DRY_RUN", True)
    monkeypatch.setattr(app.signal, "signal", lambda *args: None)
    return queue_path


class TestCommands:
    def test_approve(self, configured) -> None:
        store = JsonQueueStore(configured)
        store.write_all([make_item(status=QueueStatus.DRAFT)])

        app.main(["approve"])

        assert store.read_all()[0].status == QueueStatus.QUEUED

    def test_status(self, configured) -> None:
        JsonQueueStore(configured).write_all([make_item(status=QueueStatus.ERROR)])
        assert app.status(JsonQueueStore(configured))["error"] == 1
        app.main(["status"])

    def test_corrupt_store_exits(self, configured) -> None:
        configured.write_text("not json")
        with pytest.raises(SystemExit) as exc:
            app.main(["approve"])
        assert exc.value.code == 1

    def test_worker_critical_failure_exit_code(self, configured) -> None:
        configured.write_text("not json")
        with pytest.raises(SystemExit) as exc:
            app.main(["worker"])
        assert exc.value.code == 2

    def test_worker_configuration_error(self, configured, monkeypatch) -> None:
        monkeypatch.setattr(settings, "DRY_RUN", False)
        monkeypatch.setattr(settings, "SENDER_EMAIL", "")
        with pytest.raises(SystemExit) as exc:
            app.main(["worker"])
        assert exc.value.code == 1


class FakeClient:
    """Stands in for GeminiClient when driving the CLI."""

    instances = []

    def __init__(self, cache=None, **kwargs):
        self.cache = cache
        self.prompts = []
        FakeClient.instances.append(self)

    def generate_email(self, email, name="", company="", prompt_template="", signature=None):
        self.prompts.append(prompt_template)
        footer = signature.to_html() if signature else ""
        return GeneratedEmail(subject=f"Hello {name or email}", body=f"<p>{company}</p>{footer}")

    def extract_signature(self, resume_text=None):
        return Signature(name="Alex Roe", role="Engineer")

    def suggest_prompt(self, resume_text=None):
        return "Write to {{inferredName}} at {{inferredCompany}}. {{resumeText}}"


@pytest.fixture
def fake_client(monkeypatch):
    FakeClient.instances = []
    monkeypatch.setattr(app, "GeminiClient", FakeClient)
    monkeypatch.setattr(settings, "GENERATION_DELAY_SECONDS", 0)
    return FakeClient


@pytest.fixture
def contacts(tmp_path):
    path = tmp_path / "contacts.csv"
    path.write_text(
        "Email,Name,Company\n"
        "ann@acme.io,Ann,Acme\n"
        ",Nobody,Void\n"
        "bob@initech.com,,\n"
    )
    return path


class TestEnqueueCommand:
    def test_creates_drafts_from_csv(self, configured, fake_client, contacts) -> None:
        app.main(["enqueue", str(contacts), "--start-date", "2030-01-07",
                  "--window-start", "10:00", "--window-end", "12:00", "--daily-limit", "2"])

        items = JsonQueueStore(configured).read_all()
        assert [i.recipient for i in items] == ["ann@acme.io", "bob@initech.com"]
        assert all(i.status == QueueStatus.DRAFT for i in items)
        assert items[0].subject == "Hello Ann"
        assert items[0].company == "Acme"

        slots = [datetime.fromtimestamp(i.send_at / 1000) for i in items]
        # 2030-01-07 is a Monday; row 2 had no email so its 11:00 slot stays unused
        assert slots[0] == datetime(2030, 1, 7, 10, 0)
        assert slots[1] == datetime(2030, 1, 8, 10, 0)
        assert isinstance(fake_client.instances[0].cache, ContentCache)

    def test_prompt_file_and_signature(self, configured, fake_client, contacts, tmp_path) -> None:
        prompt = tmp_path / "prompt.txt"
        prompt.write_text("Custom {{inferredName}}")

        app.main(["enqueue", str(contacts), "--start-date", "2030-01-07",
                  "--prompt-file", str(prompt), "--with-signature"])

        assert fake_client.instances[0].prompts == ["Custom {{inferredName}}"] * 2
        assert "<strong>Alex Roe</strong>" in JsonQueueStore(configured).read_all()[0].body

    def test_invalid_daily_limit_exits(self, configured, fake_client, contacts) -> None:
        with pytest.raises(SystemExit) as exc:
            app.main(["enqueue", str(contacts), "--daily-limit", "0"])
        assert exc.value.code == 1
        assert not configured.exists()

    def test_missing_csv_exits(self, configured, fake_client, tmp_path) -> None:
        with pytest.raises(SystemExit) as exc:
            app.main(["enqueue", str(tmp_path / "absent.csv")])
        assert exc.value.code == 1

    def test_read_rows_normalises_headers(self, contacts) -> None:
        rows = app.read_rows(contacts)
        assert rows[0] == {"email": "ann@acme.io", "name": "Ann", "company": "Acme"}


class TestProfileCommand:
    def test_writes_suggested_prompt(self, configured, fake_client, tmp_path) -> None:
        out = tmp_path / "prompt.txt"

        app.main(["profile", "--prompt-out", str(out)])

        assert "{{inferredName}}" in out.read_text()
