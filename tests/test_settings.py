"""Tests for configuration and store wiring."""

import pytest
from pydantic import ValidationError

from split_tracker.config import AppSettings, EmailJSSettings, SplitSettings, get_settings
from split_tracker.orchestrator import SplitExpenseStore, create_split_store
from split_tracker.services.storage import InMemoryDocumentStore

EMAILJS_VARS = ("EMAILJS_SERVICE_ID", "EMAILJS_SPLIT_TEMPLATE_ID", "EMAILJS_PUBLIC_KEY")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No EmailJS configuration and no .env file in reach."""
    for name in EMAILJS_VARS + ("STORAGE_BACKEND",):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSplitSettings:

    def test_defaults(self, clean_env):
        settings = SplitSettings()
        assert settings.share_tolerance == 0.01
        assert settings.notification_delay_seconds == 1.0
        assert settings.notification_error_delay_seconds == 0.5
        assert settings.email_status_clear_seconds == 10.0
        assert settings.currency_symbol == "$"

    def test_environment_override(self, clean_env, monkeypatch):
        monkeypatch.setenv("SPLIT_NOTIFICATION_DELAY_SECONDS", "2.5")
        assert SplitSettings().notification_delay_seconds == 2.5

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError):
            SplitSettings(notification_delay_seconds=-1)


class TestOtherSettings:

    def test_emailjs_requires_keys(self, clean_env):
        with pytest.raises(ValidationError):
            EmailJSSettings()

    def test_storage_backend_validated(self, clean_env):
        assert AppSettings().storage_backend == "memory"
        with pytest.raises(ValidationError):
            AppSettings(storage_backend="postgres")


class TestCreateSplitStore:

    async def test_memory_backend_without_emailjs(self, clean_env, user):
        """Missing EmailJS configuration disables notifications."""
        store = create_split_store(user=user)

        assert isinstance(store, SplitExpenseStore)
        assert isinstance(store._store, InMemoryDocumentStore)
        assert store._dispatcher is None

        store.start()
        split = await store.create_new_split_expense(
            {"amount": "20", "description": "Taxi"},
            [{"name": "Alice", "email": "alice@example.com"}, {"name": "Bob", "email": "bob@example.com"}],
        )
        assert split is not None
        assert await store.send_payment_reminder(split.id, split.participants[1].id) is False
        await store.close()

    async def test_emailjs_configured(self, clean_env, monkeypatch, user):
        monkeypatch.setenv("EMAILJS_SERVICE_ID", "svc")
        monkeypatch.setenv("EMAILJS_SPLIT_TEMPLATE_ID", "tpl")
        monkeypatch.setenv("EMAILJS_PUBLIC_KEY", "key")

        store = create_split_store(user=user)
        assert store._dispatcher is not None

    async def test_notifications_can_be_turned_off(self, clean_env, monkeypatch):
        monkeypatch.setenv("EMAILJS_SERVICE_ID", "svc")
        monkeypatch.setenv("EMAILJS_SPLIT_TEMPLATE_ID", "tpl")
        monkeypatch.setenv("EMAILJS_PUBLIC_KEY", "key")

        assert create_split_store(use_notifications=False)._dispatcher is None
