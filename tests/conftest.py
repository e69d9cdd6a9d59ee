"""Pytest configuration and fixtures."""

from datetime import datetime

import pytest

from leilao_tracker.config import AppConfig, EmailConfig
from leilao_tracker.models import Fonte, Property


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for the urgency factor."""
    return datetime(2026, 1, 10, 12, 0)


@pytest.fixture
def make_property():
    """Factory for Property records with sensible defaults."""

    def _make(record_id: str = "caixa-1", fonte: str = Fonte.CAIXA.value, **overrides) -> Property:
        data = {
            "id": record_id,
            "fonte": fonte,
            "link": f"https://example.com/{record_id}",
            "tipo": "Apartamento",
            "bairro": "Batel",
            "endereco": "Rua A 123",
            "lance": 300000.0,
            "fontes": [fonte],
            "ids_origem": [record_id],
        }
        data.update(overrides)
        return Property(**data)

    return _make


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """App config writing into a temporary data directory, without delays."""
    return AppConfig(
        data_dir=str(tmp_path / "data"),
        request_delay=0,
        detail_delay=0,
    )


@pytest.fixture
def email_config() -> EmailConfig:
    """Enabled SMTP configuration (never actually connects in tests)."""
    return EmailConfig(
        smtp_host="smtp.test.local",
        smtp_port=587,
        smtp_user="bot@test.local",
        smtp_password="secret",
        from_email="bot@test.local",
        from_name="Leilão Tracker",
        to_email="me@test.local",
    )
