from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import AppSettings
from app.services.gains import classification_table, parse_window_bound
from cost_basis.models import Classification, TransactionKind


def test_defaults_match_engine_defaults():
    settings = AppSettings(_env_file=None)
    assert settings.default_cost_basis_method == "FIFO"
    assert settings.snapshot_cost_basis_method == "FIFO"
    assert settings.oversell_policy == "RAISE"
    assert settings.malformed_policy == "SKIP"
    assert settings.long_term_threshold_days == 365


def test_dict_for_logging_masks_database_password():
    settings = AppSettings(_env_file=None, database_url="postgresql+asyncpg://user:secret@db:5432/ledger")
    rendered = settings.dict_for_logging()["database_url"]
    assert "secret" not in rendered
    assert rendered.startswith("postgresql+asyncpg://user:")


def test_unknown_method_is_rejected():
    with pytest.raises(ValidationError):
        AppSettings(_env_file=None, default_cost_basis_method="HIFO")


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_COST_BASIS_METHOD", "LIFO")
    monkeypatch.setenv("KIND_CLASSIFICATION_OVERRIDES", '{"TRANSFER": "IGNORED"}')
    settings = AppSettings(_env_file=None)
    assert settings.default_cost_basis_method == "LIFO"
    table = classification_table(settings)
    assert table[TransactionKind.TRANSFER] is Classification.IGNORED


def test_date_only_window_bounds_cover_the_whole_day():
    start = parse_window_bound("2024-03-01")
    end = parse_window_bound("2024-03-01", end=True)
    assert (start.hour, start.minute) == (0, 0)
    assert (end.hour, end.minute, end.second, end.microsecond) == (23, 59, 59, 999999)
    assert parse_window_bound("2024-03-01T12:30:00Z").hour == 12
    assert parse_window_bound(None) is None
    with pytest.raises(ValueError):
        parse_window_bound("yesterday")
