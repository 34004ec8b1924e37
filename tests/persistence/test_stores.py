"""Tests for the credential store and portfolio store."""

import os
import stat
import threading

import pytest

from holdings_sync.broker.models import AuthSession, BrokerId, Holding, InstrumentType
from holdings_sync.persistence.credential_store import (
    InMemoryCredentialStore,
    JsonFileCredentialStore,
    access_token_key,
    refresh_token_key,
)
from holdings_sync.persistence.data_provider import StorageError


class TestCredentialStore:
    """Tests for CredentialStore implementations."""

    def test_keys(self):
        """Token keys follow "<broker>-access-token"."""
        assert access_token_key(BrokerId.UPSTOX) == "upstox-access-token"
        assert refresh_token_key("FYERS") == "fyers-refresh-token"

    def test_save_session(self):
        """save_session() stores both tokens and drops a stale refresh token."""
        store = InMemoryCredentialStore({"upstox-refresh-token": "old"})

        store.save_session(BrokerId.UPSTOX, AuthSession("a1", "r1"))
        assert store.get_access_token("upstox") == "a1"
        assert store.get_refresh_token("upstox") == "r1"

        store.save_session(BrokerId.UPSTOX, AuthSession("a2"))
        assert store.get_access_token("upstox") == "a2"
        assert store.get_refresh_token("upstox") is None

    def test_clear(self):
        """clear() forgets every token of one broker only."""
        store = InMemoryCredentialStore({
            "upstox-access-token": "a",
            "upstox-refresh-token": "r",
            "fyers-access-token": "f",
        })
        store.clear("upstox")
        assert store.get_access_token("upstox") is None
        assert store.get_refresh_token("upstox") is None
        assert store.get_access_token("fyers") == "f"

    def test_json_file_store(self, tmp_path):
        """JsonFileCredentialStore persists tokens in an owner-only file."""
        path = tmp_path / "creds" / "credentials.json"
        store = JsonFileCredentialStore(str(path))

        store.set("fyers-access-token", "tok")
        assert JsonFileCredentialStore(str(path)).get("fyers-access-token") == "tok"
        if os.name == "posix":
            assert stat.S_IMODE(path.stat().st_mode) == 0o600

        store.remove("fyers-access-token")
        assert store.get("fyers-access-token") is None
        store.remove("missing")

    def test_json_file_store_corrupt(self, tmp_path):
        """A corrupt file reads as empty."""
        path = tmp_path / "credentials.json"
        path.write_text("[]", encoding="utf-8")
        assert JsonFileCredentialStore(str(path)).get("anything") is None


class TestPortfolioStore:
    """Tests for PortfolioStore."""

    def test_load_empty(self, portfolio_store):
        """load() on an empty provider yields default connections."""
        data = portfolio_store.load()
        assert data.holdings == []
        assert len(data.brokers) == 3

    def test_update_saves(self, portfolio_store, data_provider, manual_holding):
        """update() saves the modified document."""
        with portfolio_store.update() as data:
            data.holdings = [manual_holding]

        assert data_provider.save_count == 1
        assert portfolio_store.load().holdings == [manual_holding]

    def test_update_does_not_save_on_error(self, portfolio_store, data_provider, manual_holding):
        """update() saves nothing when the block raises."""
        with pytest.raises(RuntimeError):
            with portfolio_store.update() as data:
                data.holdings = [manual_holding]
                raise RuntimeError("boom")

        assert data_provider.save_count == 0
        assert portfolio_store.load().holdings == []

    def test_concurrent_updates_are_serialized(self, portfolio_store):
        """Concurrent read-modify-write cycles never lose an update."""
        def add(i):
            with portfolio_store.update() as data:
                holding = Holding(
                    name=f"H{i}",
                    instrument_type=InstrumentType.STOCK,
                    quantity=1,
                    average_price=1,
                    current_price=1,
                )
                data.holdings = data.holdings + [holding]

        threads = [threading.Thread(target=add, args=(i,)) for i in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(portfolio_store.load().holdings) == 10

    def test_failed_save_is_logged(self, portfolio_store, data_provider, caplog):
        """A provider that cannot save is reported, not raised."""
        data_provider.fail_saves = True
        with portfolio_store.update() as data:
            data.extra["note"] = "x"
        assert "could not be persisted" in caplog.text

    def test_update_aborts_when_read_fails(self, portfolio_store, data_provider, manual_holding):
        """A failed read never starts an empty document over the stored one."""
        with portfolio_store.update() as data:
            data.holdings = [manual_holding]
            data.extra["transactions"] = [{"id": "t1"}]
        data_provider.fail_reads = True

        with pytest.raises(StorageError):
            with portfolio_store.update() as data:
                data.holdings = []

        assert data_provider.save_count == 1
        assert portfolio_store.load().holdings == []
        data_provider.fail_reads = False
        stored = portfolio_store.load()
        assert stored.holdings == [manual_holding]
        assert stored.extra["transactions"] == [{"id": "t1"}]
