"""Tests for settings and structured logging."""

import json
import logging
import sys
import warnings

import pytest
from pydantic import ValidationError

from gaius_engine.common.config import GaiusSettings
from gaius_engine.common.logging import JSONFormatter, setup_logging


class TestGaiusSettings:
    def test_defaults(self):
        s = GaiusSettings()
        assert s.network == "testnet"
        assert s.subscription_days == 30
        assert s.confirmation_rounds == 4
        assert s.algod_url == "https://testnet-api.algonode.cloud"
        assert s.explorer_url.endswith("/testnet")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("GAIUS_NETWORK", "mainnet")
        monkeypatch.setenv("GAIUS_SUBSCRIPTION_DAYS", "7")
        s = GaiusSettings()
        assert s.algod_url == "https://mainnet-api.algonode.cloud"
        assert s.subscription_days == 7

    def test_custom_algod_server(self):
        s = GaiusSettings(algod_server="http://localhost:4001/")
        assert s.algod_url == "http://localhost:4001"
        assert s.indexer_url == "https://testnet-idx.algonode.cloud"

    def test_unknown_network(self):
        with pytest.raises(ValueError, match="Unknown network"):
            GaiusSettings(network="betanet").algod_url

    def test_production_rejects_insecure_key(self, receiver):
        s = GaiusSettings(environment="production", subscription_wallet=receiver)
        with pytest.raises(RuntimeError, match="GAIUS_API_KEY"):
            s.validate_for_production()

    def test_rejects_bad_wallet(self):
        with pytest.raises(ValidationError, match="GAIUS_SUBSCRIPTION_WALLET"):
            GaiusSettings(subscription_wallet="nope")

    def test_rejects_bad_wallet_from_env(self, monkeypatch):
        monkeypatch.setenv("GAIUS_SUBSCRIPTION_WALLET", "A" * 58)
        with pytest.raises(ValidationError):
            GaiusSettings()

    @pytest.mark.parametrize("rounds", [0, -1])
    def test_rejects_non_positive_confirmation_rounds(self, rounds):
        with pytest.raises(ValidationError, match="confirmation_rounds"):
            GaiusSettings(confirmation_rounds=rounds)

    def test_development_warns(self):
        with pytest.warns(UserWarning, match="insecure default"):
            GaiusSettings().validate_for_production()

    def test_production_ok(self, receiver):
        s = GaiusSettings(environment="production", api_key="k" * 32, subscription_wallet=receiver)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            s.validate_for_production()


class TestJSONFormatter:
    def _record(self, **extra):
        record = logging.LogRecord(
            "gaius_engine.payments", logging.WARNING, __file__, 1, "Payment %s", ("failed",), None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(self._record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "gaius_engine.payments"
        assert entry["message"] == "Payment failed"
        assert "timestamp" in entry

    def test_extra_fields(self):
        entry = json.loads(JSONFormatter().format(self._record(wallet="W", tx_id="TX1", stage="Confirming")))
        assert entry["wallet"] == "W"
        assert entry["tx_id"] == "TX1"
        assert entry["stage"] == "Confirming"
        assert "args" not in entry

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "oops", None, sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


def test_setup_logging():
    setup_logging("debug")
    logger = logging.getLogger("gaius_engine")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    assert logger.propagate is False
