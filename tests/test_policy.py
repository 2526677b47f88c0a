"""Tests for destination and token-contract allow-listing."""

import logging

import pytest

from tronsigner.policy import (
    ALLOW_ALL,
    Allowlist,
    AllowlistConfig,
    PolicyDimension,
    PolicyGate,
)

from conftest import DEST_A, DEST_B, DEST_C, USDT_CONTRACT, make_settings

OTHER_CONTRACT = "TEkxiTehnzSmSe2XqrBj4w32RUN966rdz8"


class TestAllowlist:
    """Allow-list parsing and membership."""

    def test_unset_is_allow_all(self):
        """Empty or missing configuration permits everything."""
        assert Allowlist.parse(None) is ALLOW_ALL
        assert Allowlist.parse("") is ALLOW_ALL
        assert Allowlist.parse("   ") is ALLOW_ALL
        assert ALLOW_ALL.permits("anything") is True
        assert ALLOW_ALL.is_restricted is False

    def test_parse_comma_separated(self):
        """Entries are split on commas and trimmed."""
        allowlist = Allowlist.parse(f" {DEST_A} ,{DEST_B}")

        assert allowlist.is_restricted is True
        assert len(allowlist) == 2
        assert allowlist.permits(DEST_A)
        assert allowlist.permits(DEST_B)
        assert not allowlist.permits(DEST_C)

    @pytest.mark.parametrize("raw", [",", " , ", ",,,"])
    def test_separators_only_denies_everything(self, raw):
        """A configured list with no entries fails closed."""
        allowlist = Allowlist.parse(raw)

        assert allowlist is not ALLOW_ALL
        assert allowlist.is_restricted is True
        assert len(allowlist) == 0
        assert not allowlist.permits(DEST_A)

    def test_match_is_case_sensitive(self):
        """Membership is exact string match."""
        allowlist = Allowlist.of([DEST_A])

        assert not allowlist.permits(DEST_A.lower())


class TestPolicyGate:
    """Policy decisions on transfers."""

    def test_destination_allowlist(self):
        """With {A, B} configured, A passes and C is denied on destination."""
        gate = PolicyGate(AllowlistConfig(destinations=Allowlist.of([DEST_A, DEST_B])))

        assert gate.check(DEST_A, USDT_CONTRACT).allowed is True

        decision = gate.check(DEST_C, USDT_CONTRACT)
        assert decision.allowed is False
        assert decision.dimension == PolicyDimension.DESTINATION
        assert decision.message == "destination not allowed"

    def test_contract_allowlist(self):
        """Unlisted token contracts are denied on the contract dimension."""
        gate = PolicyGate(AllowlistConfig(contracts=Allowlist.of([USDT_CONTRACT])))

        assert gate.check(DEST_C, USDT_CONTRACT).allowed is True

        decision = gate.check(DEST_C, OTHER_CONTRACT)
        assert decision.allowed is False
        assert decision.dimension == PolicyDimension.CONTRACT
        assert decision.message == "tokenContract not allowed"

    def test_destination_checked_first(self):
        """When both dimensions fail, destination is reported."""
        gate = PolicyGate(
            AllowlistConfig(
                destinations=Allowlist.of([DEST_A]),
                contracts=Allowlist.of([USDT_CONTRACT]),
            )
        )

        assert gate.check(DEST_C, OTHER_CONTRACT).dimension == PolicyDimension.DESTINATION

    def test_unconfigured_allows_everything(self):
        """Default configuration is unrestricted."""
        gate = PolicyGate(AllowlistConfig())

        assert gate.check(DEST_C, OTHER_CONTRACT).allowed is True

    def test_empty_configured_lists_deny(self):
        """Separator-only ALLOW_DEST and ALLOW_TOKEN_CONTRACTS deny every transfer."""
        gate = PolicyGate(
            AllowlistConfig.from_settings(make_settings(allow_dest=",", allow_token_contracts=" , "))
        )

        decision = gate.check(DEST_C, USDT_CONTRACT)

        assert decision.allowed is False
        assert decision.dimension == PolicyDimension.DESTINATION

    def test_empty_contract_list_denies(self):
        """An empty configured contract list denies even with open destinations."""
        gate = PolicyGate(AllowlistConfig(contracts=Allowlist.parse(",")))

        assert gate.check(DEST_C, USDT_CONTRACT).dimension == PolicyDimension.CONTRACT

    def test_startup_log_describes_lists(self, caplog):
        """The gate logs what it enforces and warns about empty lists."""
        with caplog.at_level(logging.INFO, logger="tronsigner.policy"):
            PolicyGate(
                AllowlistConfig(
                    destinations=Allowlist.of([DEST_A, DEST_B]),
                    contracts=Allowlist.parse(","),
                )
            )

        messages = [r.getMessage() for r in caplog.records]
        assert "Policy: destinations=2 allowed contracts=0 allowed" in messages
        assert any(m.startswith("ALLOW_TOKEN_CONTRACTS is set but lists no entries") for m in messages)

    def test_from_settings(self):
        """Allow-lists are read from ALLOW_DEST and ALLOW_TOKEN_CONTRACTS."""
        config = AllowlistConfig.from_settings(
            make_settings(allow_dest=f"{DEST_A},{DEST_B}", allow_token_contracts=USDT_CONTRACT)
        )

        assert config.destinations.permits(DEST_B)
        assert not config.destinations.permits(DEST_C)
        assert config.contracts.permits(USDT_CONTRACT)
        assert not config.contracts.permits(OTHER_CONTRACT)
