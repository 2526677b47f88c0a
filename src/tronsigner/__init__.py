"""TRON transaction signer: authenticated, policy-gated, idempotent TRC20 transfers."""

__version__ = "0.1.0"
