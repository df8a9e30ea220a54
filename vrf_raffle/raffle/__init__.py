"""Raffle domain: state machine, ledger, clock, correlator, payouts and events."""
