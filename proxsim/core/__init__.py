"""Core solver components: configuration, hazards, proxel store, ledger and driver."""
