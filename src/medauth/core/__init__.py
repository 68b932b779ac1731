"""Core reconciliation components: codec, ledger model, store, engine, history."""
