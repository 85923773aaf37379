"""Selector mining pipeline.

Targets are reconciled against the cross-run cache and the per-run ledger;
whatever is still unknown is handed to an external search worker, one target
at a time or as a single batch invocation. Every result is re-hashed before
it is accepted and persisted before the next search starts.
"""
