"""Operator CLI for eventkb (``python -m src.cli``).

Subcommands ``ingest``, ``ask``, ``end-event``, ``sweep``, ``reconcile`` and
``token`` run against the same services as the API server.
"""
