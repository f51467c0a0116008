"""Sync services.

Services contain the mirroring logic and are called by routes and scripts:
platform clients, payload translators, the upsert store and the orchestrator
that ties them together. Dependencies are passed in explicitly.
"""
