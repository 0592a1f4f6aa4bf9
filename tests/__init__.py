"""Tests for the semsearch package.

Everything here runs without a database or network: HTTP providers are
exercised through ``httpx.MockTransport``, the pgvector store through a fake
asyncpg pool, and the orchestrator through the in-memory and scripted stores.
"""
