"""Core sync engine: local store, mutation queue, gateway and orchestrator.

CRITICAL: This package must not depend on any interface module (cli, remote_server).
"""
