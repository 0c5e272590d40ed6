"""
Centralized AWS client factory with lazy initialization.

Defers boto3 client creation until first use so handlers that never touch
Secrets Manager (local runs with plain env secrets) pay nothing for it.
"""

_secretsmanager = None


def get_secretsmanager():
    """Get Secrets Manager client, creating it lazily on first use."""
    global _secretsmanager
    if _secretsmanager is None:
        import boto3
        _secretsmanager = boto3.client("secretsmanager")
    return _secretsmanager


def reset_clients():
    """Reset all cached clients. Used in tests for clean state."""
    global _secretsmanager
    _secretsmanager = None
