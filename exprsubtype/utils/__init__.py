"""Shared utilities."""

from .cancellation import CancellationToken, check_cancelled

__all__ = ['CancellationToken', 'check_cancelled']
