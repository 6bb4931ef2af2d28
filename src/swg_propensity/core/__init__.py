"""Core event pipeline: taxonomy, event manager, scoring and the propensity client.

This module has no dependency on how the host page is bootstrapped; the
publisher API and the CLI both build on it.
"""
