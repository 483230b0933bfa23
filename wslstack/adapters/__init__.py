"""Adapters — bindings to external processes (shell, package manager, daemons)."""
