"""CLI sub-command groups, registered by ``wslstack.main``."""
