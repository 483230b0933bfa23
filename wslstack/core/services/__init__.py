"""
Core services — download, render, supervise, preflight.

Each module is independent and receives what it needs explicitly
(config, runner, downloader); nothing here prints.
"""
