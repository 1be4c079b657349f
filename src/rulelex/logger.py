"""Logging helpers.

The library never installs handlers; applications (and the CLI's
``--verbose`` flag) decide where records go.
"""

from __future__ import annotations

import logging


def get_logger(name: str) -> logging.Logger:
    """Return a standard library logger namespaced under ``rulelex.``."""
    if not (name == "rulelex" or name.startswith("rulelex.")):
        name = f"rulelex.{name}"
    return logging.getLogger(name)
