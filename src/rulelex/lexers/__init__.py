"""Bundled lexers. Importing this package registers them."""

from __future__ import annotations

from rulelex.lexers.terraform import TERRAFORM

__all__ = ["TERRAFORM"]
