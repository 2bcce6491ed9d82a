"""Operator registry adapter for the Agence Bio notifications portal."""

from __future__ import annotations

from .client import AgenceBioAPIError, AgenceBioClient
from .schema import AgenceBioOperateur

__all__ = ["AgenceBioAPIError", "AgenceBioClient", "AgenceBioOperateur"]
