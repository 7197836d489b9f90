"""Sovereign concierge: query understanding and DataVault retrieval orchestration."""

from .config import AppSettings, RetrievalConfig
from .context import ConciergeContext

__all__ = ["AppSettings", "ConciergeContext", "RetrievalConfig"]
