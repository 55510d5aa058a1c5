"""
PEScope Shared Module
=====================

Configuration, structured logging and console presentation shared by the
PEScope engine, its output renderers and the command-line interface.
"""

from shared.config import ScopeConfig, get_config

__all__ = ["ScopeConfig", "get_config"]
