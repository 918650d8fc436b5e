"""
Xray Shared Module
==================

Configuration, logging and console plumbing used by the Xray engine and
command line.
"""

from shared.config import XrayConfig
from shared.console import ToolConsole
from shared.logger import ToolLogger

__all__ = ["XrayConfig", "ToolConsole", "ToolLogger"]
