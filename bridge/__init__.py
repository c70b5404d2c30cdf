"""
Bridge package - localhost HTTP link to the browser extension.
"""

from bridge.server import BridgeServer
from bridge.tabs import BrowserTabs

__all__ = ["BridgeServer", "BrowserTabs"]
