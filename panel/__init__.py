"""
Browser-hosted panel: channel, lifecycle and servers
"""

from .channel import Disposable, PanelChannel, WebSocketPanelChannel
from .html import render_panel_html
from .lifecycle import FunctionTesterPanel, PanelHost
from .server import PanelServer

__all__ = [
    "Disposable",
    "FunctionTesterPanel",
    "PanelChannel",
    "PanelHost",
    "PanelServer",
    "WebSocketPanelChannel",
    "render_panel_html",
]
