"""
Diagnostics dashboard for a Chord node.
"""

from .server import DashboardServer, create_app, serve_dashboard

__all__ = ['DashboardServer', 'create_app', 'serve_dashboard']
