"""
                Snappy Serve Cafe

Ordering backend shared by a customer app and a kitchen dashboard: order
lifecycle, bill generation, menu, daily reports and the polling clients
that keep both views in sync.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
