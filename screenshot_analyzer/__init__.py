"""
Screenshot Analyzer: AI summaries and classification for phone and desktop
screenshots, with optional Telegram notifications.
"""

__version__ = "0.1.0"
