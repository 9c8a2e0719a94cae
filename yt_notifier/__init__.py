"""
YT Notifier - Announce new YouTube videos on webhooks.

A Python application that polls YouTube channel feeds for new videos
and livestreams and posts a notification to a Discord-compatible webhook.
"""

__version__ = "1.0.0"
