"""
TrendReel - trend-to-Short video pipeline.

Turns recent short-form trend data into a scheduled vertical video upload
through six strictly ordered stages.
"""

__version__ = "0.1.0"
