"""
External capabilities used by the pipeline.

Interfaces live in ``base``; adapters:
- generators: Claude / Gemini structured JSON generation
- veo_renderer: Veo text-to-video
- youtube_publisher: YouTube upload and a simulated publisher
- youtube_trends: YouTube Data API trend search and the mock dataset
- channel_store: Supabase and in-memory channel records
"""

from trendreel.capabilities.base import (
    ChannelStore,
    PublishReceipt,
    Publisher,
    RenderPollResult,
    StructuredGenerator,
    TrendSource,
    VideoRenderer,
)

__all__ = [
    "ChannelStore",
    "PublishReceipt",
    "Publisher",
    "RenderPollResult",
    "StructuredGenerator",
    "TrendSource",
    "VideoRenderer",
]
