"""Module 7 — Item Resolver: local download or network stream → PlayerItem"""
import logging

from .errors import MissingAttribute
from .models import PlayerItem, PlaylistEntry

logger = logging.getLogger(__name__)


class ItemResolver:
    def __init__(self, videos):
        """videos: anything with `async get_video_stream(video_identifier) -> VideoStream`."""
        self.videos = videos

    async def resolve(self, entry: PlaylistEntry) -> PlayerItem:
        """Raises MissingAttribute or StreamResolutionError."""
        content = entry.content

        # Completed download wins — no network needed
        local = entry.download.playable_path if entry.download else None
        if local is not None:
            logger.debug("Resolved %s to local file %s", content.id, local)
            return PlayerItem(
                content_id=content.id,
                url=str(local),
                duration=content.duration,
                local=True,
                title=content.title,
            )

        if content.video_identifier is None:
            raise MissingAttribute("videoIdentifier")

        stream = await self.videos.get_video_stream(content.video_identifier)
        if stream.kind != "stream":
            raise MissingAttribute("Not A Stream")

        logger.debug("Resolved %s to stream %s", content.id, stream.url)
        return PlayerItem(
            content_id=content.id,
            url=stream.url,
            duration=content.duration,
            title=content.title,
        )
