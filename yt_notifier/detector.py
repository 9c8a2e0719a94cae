"""
Change detection for channel feeds.

Turns the latest feed entry and the stored last-seen id into a decision:
either nothing to do, or a notification message plus the id to commit
once it has been delivered. Everything here is free of I/O.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

VIDEO_URL_TEMPLATE = "https://youtu.be/{item_id}"

# feedparser flattens <yt:liveBroadcastContent> to this key
LIVE_STATUS_KEYS = ("yt_livebroadcastcontent", "yt:liveBroadcastContent")


class LiveStatus(enum.Enum):
    """Broadcast state of a feed item."""

    LIVE = "live"
    UPCOMING = "upcoming"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> "LiveStatus":
        """Map a raw marker to a status; unknown or missing values are NONE."""
        if isinstance(value, str):
            try:
                return cls(value.strip())
            except ValueError:
                pass
        return cls.NONE


MESSAGE_TEMPLATES = {
    LiveStatus.LIVE: "*|| {ping} || A livestream just started!* {url}",
    LiveStatus.UPCOMING: "*|| {ping} || Upcoming livestream scheduled!* {url}",
    LiveStatus.NONE: "*|| {ping} || A new video is live!* {url}",
}


def extract_item_id(composite: str | None) -> str:
    """
    Extract the video id from a composite entry id.

    ``"yt:video:abc"`` gives ``"abc"``. A missing or empty composite gives
    the empty string, which is compared like any other id.

    Parameters
    ----------
    composite : str | None
        Raw entry identifier.

    Returns
    -------
    str
        The final colon-delimited segment.
    """
    return (composite or "").split(":")[-1]


@dataclass(frozen=True)
class FeedItem:
    """
    Latest entry of a channel feed.

    Attributes
    ----------
    item_id : str
        Video id extracted from the entry id.
    title : str
        Entry title.
    live_status : LiveStatus
        Broadcast state of the video.
    """

    item_id: str
    title: str = ""
    live_status: LiveStatus = LiveStatus.NONE

    @classmethod
    def from_feedparser(cls, entry: Any) -> "FeedItem":
        """
        Create a FeedItem from a feedparser entry.

        Parameters
        ----------
        entry : Any
            A feedparser entry (dict-like).

        Returns
        -------
        FeedItem
            Normalized item.
        """
        raw_status = None
        for key in LIVE_STATUS_KEYS:
            if entry.get(key):
                raw_status = entry.get(key)
                break

        return cls(
            item_id=extract_item_id(entry.get("id")),
            title=entry.get("title", "") or "",
            live_status=LiveStatus.parse(raw_status),
        )

    @property
    def url(self) -> str:
        """Canonical short URL of the video."""
        return VIDEO_URL_TEMPLATE.format(item_id=self.item_id)


@dataclass(frozen=True)
class NoAction:
    """Nothing to announce."""


@dataclass(frozen=True)
class Notify:
    """
    A notification is due.

    Attributes
    ----------
    message : str
        Text to deliver.
    new_item_id : str
        Id to commit once the message has been delivered.
    """

    message: str
    new_item_id: str


Action = NoAction | Notify


def build_message(item: FeedItem, ping: str) -> str:
    """
    Render the notification text for ``item``.

    Parameters
    ----------
    item : FeedItem
        The newly detected item.
    ping : str
        Mention token, e.g. ``@everyone``.

    Returns
    -------
    str
        Message text selected by the item's live status.
    """
    template = MESSAGE_TEMPLATES.get(item.live_status, MESSAGE_TEMPLATES[LiveStatus.NONE])
    return template.format(ping=ping, url=item.url)


def detect_change(
    latest: FeedItem | None,
    stored_item_id: str | None,
    ping: str = "@everyone",
) -> Action:
    """
    Decide whether ``latest`` must be announced.

    Parameters
    ----------
    latest : FeedItem | None
        Latest feed item, or None if the feed had no entries.
    stored_item_id : str | None
        Last announced id, or None if the channel was never announced.
    ping : str
        Mention token for the message.

    Returns
    -------
    Action
        ``Notify`` when the ids differ, ``NoAction`` otherwise.
    """
    if latest is None:
        return NoAction()

    if stored_item_id is not None and latest.item_id == stored_item_id:
        return NoAction()

    return Notify(message=build_message(latest, ping), new_item_id=latest.item_id)
