"""
progress.py

The one persisted key/value record: which playlist was open last and which
video in it was current.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, Optional

from tubeshelf.env.paths import progress_record_file
from tubeshelf.logger import get_logger
from tubeshelf.sync.models import PlaylistItem

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressRecord:
    playlist_id: Optional[str] = None
    video_id: Optional[str] = None


class ProgressStore:
    def __init__(self, path: Optional[Path] = None):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or progress_record_file()

    def load(self) -> ProgressRecord:
        path = self.path
        if not path.exists():
            return ProgressRecord()

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable progress record {path}: {e}")
            return ProgressRecord()

        if not isinstance(data, dict):
            return ProgressRecord()

        def _str(key: str) -> Optional[str]:
            value = data.get(key)
            return value if isinstance(value, str) and value else None

        return ProgressRecord(playlist_id=_str("playlist_id"), video_id=_str("video_id"))

    def save(self, record: ProgressRecord) -> None:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(asdict(record), indent=2), encoding="utf-8")
        os.replace(tmp, path)
        logger.debug(f"progress.saved playlist={record.playlist_id} video={record.video_id}")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def choose_current_video(
    items: Iterable[PlaylistItem],
    provided: Optional[str] = None,
    previous: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the video to treat as current.

    An explicitly provided id wins if it is in the playlist, then the
    remembered one, then the first available item.
    """
    available = [i.video_id for i in items if i.is_available]
    for candidate in (provided, previous):
        if candidate and candidate in available:
            return candidate
    return available[0] if available else None
