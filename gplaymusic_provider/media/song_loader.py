"""
Makes sure the audio file of a track exists in the song directory.
"""

import asyncio
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import aiohttp

from gplaymusic_provider.exceptions import GPlayMusicError, SongLoadError
from gplaymusic_provider.models.config import StreamQuality
from gplaymusic_provider.models.track import Track

if TYPE_CHECKING:
    from gplaymusic_provider.api.auth import SessionManager
    from gplaymusic_provider.api.base import CatalogClient

log = logging.getLogger(__name__)


class SongFileLoader:
    """
    Downloads songs into `<song_dir>/<id>.mp3`.

    Downloads go to a uniquely named temp file next to the target and are
    moved into place with an atomic rename, so readers of the canonical path
    never see a partial file. Two concurrent loads of the same id both
    download; whichever rename lands last wins, which is harmless because a
    track's content does not change.

    The cache deletes files of evicted songs through `delete_local`. Deleting
    a file that is being downloaded at the same moment is an accepted race:
    the cache expiry is far longer than a single download.
    """

    FILE_EXTENSION = "mp3"
    TEMP_SUFFIX = ".tmp"

    def __init__(
        self,
        song_dir: Path,
        client: "CatalogClient",
        session: Optional["SessionManager"] = None,
    ):
        self.song_dir = song_dir
        self._client = client
        self._session = session

    def local_path(self, track_id: str) -> Path:
        return self.song_dir / f"{track_id}.{self.FILE_EXTENSION}"

    def is_local(self, track_id: str) -> bool:
        return self.local_path(track_id).is_file()

    async def ensure_local(self, track: Track, quality: StreamQuality) -> Path:
        """
        Returns the local path of `track`, downloading it first if needed.

        Raises:
            SongLoadError: If the download or the rename failed.
        """
        path = self.local_path(track.id)
        if await asyncio.to_thread(path.is_file):
            return path

        tmp_path = path.with_name(
            f"{path.name}.{uuid.uuid4().hex[:8]}{self.TEMP_SUFFIX}"
        )
        log.debug(f"Downloading '{track.id}' in {quality.name} quality.")
        try:
            if self._session is not None:
                await self._session.run_authorized(
                    lambda: self._client.download(track, quality, tmp_path)
                )
            else:
                await self._client.download(track, quality, tmp_path)
            await asyncio.to_thread(os.replace, tmp_path, path)
        except (
            GPlayMusicError,
            aiohttp.ClientError,
            asyncio.TimeoutError,
            OSError,
        ) as e:
            await asyncio.to_thread(self._remove_quietly, tmp_path)
            raise SongLoadError(
                f"Could not load song '{track.title or track.id}' ({track.id}): {e}"
            ) from e

        return path

    def delete_local(self, track_id: str) -> bool:
        """
        Deletes the file of one song. Failures are logged, never raised.

        Returns:
            True if a file was deleted.
        """
        path = self.local_path(track_id)
        try:
            path.unlink()
            log.debug(f"Deleted song file '{path.name}'.")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            log.warning(f"Failed to delete song file '{path.name}': {e}")
            return False

    def cleanup_temp_files(self) -> int:
        """Removes temp files left behind by interrupted downloads."""
        removed = 0
        for tmp_file in self.song_dir.glob(f"*{self.TEMP_SUFFIX}"):
            if self._remove_quietly(tmp_file):
                removed += 1
        if removed > 0:
            log.debug(f"Removed {removed} stale temp files.")
        return removed

    def purge(self) -> None:
        """Removes the whole song directory."""
        log.info(f"Removing song directory '{self.song_dir}'.")
        try:
            shutil.rmtree(self.song_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning(f"Failed to remove song directory: {e}")

    @staticmethod
    def _remove_quietly(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            log.warning(f"Failed to remove temp file '{path.name}': {e}")
            return False
