"""
Magnet link → playable URLs.

LinkResolver drives a torrent through the unrestrict service:

    submitted ─► polling (bounded) ─► downloaded ─► unrestricting ─► READY
                       │
                       ├─ terminal status ─► FAILED
                       └─ attempts exhausted ─► DEFERRED

A job already known to the service for the same magnet (or the same
info-hash) is reused instead of being submitted again. Waiting goes through an
injected ``sleep`` so tests run instantly.
"""

import base64
import binascii
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import requests

from src.logger import setup_logging, log_function
from .realdebrid import RealDebridClient


logger = setup_logging(logger_name="resolver", log_file="logs/resolver.log")

FINISHED_STATUS = "downloaded"
WAITING_SELECTION_STATUS = "waiting_files_selection"
TERMINAL_FAILURE_STATUSES = frozenset({"error", "dead", "magnet_error", "virus"})
VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm")

_BTIH = re.compile(r"xt=urn:btih:([a-z0-9]+)", re.IGNORECASE)

StatusCallback = Callable[[str, str], None]


class ResolutionStatus(str, Enum):
    READY = "ready"
    DEFERRED = "deferred"
    FAILED = "failed"


@dataclass(frozen=True)
class ResolvedFile:
    """A directly playable file."""

    url: str
    filename: str
    size: Optional[int] = None


@dataclass
class ResolutionResult:
    status: ResolutionStatus
    job_id: Optional[str] = None
    job_status: Optional[str] = None
    files: list[ResolvedFile] = field(default_factory=list)


def info_hash(magnet: str) -> Optional[str]:
    """
    Lowercase hex BitTorrent info-hash of a magnet link.

    Base32 hashes (32 chars) are converted to hex.
    """
    match = _BTIH.search(magnet or "")
    if not match:
        return None
    value = match.group(1)
    if len(value) == 32:
        try:
            return base64.b32decode(value.upper()).hex()
        except (binascii.Error, ValueError):
            return None
    return value.lower()


def is_video_file(filename: Optional[str], url: Optional[str] = None) -> bool:
    """Check the filename's extension, falling back to the URL path."""
    if filename:
        return filename.lower().endswith(VIDEO_EXTENSIONS)
    if url:
        return urlparse(url).path.lower().endswith(VIDEO_EXTENSIONS)
    return False


class LinkResolver:
    """
    Bounded polling state machine over a RealDebridClient.

    Args:
        client: Real-Debrid client (or any object with the same methods)
        max_attempts: Number of status polls before giving up for this pass
        poll_interval: Seconds to wait before each poll
        sleep: Wait function, ``time.sleep`` by default
    """

    def __init__(
        self,
        client: RealDebridClient,
        max_attempts: int = 6,
        poll_interval: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self.sleep = sleep

    def find_existing_job(self, reference: str) -> Optional[dict[str, Any]]:
        """Torrent already on the account for this magnet or its info-hash."""
        try:
            torrents = self.client.list_torrents()
        except requests.RequestException as e:
            logger.warning(f"Could not list existing torrents: {e}")
            return None

        wanted_hash = info_hash(reference)
        for torrent in torrents:
            if torrent.get("magnet") == reference:
                return torrent
            if wanted_hash and (torrent.get("hash") or "").lower() == wanted_hash:
                return torrent
        return None

    def unrestrict_links(self, links: list[str]) -> list[ResolvedFile]:
        """Unrestrict each hoster link and keep the video files."""
        files = []
        for link in links:
            try:
                data = self.client.unrestrict_link(link)
            except requests.RequestException as e:
                logger.error(f"Error unrestricting {link}: {e}")
                continue
            url = (data or {}).get("download")
            if not url:
                continue
            filename = data.get("filename") or ""
            if not is_video_file(filename, url):
                logger.debug(f"Skipping non-video file {filename or url}")
                continue
            files.append(ResolvedFile(url=url, filename=filename, size=data.get("filesize")))
        return files

    def _finish(self, job_id: str, info: dict[str, Any]) -> ResolutionResult:
        files = self.unrestrict_links(info.get("links") or [])
        logger.info(f"Torrent {job_id} resolved to {len(files)} video files")
        return ResolutionResult(
            status=ResolutionStatus.READY,
            job_id=job_id,
            job_status=FINISHED_STATUS,
            files=files,
        )

    def _submit(self, reference: str) -> Optional[str]:
        try:
            job_id = self.client.add_magnet(reference)
        except (requests.RequestException, KeyError, TypeError) as e:
            logger.error(f"Failed to add torrent: {e}")
            return None
        try:
            self.client.select_all_files(job_id)
        except requests.RequestException as e:
            logger.error(f"Failed to select files for torrent {job_id}: {e}")
            return None
        logger.info(f"Submitted torrent {job_id}")
        return job_id

    @log_function(logger_name="resolver")
    def resolve(
        self, reference: str, on_status: Optional[StatusCallback] = None
    ) -> ResolutionResult:
        """
        Resolve a magnet link into playable files.

        Args:
            reference: Magnet link
            on_status: Called with (job_id, status) after every status seen

        Returns:
            ResolutionResult. READY carries the files; DEFERRED means the job
            is still running and should be checked again on a later pass;
            FAILED carries the terminal status when the service reported one.
        """
        existing = self.find_existing_job(reference)
        if existing is not None:
            job_id = existing["id"]
            status = existing.get("status")
            logger.info(f"Reusing torrent {job_id} (status: {status})")
            if on_status:
                on_status(job_id, status)
            if status == FINISHED_STATUS:
                try:
                    info = self.client.torrent_info(job_id)
                except requests.RequestException as e:
                    logger.error(f"Could not fetch torrent {job_id}: {e}")
                    return ResolutionResult(
                        status=ResolutionStatus.DEFERRED, job_id=job_id, job_status=status
                    )
                return self._finish(job_id, info)
            if status in TERMINAL_FAILURE_STATUSES:
                return ResolutionResult(
                    status=ResolutionStatus.FAILED, job_id=job_id, job_status=status
                )
            if status == WAITING_SELECTION_STATUS:
                try:
                    self.client.select_all_files(job_id)
                except requests.RequestException as e:
                    logger.warning(f"Failed to select files for torrent {job_id}: {e}")
        else:
            job_id = self._submit(reference)
            if job_id is None:
                return ResolutionResult(status=ResolutionStatus.FAILED)
            status = None

        for attempt in range(1, self.max_attempts + 1):
            self.sleep(self.poll_interval)
            try:
                info = self.client.torrent_info(job_id)
            except requests.RequestException as e:
                logger.warning(
                    f"Status check {attempt}/{self.max_attempts} for torrent {job_id} failed: {e}"
                )
                continue

            status = info.get("status")
            if on_status:
                on_status(job_id, status)

            if status == FINISHED_STATUS:
                logger.info(f"Torrent {job_id} downloaded")
                return self._finish(job_id, info)
            if status in TERMINAL_FAILURE_STATUSES:
                logger.error(f"Torrent {job_id} failed with status: {status}")
                return ResolutionResult(
                    status=ResolutionStatus.FAILED, job_id=job_id, job_status=status
                )
            logger.info(
                f"Torrent {job_id} status: {status} ({info.get('progress', 'unknown')}%) "
                f"- attempt {attempt}/{self.max_attempts}"
            )

        logger.info(f"Torrent {job_id} still {status}, will retry on a later pass")
        return ResolutionResult(
            status=ResolutionStatus.DEFERRED, job_id=job_id, job_status=status
        )
