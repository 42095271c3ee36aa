"""
Link resolution through Real-Debrid.

Modules:
    realdebrid: HTTP client for the Real-Debrid REST API
    link_resolver: Bounded polling state machine turning a magnet link into
        playable video URLs
"""

from .realdebrid import RealDebridClient
from .link_resolver import (
    LinkResolver,
    ResolutionResult,
    ResolutionStatus,
    ResolvedFile,
    info_hash,
    is_video_file,
)

__all__ = [
    "RealDebridClient",
    "LinkResolver",
    "ResolutionResult",
    "ResolutionStatus",
    "ResolvedFile",
    "info_hash",
    "is_video_file",
]
