"""Response payloads for migration results"""

from datetime import datetime, timezone

from playlist_migrator.core.errors import MigrationError
from playlist_migrator.core.models import MigrationReport


def report_payload(report: MigrationReport) -> dict:
    return {
        "destinationPlaylistId": report.destination_playlist_id,
        "unmatchedTracks": list(report.unmatched_tracks),
        "quotaExceededTracks": list(report.quota_exceeded_tracks),
        "totalTracksProcessed": report.total_tracks_processed,
        "totalVideosAdded": report.total_videos_added,
        "quotaExceeded": report.quota_exceeded,
    }


def error_payload(error: MigrationError) -> dict:
    data = error.payload()
    if error.state is not None:
        data["failedDuring"] = error.state.value
    data["time"] = datetime.now(timezone.utc).isoformat()
    return data
