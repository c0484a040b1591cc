"""Excel verification report writer"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from yt_playlist_migrator.core.models import (
    VerificationResult,
    VerificationStatus,
    VerificationSummary,
    watch_url,
)

logger = logging.getLogger(__name__)

DETAIL_HEADERS = [
    "Source Playlist Name", "Source Playlist ID", "Source Video Count",
    "Expected Target Name", "Target Playlist ID", "Target Video Count",
    "Migration Status", "Missing in Target Count", "Extra in Target Count", "Notes",
]
MISSING_HEADERS = ["Source Playlist Name", "Missing Video ID", "YouTube Link"]
BOLD = Font(bold=True)


def _header(sheet, headers: list[str]) -> None:
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = BOLD


def _autosize(sheet) -> None:
    for column in sheet.columns:
        width = max(len(str(c.value)) if c.value is not None else 0 for c in column)
        sheet.column_dimensions[column[0].column_letter].width = min(width + 2, 80)


def write_report(results: Sequence[VerificationResult], summary: VerificationSummary,
                 output_dir: Path, now: datetime | None = None) -> Path:
    """Write the workbook and return its path."""
    now = now or datetime.now()
    path = Path(output_dir) / f"Migration_Verification_Report_{now:%Y%m%d_%H%M%S}.xlsx"

    wb = Workbook()
    summary_sheet = wb.active
    summary_sheet.title = "Summary"
    detail_sheet = wb.create_sheet("Playlist Details")
    missing_sheet = wb.create_sheet("Missing Videos Details")

    _header(detail_sheet, DETAIL_HEADERS)
    _header(missing_sheet, MISSING_HEADERS)

    for res in results:
        detail_sheet.append([
            res.source_name, res.source_id, res.source_count,
            res.expected_target_name, res.target_id, res.target_count,
            res.status.value, len(res.missing), len(res.extra), res.notes,
        ])
        for video_id in sorted(res.missing):
            missing_sheet.append([res.source_name, video_id, watch_url(video_id)])

    summary_sheet.append(["Migration Verification Summary"])
    summary_sheet["A1"].font = BOLD
    summary_sheet.append([f"Report Generated: {now:%Y-%m-%d %H:%M:%S}"])
    summary_sheet.append([])
    summary_sheet.append([f"Total Source Playlists Analyzed: {summary.playlists_analyzed}"])
    summary_sheet.append([f"Total Videos in Analyzed Source Playlists: {summary.total_source_videos}"])
    summary_sheet.append([f"Total Videos Found in Corresponding Target Playlists: {summary.total_target_videos}"])
    summary_sheet.append([])
    summary_sheet.append([f"Playlists Fully Migrated (Complete): {summary.count(VerificationStatus.COMPLETE)}"])
    summary_sheet.append([f"Playlists Partially Migrated: {summary.count(VerificationStatus.PARTIAL)}"])
    summary_sheet.append([
        f"Playlists Where Target Was Not Found: {summary.count(VerificationStatus.TARGET_NOT_FOUND)}"
    ])
    summary_sheet.append([f"Playlists With Fetch Errors: {summary.count(VerificationStatus.FETCH_ERROR)}"])

    for sheet in (summary_sheet, detail_sheet, missing_sheet):
        _autosize(sheet)

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.info(f"Verification report written: {path}")
    return path
