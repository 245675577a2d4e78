"""Report formatting functions.

Provides human-readable and machine-readable output for sync passes:

- ``format_sync_report`` -- post-pull/push summary.
- ``format_status_report`` -- local status grouped by workspace.
- ``report_to_json`` / ``status_to_json`` -- structured dicts for
  ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict

from .models import RecordKind, StatusEntry, SyncReport, SyncResult, SyncStatus

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _row_summary(result: SyncResult) -> str:
    parts = []
    if result.rows_created:
        parts.append(f"{result.rows_created} created")
    if result.rows_updated:
        parts.append(f"{result.rows_updated} updated")
    if result.rows_deleted:
        parts.append(f"{result.rows_deleted} deleted")
    return f" ({', '.join(parts)})" if parts else ""


def format_sync_report(report: SyncReport) -> str:
    """Format a pull or push report as human-readable text.

    Sections are only included when they contain at least one result.
    Unchanged and skipped records are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"{report.operation.capitalize()} report"
    if report.force:
        header += " (forced)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Processed {len(report.results)} records: "
        f"{len(report.created_local)} new, {len(report.pulled)} pulled, "
        f"{len(report.pushed)} pushed, {len(report.conflicts)} conflicts, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    if report.created_local:
        lines.append("New locally:")
        for r in report.created_local:
            lines.append(f"  {r.kind.value} {r.record_path}")
        lines.append("")

    if report.pulled:
        lines.append("Pulled:")
        for r in report.pulled:
            lines.append(f"  {r.kind.value} {r.record_path}")
        lines.append("")

    if report.pushed:
        lines.append("Pushed:")
        for r in report.pushed:
            lines.append(f"  {r.kind.value} {r.record_path}{_row_summary(r)}")
            for message in r.row_errors:
                lines.append(f"    warning: {message}")
        lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for r in report.conflicts:
            desc = r.error or "local and remote both changed"
            lines.append(f"  {r.kind.value} {r.record_path}: {desc}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.kind.value} {r.record_path}: {r.error}")
        lines.append("")

    if report.unchanged:
        lines.append(f"Unchanged: {len(report.unchanged)} records")
    if report.skipped:
        lines.append(f"Skipped: {len(report.skipped)} records")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Status
# ------------------------------------------------------------------


def format_status_report(entries: list[StatusEntry]) -> str:
    """Format local record statuses grouped by kind and workspace.

    Modified records are flagged with ``M``.
    """
    if not entries:
        return "No local records found. Run 'lumifyhub-sync pull' first."

    lines: list[str] = []
    for kind in (RecordKind.PAGE, RecordKind.DATABASE):
        by_workspace: dict[str, list[StatusEntry]] = defaultdict(list)
        for entry in entries:
            if entry.kind == kind:
                by_workspace[entry.workspace_slug].append(entry)
        if not by_workspace:
            continue
        lines.append(f"{kind.value.capitalize()}s:")
        for workspace in sorted(by_workspace):
            lines.append(f"  {workspace}/")
            for entry in by_workspace[workspace]:
                marker = "M" if entry.status == SyncStatus.MODIFIED else " "
                suffix = (
                    f" ({entry.row_count} rows)"
                    if entry.row_count is not None
                    else ""
                )
                lines.append(f"    {marker} {entry.slug}{suffix}")
        lines.append("")

    modified = sum(1 for e in entries if e.status == SyncStatus.MODIFIED)
    if modified:
        lines.append(
            f"{modified} modified record(s). Run 'lumifyhub-sync push' to sync."
        )
    else:
        lines.append("All records are synced.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with operation info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "kind": r.kind.value,
            "workspace": r.workspace_slug,
            "slug": r.slug,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        if r.rows_created or r.rows_updated or r.rows_deleted:
            entry["rows"] = {
                "created": r.rows_created,
                "updated": r.rows_updated,
                "deleted": r.rows_deleted,
            }
        if r.row_errors:
            entry["row_errors"] = list(r.row_errors)
        results_list.append(entry)

    return {
        "operation": report.operation,
        "force": report.force,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "created_local": len(report.created_local),
            "pulled": len(report.pulled),
            "pushed": len(report.pushed),
            "unchanged": len(report.unchanged),
            "skipped": len(report.skipped),
            "conflicts": len(report.conflicts),
            "errors": len(report.errors),
        },
        "results": results_list,
    }


def status_to_json(entries: list[StatusEntry]) -> list[dict]:
    """Convert status entries to plain dicts."""
    return [entry.model_dump(mode="json") for entry in entries]
