"""CLI commands for issue CRUD, search, and audit history."""

from __future__ import annotations

import json as json_mod
from typing import Any

import click

from issuestore.cli_common import fail, get_store
from issuestore.core import Issue
from issuestore.errors import IssueStoreError
from issuestore.models import IssueType, Status
from issuestore.search import IssueFilter
from issuestore.snapshots import UnsupportedSnapshotError, load_snapshot
from issuestore.types.core import IssueDict

_STATUS_CHOICE = click.Choice([s.value for s in Status])
_TYPE_CHOICE = click.Choice([t.value for t in IssueType])


def _print_issue_line(issue: Issue) -> None:
    assignee = f" @{issue.assignee}" if issue.assignee else ""
    click.echo(f"{issue.id}  P{issue.priority}  [{issue.status}]  {issue.issue_type:<7}  {issue.title}{assignee}")


@click.command()
@click.argument("title")
@click.option("--type", "issue_type", default=IssueType.TASK.value, type=_TYPE_CHOICE, help="Issue type")
@click.option("--priority", "-p", default=2, type=int, help="Priority 0-4 (0=critical)")
@click.option("--status", default=Status.OPEN.value, type=_STATUS_CHOICE, help="Initial status")
@click.option("--assignee", default=None, help="Assignee")
@click.option("--description", "-d", default="", help="Description")
@click.option("--design", default="", help="Design notes")
@click.option("--acceptance", "acceptance_criteria", default="", help="Acceptance criteria")
@click.option("--notes", default="", help="Notes")
@click.option("--estimate", "estimated_minutes", default=None, type=int, help="Estimated minutes")
@click.option("--id", "issue_id", default="", help="Explicit issue ID (<prefix>-<n>)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def create(
    ctx: click.Context,
    title: str,
    issue_type: str,
    priority: int,
    status: str,
    assignee: str | None,
    description: str,
    design: str,
    acceptance_criteria: str,
    notes: str,
    estimated_minutes: int | None,
    issue_id: str,
    as_json: bool,
) -> None:
    """Create a new issue."""
    issue = Issue(
        title=title,
        id=issue_id,
        description=description,
        design=design,
        acceptance_criteria=acceptance_criteria,
        notes=notes,
        status=status,
        priority=priority,
        issue_type=issue_type,
        assignee=assignee,
        estimated_minutes=estimated_minutes,
    )
    with get_store() as store:
        try:
            created = store.create_issue(issue, actor=ctx.obj["actor"])
        except IssueStoreError as e:
            fail(str(e), as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps(created.to_dict(), indent=2, default=str))
    else:
        click.echo(f"Created {created.id}: {created.title}")


@click.command()
@click.argument("issue_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(issue_id: str, as_json: bool) -> None:
    """Show issue details."""
    with get_store() as store:
        try:
            issue = store.get_issue(issue_id)
        except IssueStoreError as e:
            fail(str(e), as_json=as_json)
    if issue is None:
        fail(f"Not found: {issue_id}", as_json=as_json)

    if as_json:
        click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
        return

    click.echo(f"ID:       {issue.id}")
    click.echo(f"Title:    {issue.title}")
    click.echo(f"Status:   {issue.status}")
    click.echo(f"Priority: P{issue.priority}")
    click.echo(f"Type:     {issue.issue_type}")
    if issue.assignee:
        click.echo(f"Assignee: {issue.assignee}")
    if issue.estimated_minutes is not None:
        click.echo(f"Estimate: {issue.estimated_minutes}m")
    click.echo(f"Created:  {issue.created_at}")
    click.echo(f"Updated:  {issue.updated_at}")
    if issue.closed_at:
        click.echo(f"Closed:   {issue.closed_at}")
    if issue.approved_at:
        click.echo(f"Approved: {issue.approved_at} by {issue.approved_by}")
    for heading, text in (
        ("Description", issue.description),
        ("Design", issue.design),
        ("Acceptance Criteria", issue.acceptance_criteria),
        ("Notes", issue.notes),
    ):
        if text:
            click.echo(f"\n--- {heading} ---\n{text}")


@click.command()
@click.argument("issue_id")
@click.option("--title", default=None, help="New title")
@click.option("--status", default=None, type=_STATUS_CHOICE, help="New status")
@click.option("--priority", "-p", default=None, type=int, help="New priority 0-4")
@click.option("--type", "issue_type", default=None, type=_TYPE_CHOICE, help="New issue type")
@click.option("--assignee", default=None, help="New assignee")
@click.option("--unassign", is_flag=True, help="Clear the assignee")
@click.option("--description", "-d", default=None, help="New description")
@click.option("--design", default=None, help="New design notes")
@click.option("--acceptance", "acceptance_criteria", default=None, help="New acceptance criteria")
@click.option("--notes", default=None, help="New notes")
@click.option("--estimate", "estimated_minutes", default=None, type=int, help="New estimate in minutes")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def update(
    ctx: click.Context,
    issue_id: str,
    title: str | None,
    status: str | None,
    priority: int | None,
    issue_type: str | None,
    assignee: str | None,
    unassign: bool,
    description: str | None,
    design: str | None,
    acceptance_criteria: str | None,
    notes: str | None,
    estimated_minutes: int | None,
    as_json: bool,
) -> None:
    """Update issue fields."""
    if assignee is not None and unassign:
        fail("--assignee and --unassign are mutually exclusive", as_json=as_json)

    candidates: dict[str, Any] = {
        "title": title,
        "status": status,
        "priority": priority,
        "issue_type": issue_type,
        "assignee": assignee,
        "description": description,
        "design": design,
        "acceptance_criteria": acceptance_criteria,
        "notes": notes,
        "estimated_minutes": estimated_minutes,
    }
    changes = {k: v for k, v in candidates.items() if v is not None}
    if unassign:
        changes["assignee"] = None
    if not changes:
        fail("Nothing to update (pass at least one field option)", as_json=as_json)

    with get_store() as store:
        try:
            issue = store.update_issue(issue_id, changes, actor=ctx.obj["actor"])
        except IssueStoreError as e:
            fail(str(e), as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps(issue.to_dict(), indent=2, default=str))
    else:
        click.echo(f"Updated {issue.id}: {', '.join(sorted(changes))}")


@click.command()
@click.argument("issue_ids", nargs=-1, required=True)
@click.option("--reason", default="", help="Close reason")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def close(ctx: click.Context, issue_ids: tuple[str, ...], reason: str, as_json: bool) -> None:
    """Close one or more issues."""
    closed: list[IssueDict] = []
    errors: list[dict[str, str]] = []
    with get_store() as store:
        for issue_id in issue_ids:
            try:
                issue = store.close_issue(issue_id, reason=reason, actor=ctx.obj["actor"])
            except IssueStoreError as e:
                errors.append({"id": issue_id, "error": str(e)})
                if not as_json:
                    click.echo(f"Error: {e}", err=True)
                continue
            closed.append(issue.to_dict())
            if not as_json:
                click.echo(f"Closed {issue.id}")
    if as_json:
        click.echo(json_mod.dumps({"closed": closed, "errors": errors}, indent=2, default=str))
    if errors:
        raise SystemExit(1)


@click.command()
@click.argument("issue_id")
@click.option("--by", "approver", default=None, help="Approver identity (default: the actor)")
@click.pass_context
def approve(ctx: click.Context, issue_id: str, approver: str | None) -> None:
    """Record an approval on an issue."""
    actor = ctx.obj["actor"]
    with get_store() as store:
        try:
            issue = store.approve_issue(issue_id, approver=approver or actor, actor=actor)
        except IssueStoreError as e:
            fail(str(e))
    click.echo(f"Approved {issue.id} by {issue.approved_by}")


@click.command()
@click.argument("query", default="")
@click.option("--status", default=None, type=_STATUS_CHOICE, help="Filter by status")
@click.option("--priority", "-p", default=None, type=int, help="Filter by priority")
@click.option("--type", "issue_type", default=None, type=_TYPE_CHOICE, help="Filter by issue type")
@click.option("--assignee", default=None, help="Filter by assignee")
@click.option("--limit", default=None, type=int, help="Maximum results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def search(
    query: str,
    status: str | None,
    priority: int | None,
    issue_type: str | None,
    assignee: str | None,
    limit: int | None,
    as_json: bool,
) -> None:
    """Search issues by text in title, description, or id."""
    issue_filter = IssueFilter(status=status, priority=priority, issue_type=issue_type, assignee=assignee, limit=limit)
    with get_store() as store:
        try:
            issues = store.search_issues(query, issue_filter)
        except IssueStoreError as e:
            fail(str(e), as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps([i.to_dict() for i in issues], indent=2, default=str))
        return
    for issue in issues:
        _print_issue_line(issue)
    click.echo(f"\n{len(issues)} issue(s)")


@click.command()
@click.argument("issue_id", required=False)
@click.option("--limit", default=20, type=int, help="Maximum events")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def events(issue_id: str | None, limit: int, as_json: bool) -> None:
    """Show the audit trail for an issue (or recent events project-wide)."""
    with get_store() as store:
        try:
            rows = store.get_issue_events(issue_id, limit=limit) if issue_id else store.get_recent_events(limit)
        except IssueStoreError as e:
            fail(str(e), as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps(rows, indent=2, default=str))
        return
    for ev in rows:
        line = f"{ev['created_at']}  {ev['issue_id']}  {ev['event_type']:<14}  by {ev['actor']}"
        if ev["comment"]:
            line += f"  : {ev['comment']}"
        elif ev["new_value"]:
            try:
                changed = sorted(load_snapshot(ev["new_value"])["data"])
            except UnsupportedSnapshotError:
                changed = []
            if ev["event_type"] != "created" and changed:
                line += f"  ({', '.join(changed)})"
        click.echo(line)
