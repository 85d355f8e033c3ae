"""Flask CLI commands for scheduled maintenance."""

import click
from firebase_admin import firestore

from .events.reconcile import ReconciliationService
from .events.services import EventService


@click.command("close-due-events")
def close_due_events_command():
    """Close events past their deadline and lock events already played."""
    db = firestore.client()
    result = EventService.close_due_events(db)
    click.echo(
        f"Closed {len(result['closed'])} events, locked {len(result['locked'])} events."
    )


@click.command("reconcile-events")
@click.option("--event-id", default=None, help="Reconcile a single event.")
def reconcile_events_command(event_id):
    """Repair participant counts and payments left by interrupted writes."""
    db = firestore.client()
    if event_id:
        reports = [ReconciliationService.reconcile_event(db, event_id)]
    else:
        reports = ReconciliationService.reconcile_all(db)

    for report in reports:
        if report["countBefore"] != report["countAfter"] or report["paymentsCreated"]:
            click.echo(
                f"{report['eventId']}: count {report['countBefore']} -> "
                f"{report['countAfter']}, {report['paymentsCreated']} payments created"
            )
    click.echo(f"Reconciled {len(reports)} events.")


def init_app(app):
    """Register the CLI commands on the app."""
    app.cli.add_command(close_due_events_command)
    app.cli.add_command(reconcile_events_command)
