# treasury/management/commands/reconcile_cashboxes.py

from __future__ import annotations

import uuid

from django.core.management.base import BaseCommand, CommandError

from treasury.exceptions import ReconciliationLockError
from treasury.reconciliation import ReconciliationService


class Command(BaseCommand):
    help = "Replay cashbox transaction logs, correct drifted balances and report chain breaks."

    def add_arguments(self, parser):
        parser.add_argument(
            "--cashbox",
            dest="cashbox_ids",
            action="append",
            default=None,
            help="Cashbox UUID to reconcile (repeatable). Defaults to all cashboxes.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report drift without correcting it.",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Fail (non-zero exit) if any drift, chain break or failure is found.",
        )

    def handle(self, *args, **options):
        dry_run = bool(options.get("dry_run"))
        strict = bool(options.get("strict"))

        cashbox_ids = None
        if options.get("cashbox_ids"):
            try:
                cashbox_ids = [uuid.UUID(value) for value in options["cashbox_ids"]]
            except ValueError as e:
                raise CommandError(f"Invalid --cashbox value: {e}")

        try:
            result = ReconciliationService.run_reconciliation(
                cashbox_ids=cashbox_ids,
                dry_run=dry_run,
            )
        except ReconciliationLockError as e:
            raise CommandError(e.message)

        if not result.success:
            raise CommandError(result.error)

        run = result.data

        self.stdout.write(self.style.MIGRATE_HEADING("Cashbox Reconciliation"))
        self.stdout.write(f"Mode: {'DRY RUN' if dry_run else 'CORRECT'}")
        self.stdout.write(f"Cashboxes checked: {run.cashboxes_checked}")
        self.stdout.write("")

        for item in run.results:
            if not item.has_drift:
                continue
            action = "corrected" if item.corrected else "drift"
            self.stdout.write(
                self.style.WARNING(
                    f"{action.upper()}: {item.cashbox_id} "
                    f"stored={item.previous_balance} "
                    f"calculated={item.calculated_balance} "
                    f"difference={item.difference}"
                )
            )

        for cashbox_id, error in run.failures.items():
            self.stderr.write(self.style.ERROR(f"FAILED: {cashbox_id} {error}"))

        self.stdout.write("")
        self.stdout.write(f"Drift found:  {run.drift_found}")
        self.stdout.write(f"Corrected:    {run.corrected}")
        self.stdout.write(f"Chain breaks: {run.chain_breaks}")
        self.stdout.write(f"Failed:       {run.failed}")

        problems = run.drift_found + run.chain_breaks + run.failed
        if problems == 0:
            self.stdout.write(self.style.SUCCESS("All cashboxes reconcile."))
            return

        if strict:
            raise CommandError(f"Reconciliation found {problems} problem(s).")
        self.stdout.write(self.style.WARNING(f"Reconciliation found {problems} problem(s)."))
