import json

import click


def register_cli(app):
    @app.cli.command("sync-pending-payments")
    @click.option("--limit", default=100, show_default=True)
    @click.option("--older-than", "older_than", type=int, default=None, help="minutes; defaults to PENDING_SYNC_AFTER_MINUTES")
    def sync_pending_payments_cmd(limit, older_than):
        """Poll the processor for stale pending payments."""
        from gigpay.jobs.payment_sync import sync_pending_payments
        click.echo(json.dumps(sync_pending_payments(limit=limit, older_than_minutes=older_than)))

    @app.cli.command("reconcile-wallets")
    @click.option("--limit", default=500, show_default=True)
    def reconcile_wallets_cmd(limit):
        """Report wallets whose balances disagree with their journal."""
        from gigpay.jobs.wallet_reconciler import reconcile_wallets
        click.echo(json.dumps(reconcile_wallets(limit=limit)))
