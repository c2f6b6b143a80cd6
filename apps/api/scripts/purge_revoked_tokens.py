#!/usr/bin/env python3
"""
Cleanup script for the logout blocklist.

Deletes blocklist entries whose tokens have expired; an expired token is
rejected by its signature check anyway, so the row no longer does anything.

Usage:
    python apps/api/scripts/purge_revoked_tokens.py [--dry-run]

Schedule:
    Run daily via cron or platform scheduler
"""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from apps.api.app import create_app
from apps.api.models.token_blacklist import TokenBlacklist
from apps.api.utils.time import utc_now
import click


@click.command()
@click.option('--dry-run', is_flag=True, help='Count expired entries without deleting them')
def purge_revoked_tokens(dry_run):
    """Delete blocklist entries for tokens that have expired."""
    app = create_app()

    with app.app_context():
        cutoff = utc_now()
        print(f"{'[DRY RUN] ' if dry_run else ''}Purge revoked tokens")
        print(f"Cutoff: {cutoff.isoformat()}")
        print("-" * 60)

        if dry_run:
            expired = TokenBlacklist.query.filter(TokenBlacklist.expires_at < cutoff).count()
            print(f"[DRY RUN] Would delete {expired} of {TokenBlacklist.query.count()} entries")
            return

        removed = TokenBlacklist.purge_expired()
        print(f"Purge complete: {removed} entries deleted")


if __name__ == '__main__':
    purge_revoked_tokens()
