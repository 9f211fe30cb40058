"""
CLI for Eligible Handle Import
==============================

Reads X handles from a CSV file and uploads them to the gateway's admin
ingestion endpoint (POST /handles).

Usage:
    claimgate-import og-handles.csv
    claimgate-import og-handles.csv --api-url https://claim.example.com --api-key ...
    claimgate-import og-handles.csv --dry-run

CSV format: one handle per line in the first column, optional header row
containing "handle" or "username". Handles may carry an @ prefix.
"""

import csv
import os
import sys
from typing import List, Tuple

import click
import httpx

from claimgate import __version__
from claimgate.utils.handles import normalize_handles


def read_handles_csv(path: str) -> List[str]:
    """First non-empty cell of every row, minus a header row if present."""
    with open(path, newline="", encoding="utf-8") as f:
        rows = [row for row in csv.reader(f) if row and row[0].strip()]
    if not rows:
        return []

    first = rows[0][0].strip().lower()
    if "handle" in first or "username" in first:
        rows = rows[1:]
    return [row[0].strip() for row in rows]


def prepare_handles(path: str) -> Tuple[List[str], List[str]]:
    return normalize_handles(read_handles_csv(path))


@click.command()
@click.version_option(version=__version__)
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--api-url",
    default=lambda: os.getenv("CLAIMGATE_API_URL", "http://localhost:8000"),
    show_default="$CLAIMGATE_API_URL or http://localhost:8000",
    help="Base URL of the claim gateway",
)
@click.option(
    "--api-key",
    default=lambda: os.getenv("ADMIN_API_KEY"),
    help="Admin API key (defaults to $ADMIN_API_KEY)",
)
@click.option("--dry-run", is_flag=True, help="Print normalized handles without uploading")
def main(csv_path: str, api_url: str, api_key: str, dry_run: bool):
    """
    Import eligible X handles from CSV_PATH into the claim gateway.
    """
    click.echo(f"📁 Reading CSV: {csv_path}")
    handles, rejected = prepare_handles(csv_path)

    click.echo(f"📊 Found {len(handles)} valid handles in CSV")
    if rejected:
        click.echo(f"⚠️  Skipping {len(rejected)} invalid handles:")
        for raw in rejected:
            click.echo(f"   - {raw!r}")

    if not handles:
        click.echo("❌ No valid handles to import", err=True)
        sys.exit(1)

    if dry_run:
        for handle in handles:
            click.echo(handle)
        click.echo("✅ Dry run complete, nothing uploaded")
        return

    if not api_key:
        click.echo("❌ Admin API key required (--api-key or ADMIN_API_KEY)", err=True)
        sys.exit(1)

    click.echo("📤 Sending to API endpoint...")
    try:
        response = httpx.post(
            f"{api_url.rstrip('/')}/handles",
            json={"handles": handles},
            headers={"X-API-Key": api_key},
            timeout=60.0,
        )
        result = response.json()
    except (httpx.HTTPError, ValueError) as e:
        click.echo(f"❌ Import failed: {e}", err=True)
        sys.exit(1)

    if response.status_code != 200:
        click.echo(f"❌ Error: {result.get('message') or result.get('error')}", err=True)
        sys.exit(1)

    click.echo(f"✅ Success! {result.get('count', 0)} handles uploaded")


if __name__ == "__main__":
    main()
