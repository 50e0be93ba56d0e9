#!/usr/bin/env python3
"""
Missing Cash-up Report

This script:
- Scans the last N days (default 365, today excluded) for a site
- Keeps the days the site was open but no cash-up session was recorded
- Prints the result as JSON:
    {"success": true, "dates": ["YYYY-MM-DD", ...]}   (newest first)
- Writes a CSV (unless --dry-run):
    output/missing_cashups_<site>_<YYYYMMDD>.csv
    Columns: Site ID, Session Date, Weekday
- Optionally emails the CSV via Mailtrap (--email)

Run from the project root:
    python -m scripts.missing_cashup_report --site-id <uuid> [--days-back 90] [--dry-run] [--email]
"""

import os
import sys
import csv
import json
import base64
import logging
import argparse
import re
from datetime import date
from pathlib import Path

import requests
from dotenv import load_dotenv

from services.missing_cashups import (
    DEFAULT_DAYS_BACK,
    business_today,
    compute_missing_cashup_dates,
)

CSV_HEADER = ["Site ID", "Session Date", "Weekday"]

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]+")

""" MAILTRAP EMAIL DELIVERY """

def validate_env_for_mailtrap():
    required = ["MAILTRAP_API_TOKEN", "EMAIL_SENDER", "EMAIL_RECIPIENTS"]
    missing = [var for var in required if not os.getenv(var)]
    if missing:
        raise EnvironmentError(f"Missing Mailtrap environment variables: {', '.join(missing)}")


def prepare_mailtrap_attachments(filepaths):
    attachments = []
    for fp in filepaths:
        if not os.path.exists(fp):
            logging.warning(f"[cashup] Attachment missing: {fp}")
            continue
        with open(fp, "rb") as f:
            encoded = base64.b64encode(f.read()).decode("utf-8")
        attachments.append({
            "filename": os.path.basename(fp),
            "content": encoded,
            "type": "text/csv",
            "disposition": "attachment",
        })
    return attachments


def send_mailtrap_email(subject, html_body, attachments=None):
    validate_env_for_mailtrap()
    url = "https://send.api.mailtrap.io/api/send"
    token = os.getenv("MAILTRAP_API_TOKEN")
    sender = os.getenv("EMAIL_SENDER")
    recipient_list = os.getenv("EMAIL_RECIPIENTS", "")

    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json"
    }

    to_addresses = [
        {"email": r.strip()}
        for r in recipient_list.split(",")
        if r.strip()
    ]

    payload = {
        "from": {"email": sender, "name": "Missing Cash-up Report"},
        "to": to_addresses,
        "subject": subject,
        "html": html_body,
    }

    if attachments:
        payload["attachments"] = attachments

    resp = requests.post(url, headers=headers, json=payload, timeout=30)
    if resp.status_code != 200:
        logging.error(f"[cashup] Mailtrap error {resp.status_code}: {resp.text}")
        raise RuntimeError("Missing cash-up email failed.")
    logging.info("📧 Missing cash-up report email sent successfully.")


# -----------------------------
# Output
# -----------------------------

def write_csv(filename, site_id, dates):
    if not dates:
        logging.info("[cashup] No missing dates for %s — CSV will still be created (header only).", filename)
    with open(filename, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for iso in dates:
            writer.writerow([
                site_id,
                iso,
                date.fromisoformat(iso).strftime("%A"),
            ])
    logging.info("[cashup] CSV written: %s", filename)
    return filename


def site_slug(site_id):
    """Site id reduced to characters that are safe in a file name."""
    return UNSAFE_FILENAME_CHARS.sub("_", site_id).strip("_") or "site"


def build_html_body(site_id, dates):
    if not dates:
        return f"<p>Every open day for site <strong>{site_id}</strong> has a cash-up.</p>"

    items = "".join(f"<li>{d}</li>" for d in dates[:31])
    more = f"<p>…and {len(dates) - 31} more (see attached CSV).</p>" if len(dates) > 31 else ""
    return (
        f"<p>Site <strong>{site_id}</strong> has {len(dates)} open days without a cash-up:</p>"
        f"<ul>{items}</ul>{more}"
    )


# -----------------------------
# Main runner
# -----------------------------

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="List open days with no cash-up session for a site.")
    parser.add_argument("--site-id", required=True, help="Site to scan.")
    parser.add_argument(
        "--days-back",
        type=int,
        default=int(os.getenv("MISSING_CASHUP_DAYS_BACK", str(DEFAULT_DAYS_BACK))),
        help="Days to look back, today excluded (default 365).",
    )
    parser.add_argument("--dry-run", action="store_true", help="Print the result only; no CSV, no email.")
    parser.add_argument("--email", action="store_true", help="Email the CSV via Mailtrap.")
    return parser.parse_args(argv)


def main(argv=None, *, client=None, oracle=None, today=None, out_dir=Path("output")):
    load_dotenv()

    args = parse_args(argv)

    if today is None:
        today = business_today()

    result = compute_missing_cashup_dates(
        args.site_id,
        args.days_back,
        client=client,
        oracle=oracle,
        today=today,
    )

    print(json.dumps(result, indent=2))

    if not result["success"]:
        logging.error("[cashup] Scan failed: %s", result["error"])
        return 1

    if args.dry_run:
        logging.info("[cashup] Dry run — no CSV written.")
        return 0

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    filename = out_dir / f"missing_cashups_{site_slug(args.site_id)}_{today.strftime('%Y%m%d')}.csv"
    write_csv(filename, args.site_id, result["dates"])

    if args.email:
        subject = f"🧾 Missing Cash-ups — {today.strftime('%B %d, %Y')}"
        attachments = prepare_mailtrap_attachments([str(filename)])
        send_mailtrap_email(subject, build_html_body(args.site_id, result["dates"]), attachments)

    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
