#!/usr/bin/env python3
"""
Trigger the scheduled jobs over HTTP (for cron or a platform scheduler).

Usage:
    python scripts/run_daily_jobs.py                  # WhatsApp daily run + recall sweep + recall emails
    python scripts/run_daily_jobs.py whatsapp         # only the WhatsApp daily run
    python scripts/run_daily_jobs.py recalls          # only the recall sweep and emails

Environment Variables:
    CRON_SECRET: Shared secret for the automation endpoints
    API_URL: Base API URL (default: http://localhost:8000)
"""

import argparse
import os
import sys

import dotenv
import requests

dotenv.load_dotenv()

JOBS = {
    "whatsapp": ["/whatsapp/daily-run"],
    "recalls": ["/recalls/sweep", "/recalls/send-queued"],
}


def call_job(path: str) -> dict:
    """POST one job endpoint with the cron secret."""
    cron_secret = os.getenv("CRON_SECRET")
    if not cron_secret:
        print("Error: CRON_SECRET environment variable not set", file=sys.stderr)
        sys.exit(1)

    api_url = os.getenv("API_URL", "http://localhost:8000")
    url = f"{api_url}/api/v1{path}"

    try:
        response = requests.post(url, headers={"X-Cron-Secret": cron_secret}, timeout=120)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.HTTPError as e:
        print(f"HTTP Error on {path}: {e}", file=sys.stderr)
        print(f"Response: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"Request Error on {path}: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run ClinicDesk scheduled jobs")
    parser.add_argument(
        "jobs",
        nargs="*",
        choices=sorted(JOBS),
        help="Jobs to run (default: all)",
    )
    args = parser.parse_args()

    for job in args.jobs or sorted(JOBS, reverse=True):
        for path in JOBS[job]:
            result = call_job(path)
            print(f"{path}: {result}")


if __name__ == "__main__":
    main()
