"""
Scheduler for the recurring-task generation sweep.

Run it as a cron job or a background service.
Example cron job (runs every day at midnight UTC):
0 0 * * * cd /path/to/back-end && python scheduler.py --once

Or run continuously:
python scheduler.py --daemon
"""

import argparse
import os
import threading
import time

import schedule

from recurring_tasks import generate_recurring_tasks

GENERATION_TIME = os.environ.get("RECURRING_GENERATION_TIME", "00:00")


def run_generation(repo):
    """Run one sweep; errors are logged so the scheduler keeps going."""
    print(f"Running recurring task generation at {time.strftime('%Y-%m-%d %H:%M:%S')}")
    try:
        created = generate_recurring_tasks(repo)
        print(f"✅ Recurring task generation completed ({len(created)} created)")
        return created
    except Exception as e:
        print(f"❌ Recurring task generation error: {e}")
        return []


def register_jobs(repo, scheduler=None):
    scheduler = scheduler or schedule.default_scheduler
    return scheduler.every().day.at(GENERATION_TIME).do(run_generation, repo)


def run_scheduler_daemon(repo, poll_seconds=60):
    register_jobs(repo)
    print("📅 Recurring task scheduler started")
    print(f"   - Daily generation at {GENERATION_TIME}")

    # Run once immediately on startup
    run_generation(repo)

    while True:
        schedule.run_pending()
        time.sleep(poll_seconds)


def start_background_scheduler(repo):
    """Start the scheduler in a daemon thread"""
    thread = threading.Thread(target=run_scheduler_daemon, args=(repo,), daemon=True)
    thread.start()
    return thread


if __name__ == "__main__":
    from firebase_db import create_client
    from repository import FirestoreRepository

    parser = argparse.ArgumentParser(description="Run recurring task generation")
    parser.add_argument("--daemon", action="store_true", help="Run as daemon process")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    args = parser.parse_args()

    repository = FirestoreRepository(create_client())
    if args.once:
        run_generation(repository)
    else:
        run_scheduler_daemon(repository)
