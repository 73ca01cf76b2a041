from apscheduler.schedulers.background import BackgroundScheduler
import atexit
from datetime import datetime
from app.extensions import db
from app.services.lifecycle import expire_quotes, mark_overdue_invoices

scheduler = BackgroundScheduler()


def run_sweeps(app):
    """Flag overdue invoices and expire stale quotes. Returns both counts."""
    current_time_str = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    with app.app_context():
        try:
            overdue = mark_overdue_invoices()
            expired = expire_quotes()
        except Exception as e:
            db.session.rollback()
            print(f"[SCHEDULER] {current_time_str} - Error running sweeps: {e}")
            return None

        if overdue or expired:
            print(
                f"[SCHEDULER] {current_time_str} - {overdue} invoice(s) overdue, "
                f"{expired} quote(s) expired"
            )
        else:
            print(f"[SCHEDULER] {current_time_str} - Nothing to sweep")
        return {"overdue_invoices": overdue, "expired_quotes": expired}


def init_scheduler(app):
    """Initialize the APScheduler scheduler with Flask app context."""
    minutes = app.config.get("SCHEDULER_INTERVAL_MINUTES", 15)
    scheduler.add_job(
        run_sweeps,
        "interval",
        minutes=minutes,
        args=[app],
        id="lifecycle_sweeps",
        replace_existing=True,
    )

    if not scheduler.running:
        scheduler.start()
        print(f"[SCHEDULER] Scheduler started, sweeping every {minutes} minute(s)")
    else:
        print("[SCHEDULER] Scheduler already running (skipping duplicate start)")

    # Shut down the scheduler when exiting the app
    atexit.register(lambda: scheduler.shutdown(wait=False) if scheduler.running else None)
