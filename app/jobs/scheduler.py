import os
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from app.models import utcnow
from app.services.changes import prune_changes


scheduler = BackgroundScheduler()


def run_change_log_sweep(app):
    with app.app_context():
        retention = timedelta(hours=app.config["CHANGE_EVENT_RETENTION_HOURS"])
        removed = prune_changes(utcnow() - retention)
        if removed:
            app.logger.info("Pruned %d change events", removed)
        return removed


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = app.config["CHANGE_EVENT_SWEEP_INTERVAL_MINUTES"]
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_change_log_sweep,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="change_log_sweep",
            replace_existing=True,
        )
        scheduler.start()
