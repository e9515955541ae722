# scheduler.py
# --- MONTHLY KPI JOBS OVER APSCHEDULER ---

import logging
from collections import namedtuple

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from . import config
from .constants import SYSTEM_ACTOR
from .periods import previous_period, validate_period

logger = logging.getLogger(__name__)

JobSpec = namedtuple('JobSpec', ['name', 'expression', 'func'])


class KpiScheduler:
    """
    Explicit job table for the recurring KPI work:

    * ``monthly-kpi-entries``  provision entries for the current month
    * ``monthly-kpi-reports``  seal the previous month
    * ``daily-health-check``   heartbeat in the log

    Each sweep walks every active template and isolates failures per template.
    """

    def __init__(self, batch_service, template_service, clock=None):
        self.batch = batch_service
        self.templates = template_service
        self.clock = clock or config.now
        self._scheduler = None
        self.jobs = [
            JobSpec('monthly-kpi-entries', config.CRON_MONTHLY_ENTRIES, self.run_entries_sweep),
            JobSpec('monthly-kpi-reports', config.CRON_MONTHLY_REPORTS, self.run_reports_sweep),
            JobSpec('daily-health-check', config.CRON_HEALTH_CHECK, self.health_check),
        ]

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def running(self):
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.running:
            logger.warning("KPI scheduler already running")
            return
        self._scheduler = BackgroundScheduler(timezone=config.TIMEZONE)
        for job in self.jobs:
            self._scheduler.add_job(
                job.func,
                CronTrigger.from_crontab(job.expression, timezone=config.TIMEZONE),
                id=job.name,
                name=job.name,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        self._scheduler.start()
        logger.info(f"KPI scheduler started with {len(self.jobs)} jobs ({config.TIMEZONE})")

    def stop(self):
        if not self.running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("KPI scheduler stopped")

    def restart(self):
        self.stop()
        self.start()

    def status(self):
        result = []
        for job in self.jobs:
            scheduled = self._scheduler.get_job(job.name) if self.running else None
            next_run = getattr(scheduled, 'next_run_time', None)
            result.append({
                'name': job.name,
                'running': scheduled is not None,
                'nextRun': next_run.isoformat() if next_run else None,
                'expression': job.expression,
            })
        return result

    # =========================================================================
    # SWEEPS
    # =========================================================================

    def _sweep(self, label, action, month, year):
        outcome = {'succeeded': [], 'failed': []}
        for template in self.templates.iter_templates(active_only=True):
            try:
                result = action(template.id, month, year, SYSTEM_ACTOR)
                outcome['succeeded'].append({
                    'templateId': template.id,
                    'entriesCount': result['entriesCount'],
                })
            except Exception as e:
                logger.error(f"[{label}] template {template.id} ({month}/{year}) failed: {e}")
                outcome['failed'].append({'templateId': template.id, 'error': str(e)})

        logger.info(
            f"[{label}] {month}/{year}: {len(outcome['succeeded'])} succeeded, "
            f"{len(outcome['failed'])} failed"
        )
        return outcome

    def run_entries_sweep(self, month=None, year=None):
        if month is None or year is None:
            now = self.clock()
            month, year = now.month, now.year
        return self._sweep('monthly-kpi-entries', self.batch.generate_default_entries, month, year)

    def run_reports_sweep(self, month=None, year=None):
        if month is None or year is None:
            now = self.clock()
            month, year = previous_period(now.month, now.year)
        return self._sweep('monthly-kpi-reports', self.batch.generate_final_reports, month, year)

    def health_check(self):
        logger.info(f"KPI scheduler heartbeat at {self.clock().isoformat()}")
        return True

    # =========================================================================
    # MANUAL TRIGGERS
    # =========================================================================

    def trigger_monthly_entries(self, template_id, month=None, year=None, actor=SYSTEM_ACTOR):
        if month is None or year is None:
            now = self.clock()
            month, year = now.month, now.year
        validate_period(month, year)
        logger.info(f"Manual trigger: default entries for {template_id} ({month}/{year}) by {actor}")
        return self.batch.generate_default_entries(template_id, month, year, actor)

    def trigger_monthly_reports(self, template_id, month=None, year=None, actor=SYSTEM_ACTOR):
        if month is None or year is None:
            now = self.clock()
            month, year = previous_period(now.month, now.year)
        validate_period(month, year)
        self.templates.require_template(template_id)
        logger.info(f"Manual trigger: final reports for {template_id} ({month}/{year}) by {actor}")
        return self.batch.generate_final_reports(template_id, month, year, actor)
