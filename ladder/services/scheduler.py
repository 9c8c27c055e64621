"""Background expiry sweep driven by APScheduler."""
import logging

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'expiry_sweep'


class ExpirySweeper:
    """Runs ``LadderService.sweep_expirations`` on an interval inside an app context."""

    def __init__(self, app, service, interval_seconds=60, scheduler=None):
        self.app = app
        self.service = service
        self.interval_seconds = max(1, int(interval_seconds))
        self.scheduler = scheduler or BackgroundScheduler(daemon=True)

    def run_once(self):
        with self.app.app_context():
            try:
                result = self.service.sweep_expirations(self.service.clock())
            except Exception:
                logger.error('Expiry sweep failed', exc_info=True)
                return None
        if result['transitions'] or result['notifications']:
            logger.info(
                'Expiry sweep: %d transitions, %d notifications',
                len(result['transitions']), len(result['notifications']),
            )
        return result

    def start(self):
        if not self.scheduler.get_job(SWEEP_JOB_ID):
            self.scheduler.add_job(
                self.run_once, 'interval',
                seconds=self.interval_seconds,
                id=SWEEP_JOB_ID,
                max_instances=1,
                coalesce=True,
            )
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info('Expiry sweep started (every %ss)', self.interval_seconds)

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info('Expiry sweep stopped')
