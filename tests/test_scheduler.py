import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from ladder.app import create_app
from ladder.models import Challenge
from ladder.services.scheduler import SWEEP_JOB_ID, ExpirySweeper


class _FakeScheduler:
    def __init__(self):
        self.jobs = {}
        self.running = False
        self.shutdown_calls = 0

    def get_job(self, job_id):
        return self.jobs.get(job_id)

    def add_job(self, func, trigger, **kwargs):
        self.jobs[kwargs['id']] = {'func': func, 'trigger': trigger, **kwargs}

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False
        self.shutdown_calls += 1


def test_run_once_expires_overdue_challenges(app, service, trio, clock):
    challenge_id = service.create_challenge(trio[2].id, trio[0].id).id
    clock.advance(days=22)

    sweeper = ExpirySweeper(app, service, scheduler=_FakeScheduler())
    result = sweeper.run_once()

    assert result['transitions'] == [{'challenge_id': challenge_id, 'from': 'pending', 'to': 'expired'}]
    assert Challenge.query.filter_by(id=challenge_id).one().status == 'expired'
    assert sweeper.run_once() == {'transitions': [], 'notifications': []}


def test_run_once_logs_and_survives_errors(app, service, monkeypatch, caplog):
    def _broken(now=None):
        raise RuntimeError('database is locked')

    monkeypatch.setattr(service, 'sweep_expirations', _broken)
    sweeper = ExpirySweeper(app, service, scheduler=_FakeScheduler())
    with caplog.at_level(logging.ERROR, logger='ladder'):
        assert sweeper.run_once() is None
    assert 'Expiry sweep failed' in caplog.text


def test_start_registers_a_single_interval_job(app, service):
    scheduler = _FakeScheduler()
    sweeper = ExpirySweeper(app, service, interval_seconds=15, scheduler=scheduler)
    sweeper.start()
    sweeper.start()

    job = scheduler.jobs[SWEEP_JOB_ID]
    assert len(scheduler.jobs) == 1
    assert job['trigger'] == 'interval'
    assert job['seconds'] == 15
    assert job['max_instances'] == 1
    assert scheduler.running

    sweeper.shutdown()
    sweeper.shutdown()
    assert scheduler.shutdown_calls == 1


def test_interval_is_at_least_one_second(app, service):
    assert ExpirySweeper(app, service, interval_seconds=0, scheduler=_FakeScheduler()).interval_seconds == 1


def test_real_scheduler_starts_and_stops(app, service):
    sweeper = ExpirySweeper(app, service, interval_seconds=3600, scheduler=BackgroundScheduler(daemon=True))
    sweeper.start()
    try:
        assert sweeper.scheduler.running
        job = sweeper.scheduler.get_job(SWEEP_JOB_ID)
        assert job.trigger.interval == timedelta(seconds=3600)
    finally:
        sweeper.shutdown()


def test_app_starts_sweeper_when_enabled(clock, sink):
    app = create_app(
        'testing', clock=clock, notification_sink=sink,
        config_overrides={'EXPIRY_SWEEP_ENABLED': True, 'EXPIRY_SWEEP_INTERVAL_SECONDS': 3600},
    )
    sweeper = app.extensions['ladder_sweeper']
    try:
        assert sweeper.scheduler.get_job(SWEEP_JOB_ID) is not None
    finally:
        sweeper.shutdown()


def test_testing_config_does_not_start_sweeper(app):
    assert 'ladder_sweeper' not in app.extensions
