"""Recurring and on-demand scrape runs over the niche x time period matrix.

Each time period has its own cron cadence (shorter windows refresh more
often). Within a run, niches are scraped one after another so at most one
browser session is open per run.
"""

import logging
import threading
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from models.job import JobResult, JobState, ScrapeJob
from models.video import TimePeriod, VideoRecord
from utils.logging import clear_job_context, set_job_context

logger = logging.getLogger(__name__)

DEFAULT_NICHES = [
    "",  # general trending feed
    "music",
    "gaming",
    "tech",
    "fashion",
    "food",
    "travel",
    "fitness",
    "education",
    "science",
    "politics",
    "business",
    "entertainment",
    "health",
    "movies",
    "tv",
]

PERIOD_SCHEDULES = {
    TimePeriod.ALL: "0 0 * * *",  # daily at midnight
    TimePeriod.DAY: "0 */6 * * *",  # every 6 hours
    TimePeriod.WEEK: "0 6 * * *",  # daily at 06:00
    TimePeriod.MONTH: "0 12 * * 1",  # Mondays at 12:00
}

FetchFn = Callable[[str, str], str]
ExtractFn = Callable[[str, str, str], List[VideoRecord]]
PersistFn = Callable[[List[VideoRecord]], Tuple[int, int]]


def parse_niches(niches: Union[str, Sequence[str], None]) -> List[str]:
    """Normalize a niche list; the general niche "" always comes first.

    Empty input means the default list.
    """
    if niches is None:
        return list(DEFAULT_NICHES)
    if isinstance(niches, str):
        niches = niches.split(",")

    parsed: List[str] = []
    for niche in niches:
        niche = (niche or "").strip()
        if niche and niche not in parsed:
            parsed.append(niche)
    if not parsed:
        return list(DEFAULT_NICHES)
    return [""] + parsed


def normalize_periods(time_periods: Optional[Iterable[str]]) -> List[str]:
    """Keep valid periods in order, without repeats; ["all"] when none survive."""
    periods: List[str] = []
    for period in time_periods or []:
        if TimePeriod.is_valid(period) and period not in periods:
            periods.append(period)
    return periods or [TimePeriod.ALL]


class SchedulerState:
    """Active niche list and the cron jobs registered for each period."""

    def __init__(
        self,
        niches: Union[str, Sequence[str], None] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self._lock = threading.Lock()
        self._niches = parse_niches(niches)
        self._scheduler = scheduler
        self._job_ids: dict = {}

    @property
    def niches(self) -> List[str]:
        with self._lock:
            return list(self._niches)

    def set_niches(self, niches: Union[str, Sequence[str], None]) -> List[str]:
        """Replace the niche list; empty input resets to the defaults."""
        parsed = parse_niches(niches)
        with self._lock:
            self._niches = parsed
        if parsed == DEFAULT_NICHES:
            logger.info("Reset to default niches")
        else:
            logger.info(f"Using custom niches: {', '.join(n or 'general' for n in parsed)}")
        return list(parsed)

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running and bool(self._job_ids)

    @property
    def scheduler(self) -> Optional[BackgroundScheduler]:
        return self._scheduler

    @property
    def scheduled_periods(self) -> List[str]:
        return list(self._job_ids)

    def start(self, run_period: Callable[[str], object]) -> None:
        """Register one cron job per time period and start the scheduler."""
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler()

        for period, cron in PERIOD_SCHEDULES.items():
            if period in self._job_ids:
                logger.info(f"Scheduler for {period} period is already running")
                continue
            job = self._scheduler.add_job(
                run_period,
                CronTrigger.from_crontab(cron),
                args=[period],
                id=f"scrape-{period}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self._job_ids[period] = job.id
            logger.info(f"Scheduler for {period} period will run on '{cron}'")

        if not self._scheduler.running:
            self._scheduler.start()
        logger.info("All schedulers started")

    def stop(self) -> int:
        """Remove the registered jobs and shut the scheduler down.

        The scheduler is dropped after shutdown; the next start() builds a
        fresh one.
        """
        if not self._job_ids:
            logger.info("No active schedulers to stop")
            return 0

        stopped = 0
        for period, job_id in list(self._job_ids.items()):
            self._scheduler.remove_job(job_id)
            del self._job_ids[period]
            stopped += 1
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info(f"Stopped {stopped} schedulers")
        return stopped


class SchedulingController:
    """Runs scrape jobs for each (niche, time period) and reports per-niche results."""

    def __init__(
        self,
        state: SchedulerState,
        fetch_fn: FetchFn,
        extract_fn: ExtractFn,
        persist_fn: PersistFn,
    ):
        self.state = state
        self.fetch_fn = fetch_fn
        self.extract_fn = extract_fn
        self.persist_fn = persist_fn

    def start(self) -> None:
        self.state.start(self.run_for_period)

    def stop(self) -> int:
        return self.state.stop()

    def run_job(self, niche: str, time_period: str) -> ScrapeJob:
        """Run one job to a terminal state. Never raises for fetch, extract or save failures.

        The page is fetched while FETCHING and parsed into records while
        EXTRACTING, so a failed job reports the stage that broke.
        """
        job = ScrapeJob(niche=niche, time_period=time_period)
        set_job_context(job.job_id)
        try:
            job.advance(JobState.FETCHING)
            logger.info(f"Scraping niche '{niche or 'general'}' for {time_period}")
            html = self.fetch_fn(niche, time_period)

            job.advance(JobState.EXTRACTING)
            records = self.extract_fn(html, niche, time_period)
            records = list({r.video_id: r for r in records}.values())
            job.count = len(records)
            logger.info(f"Found {job.count} videos")

            job.advance(JobState.PERSISTING)
            saved, failed = self.persist_fn(records) if records else (0, 0)
            if records and saved == 0:
                job.fail(f"Failed to save all {failed} videos")
                logger.error(job.error)
            else:
                if failed:
                    logger.warning(f"{failed} of {len(records)} videos failed to save")
                job.advance(JobState.DONE)
        except Exception as e:
            logger.error(f"Job failed in state {job.state.value}: {e}")
            job.fail(str(e))
        finally:
            clear_job_context()
        return job

    def run_for_period(self, time_period: str, niches: Optional[Sequence[str]] = None) -> List[JobResult]:
        """Scrape every niche for one period, sequentially."""
        niches = list(niches) if niches is not None else self.state.niches
        logger.info(f"Starting scraping for {time_period} across {len(niches)} niches")

        results = [self.run_job(niche, time_period).to_result() for niche in niches]

        failed = sum(1 for r in results if not r.success)
        logger.info(
            f"Finished {time_period}: {len(results) - failed} succeeded, {failed} failed, "
            f"{sum(r.count for r in results)} videos"
        )
        return results

    def run_on_demand(
        self,
        time_periods: Optional[Iterable[str]] = None,
        niches_override: Union[str, Sequence[str], None] = None,
    ) -> List[JobResult]:
        """Run the given periods now.

        Args:
            time_periods: Periods to scrape; invalid entries are dropped,
                repeats collapsed, and ["all"] used when nothing is left
            niches_override: Niche list for this run only

        Returns:
            One JobResult per (period, niche), in run order
        """
        periods = normalize_periods(time_periods)
        niches = parse_niches(niches_override) if niches_override is not None else None

        results: List[JobResult] = []
        for period in periods:
            results.extend(self.run_for_period(period, niches))
        return results

    def run_in_background(
        self,
        time_periods: Optional[Iterable[str]] = None,
        niches_override: Union[str, Sequence[str], None] = None,
    ) -> threading.Thread:
        """Fire-and-forget on-demand run on a daemon thread."""
        periods = normalize_periods(time_periods)
        thread = threading.Thread(
            target=self.run_on_demand,
            args=(periods, niches_override),
            name=f"on-demand-scrape-{'-'.join(periods)}",
            daemon=True,
        )
        thread.start()
        logger.info(f"Started on-demand scraping for {', '.join(periods)}")
        return thread
