import time

from iocpgateway.support.mixins import CommonEqualityMixin


class RetryStrategy:
    """ retries immediately, every time. """
    def __call__(self, current_time=None, dry_run=False):
        return 0


class PeriodRetryStrategy(RetryStrategy, CommonEqualityMixin):
    """ allows an attempt at most once every retry_period seconds. """

    def __init__(self, retry_period, last_tried=None):
        """
        :param retry_period: The retry period in seconds.
        :param last_tried: the time of the previous attempt, or None if there hasn't been one
        """
        self.last_tried = last_tried
        self.retry_period = retry_period

    def __call__(self, current_time=None, dry_run=False):
        """return the length of time until an operation should be retried.
            A result of zero or less means try now, and the attempt is recorded.
            :param current_time: the time now. Defaults to time.time()
            :param dry_run: when True, the last tried time is not updated
        """
        if current_time is None:
            current_time = time.time()
        result = self._time_to_retry(current_time)
        if not dry_run and result <= 0:
            self.last_tried = current_time
        return result

    def _time_to_retry(self, current_time):
        return 0 if self.last_tried is None else self.retry_period - (current_time - self.last_tried)
