"""
Runs a function repeatedly on a background thread.
"""
import logging
import threading
import time

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Calls loop() over and over on a daemon thread until stop() is called.
        An exception from one pass goes to exception_handler() and the next pass runs as usual.
    """

    def __init__(self, fn=None, args=(), name=None, log=logger):
        """
        :param fn called with args on each pass, unless loop() is overridden
        :param name names the thread, which shows up in the log
        """
        self.fn = fn
        self.args = args
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log
        self._lock = threading.Lock()

    def start(self):
        """
        Starts the background thread, unless it's already running.
        """
        with self._lock:
            if self.background_thread is None:
                self.stop_event.clear()
                t = threading.Thread(target=self._run, name=self.name, daemon=True)
                self.background_thread = t
                t.start()

    def exception_handler(self, e):
        self.logger.exception("error in %s: %s" % (self.name, e))

    def _run(self):
        """ the body of the thread. """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting" % self.name)

    def _do(self, callme):
        """ runs one step, logging what it raises. """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ runs once on the thread before the first pass. """
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ runs once on the thread after the last pass. """
        pass

    def running(self):
        return not self.stop_event.is_set()

    def stop(self, timeout=None):
        self.stop_event.set()
        with self._lock:
            thread = self.background_thread
            self.background_thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
