import threading

from flask import current_app
from services.payments import verify_pending_payments
from services.orders import sweep_order_statuses


def run_reconciliation_pass():
    """One pass of the background job: poll gateways, then resync order statuses."""
    current_app.logger.info("Running scheduled payment verification task...")
    summary = verify_pending_payments()
    summary["orders_synced"] = sweep_order_statuses()
    return summary


class PaymentScheduler:
    """Runs ``run_reconciliation_pass`` every ``interval`` seconds in a daemon thread.

    Start it in a single process only; every write it makes is conditional,
    so an accidental second copy is wasteful but harmless.
    """

    def __init__(self, app, interval=None):
        self.app = app
        self.interval = interval or app.config["PAYMENT_VERIFY_INTERVAL"]
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="payment-scheduler", daemon=True)
        self._thread.start()
        self.app.logger.info("Payment verification scheduler started (every %ss)", self.interval)

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)

    def run_once(self):
        with self.app.app_context():
            try:
                return run_reconciliation_pass()
            except Exception:
                self.app.logger.exception("Scheduled payment verification failed")
                return None

    def _loop(self):
        while not self._stop.wait(self.interval):
            self.run_once()
