'''
Callboard Test Suite

Test Modules:
-------------
- test_normalization.py: raw call record normalization
  - Timestamp encodings and resolution order
  - Duration rounding, group keys, totality on malformed input

- test_grouping.py: call grouping
  - Representative selection in any arrival order
  - Totals, ordering, idempotence, detail-view helpers

- test_outcome_classifier.py: outcome classification strategies
  - Keyword heuristic, exact-label table, reconciliation report

- test_snapshot_diff.py: snapshot construction and diffing
  - No alerts on first observation, exact deltas, silent decreases
  - "Today only" eligibility, alert labels

- test_scheduler.py: virtual time, interval timer, event-loop timers

- test_notifications.py: one-at-a-time FIFO alert sequencing

- test_polling.py: the live session state machine
  - Dirty suspension, stale discard, retries, refresh

- test_upstream.py: HTTP client against httpx.MockTransport

- test_api.py: FastAPI routes via TestClient

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
