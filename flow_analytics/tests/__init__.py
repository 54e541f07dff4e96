'''
Flow Analytics Test Suite

Test Modules:
-------------
- test_klaviyo_client.py: upstream client
  - Retry-After parsing and exponential backoff with jitter
  - 429 retry budget, non-retryable upstream errors
  - Cursor pagination and report row parsing

- test_identity.py: row identity resolution
  - action id -> message id -> raw id fallback
  - non-email and unidentifiable rows dropped

- test_aggregation.py: aggregation orchestrator
  - per-day synthetic fill and (day, flow, message) dedup
  - range and auto modes, DataIntegrityEmpty
  - row budget rejection, drafts, enrichment failures, deadlines

- test_step_scoring.py: step scoring engine
  - pillar bins and bounds, low-volume blend
  - action classification and the high revenue guardrail

- test_add_step.py: add-step advisor gates and estimate

- test_api.py: HTTP contract and error bodies

Running Tests:
--------------
    pip install -e ".[test]"
    pytest flow_analytics/tests -v
    pytest flow_analytics/tests -m "not slow"
'''
