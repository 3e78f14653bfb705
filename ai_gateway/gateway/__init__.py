"""AI Provider Gateway Layer.

Provides async infrastructure for dispatching chat completions
to AI backends with:
  - Provider Adapters (protocol differences, key redaction)
  - Retry/Backoff Executor (exponential backoff, optional jitter)
  - Health Monitor (passive records + active checks)
  - Response Cache (TTL, fingerprint keys)
  - Usage tracking and background conversation logging
"""
