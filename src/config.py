"""
config.py

Central tunables for the sentinel.

This file contains ONLY constants and tunables. It must NOT read environment
variables or perform I/O; runtime configuration belongs in env/.

All durations are seconds.
"""

from __future__ import annotations

# ============================================================
# BACKEND / CHAIN POLLING
# ============================================================

# Bucket and file indexing on the MSP backend: (retries, delay)
BUCKET_INDEX_POLL = (40, 3.0)
FILE_INDEX_POLL = (40, 3.0)

# Entity leaving the backend listing after deletion
ABSENCE_POLL = (40, 3.0)

# On-chain storage request lookups after submission
STORAGE_REQUEST_VISIBLE_POLL = (20, 3.0)
STORAGE_REQUEST_CLEARED_POLL = (60, 5.0)
BUCKET_ABSENT_POLL = (20, 3.0)

FULFILLMENT_EVENT_TIMEOUT = 660.0
FINALIZATION_TIMEOUT = 120.0

# How many blocks past best to wait for before checking on-chain absence
BUCKET_DELETE_FINALITY_BLOCKS = 2

# ============================================================
# RETRY POLICY
# ============================================================

# Uploads: >=5 attempts within an 8 minute window
UPLOAD_RETRY_MIN_ATTEMPTS = 5
UPLOAD_RETRY_MAX_TOTAL = 480.0
UPLOAD_RETRY_BASE_DELAY = 10.0
UPLOAD_RETRY_MAX_DELAY = 60.0

# Download of a just-indexed file
DOWNLOAD_RETRY_MIN_ATTEMPTS = 3
DOWNLOAD_RETRY_MAX_TOTAL = 120.0
DOWNLOAD_RETRY_BASE_DELAY = 5.0
DOWNLOAD_RETRY_MAX_DELAY = 30.0

BACKOFF_FACTOR = 1.5

# ============================================================
# STORAGE
# ============================================================

BUCKET_NAME_PREFIX = "monitor-"
HEAVY_BUCKET_NAME_PREFIX = "monitor-heavy-"
MONITOR_FILE_LOCATION = "monitor/adolphus.jpg"
RANDOM_PAYLOAD_SIZE = 64 * 1024

# ============================================================
# HEAVY PIPELINE DEFAULTS
# ============================================================

HEAVY_INITIAL_FILES = 10
HEAVY_DELETE_FIRST = 5
HEAVY_SECOND_BATCH = 5
HEAVY_MIN_FILE_SIZE = 100 * 1024
HEAVY_MAX_FILE_SIZE = 1024 * 1024

HEAVY_UPLOAD_CONCURRENCY = 3
HEAVY_SR_CONFIRM_CONCURRENCY = 3
HEAVY_SUBMIT_SPACING = 0.25

HEAVY_REPLICAS_BATCH1 = 1
HEAVY_REPLICAS_BATCH2 = 2

HEAVY_MIN_ISSUE_TO_UPLOAD = 60.0
HEAVY_POST_BULK_WAIT = 10.0

HEAVY_SR_VISIBLE_TIMEOUT = 120.0
HEAVY_SR_CLEARED_TIMEOUT = 600.0

HEAVY_READY_POLL_INTERVAL = 30.0
HEAVY_READY_POLL_TOTAL = 660.0

HEAVY_BUCKET_READY_POLL = (220, 3.0)

HEAVY_PROGRESS_INTERVAL = 30.0

# ============================================================
# BADGES
# ============================================================

BADGE_SCHEMA_VERSION = 1
BADGE_CACHE_SECONDS = 300
BADGE_LABEL_PREFIX = "Sanity"
HEAVY_BADGE_LABEL_PREFIX = "Heavy"

BADGE_COLORS = {
    "passed": "brightgreen",
    "failed": "red",
    "skipped": "lightgrey",
}

# ============================================================
# SWEEP
# ============================================================

SWEEP_SUBMIT_SPACING = 0.5
SWEEP_FATAL_MARKERS = ("NotEnoughBalance",)
