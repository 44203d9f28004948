from __future__ import annotations

# gh / API operations
GH_TIMEOUT_SECONDS = 60.0

# Idempotent gh read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# npm registry queries and dependency commands
NPM_VIEW_TIMEOUT_SECONDS = 60.0
NPM_COMMAND_TIMEOUT_SECONDS = 15 * 60.0

# Remote tag propagation
TAG_SETTLE_DELAY_SECONDS = 5.0
RELEASE_CREATE_ATTEMPTS = 3
RELEASE_CREATE_RETRY_DELAY_SECONDS = 3.0

# Pull request checks
CHECKS_POLL_SECONDS = 10.0
CHECKS_NONE_REPORTED_GRACE_SECONDS = 60.0

# Release-triggered workflows
WORKFLOW_POLL_SECONDS = 15.0
WORKFLOW_START_GRACE_SECONDS = 2 * 60.0
