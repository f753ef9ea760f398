from __future__ import annotations

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# Local git operations (status, add, commit, worktree)
GIT_TIMEOUT_SECONDS = 30.0

# Network-bound git operations (clone, fetch, push)
GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

# go get / go mod tidy download modules
GO_MOD_TIMEOUT_SECONDS = 5 * 60.0

# Idempotent GH read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# Notification delivery
NOTIFY_TIMEOUT_SECONDS = 30.0
NOTIFY_MAX_RETRIES = 3
NOTIFY_RETRY_DELAY_SECONDS = 2.0
