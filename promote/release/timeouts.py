from __future__ import annotations

# gh API / metadata operations
GH_TIMEOUT_SECONDS = 60.0

# Asset transfers (download/upload of a single archive)
GH_TRANSFER_TIMEOUT_SECONDS = 15 * 60.0

# Idempotent gh read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# Releases considered when looking for the current pre-release
GH_RELEASES_PAGE_SIZE = 100
