"""Release promotion pipeline.

Layers, leaves first:
- tags, matrix, model: pure rules and data
- host, gh: release host adapters
- locator, fetcher, repackager (archive), publisher: pipeline steps
- job: orchestration; reconcile: recovery of partial publishes
"""

from __future__ import annotations
