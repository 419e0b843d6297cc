"""Integration tests for the export pipeline.

These tests run the real pipeline (discovery queue, worker pool, converter,
link resolver, content store and manifest store) against an in-memory
FakeSpace and a temporary output directory. Only the Confluence API itself
is replaced.

Test Coverage:
- Export: traversal, placeholders, link resolution, manifest statuses
- Incremental runs: unchanged, changed, removed and moved items
- Resume: cancellation, checkpoints and resumed runs matching full runs
- Failures: retries, denied items, thresholds and persistence errors
"""
