"""Helpers that run the pipeline against a FakeSpace and inspect the result."""

import os
from typing import Dict

from confluence_mirror.file_mapper import ContentStore
from confluence_mirror.manifest import ManifestStore
from confluence_mirror.models import SpaceScope
from confluence_mirror.pipeline import ExportOptions, Pipeline, RunMode


def make_pipeline(space, output_dir, mode=RunMode.NORMAL, event_sink=None, cancel_event=None, **options):
    """Build a pipeline exporting space into output_dir (one worker unless given)."""
    store = ContentStore(str(output_dir))
    scope = options.pop("scope", SpaceScope(space.space_key))
    options.setdefault("concurrency", 1)
    return Pipeline(
        space,
        store,
        ManifestStore(store.state_dir),
        ExportOptions(scope=scope, mode=mode, **options),
        event_sink=event_sink,
        cancel_event=cancel_event,
    )


def run_export(space, output_dir, mode=RunMode.NORMAL, **options):
    """Run one export and return its RunResult."""
    return make_pipeline(space, output_dir, mode, **options).run()


def read_tree(output_dir) -> Dict[str, bytes]:
    """All mirrored files by posix path, excluding the state directory."""
    tree = {}
    for root, dirs, files in os.walk(str(output_dir)):
        dirs[:] = [d for d in dirs if d != ".confluence-mirror"]
        for name in files:
            full = os.path.join(root, name)
            rel = os.path.relpath(full, str(output_dir)).replace(os.sep, "/")
            with open(full, "rb") as f:
                tree[rel] = f.read()
    return tree


def state_store(output_dir) -> ManifestStore:
    return ManifestStore(os.path.join(str(output_dir), ".confluence-mirror"))


def manifest_rows(output_dir):
    """Persisted manifest entries as comparable tuples."""
    return [(e.kind, e.id, e.path, e.hash, e.status) for e in state_store(output_dir).load()]
