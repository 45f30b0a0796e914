#!/usr/bin/env python3
"""
Index Rebuild Utility
Rebuilds the vector overlay from canonical SQLite rows, then optionally audits
drift and applies corrections according to CORRECTION_MODE.
"""

import argparse
import sys

from mcp_memory.core.config import get_correction_mode
from mcp_memory.core.container import get_coordinator
from mcp_memory.core.drift_rules import apply_corrections, create_correction_plan, detect_drift
from mcp_memory.core.errors import MemoryServiceError
from mcp_memory.core.rebuild import rebuild_index


def main(argv=None):
    """Rebuild vector index from SQLite memories."""
    parser = argparse.ArgumentParser(description="Rebuild the memory vector index from SQLite")
    parser.add_argument("--user-id", help="Only rebuild this user's memories")
    parser.add_argument("--check", action="store_true", help="Audit drift after rebuilding")
    args = parser.parse_args(argv)

    print("Starting vector index rebuild...")

    try:
        coordinator = get_coordinator()
    except (ValueError, MemoryServiceError) as e:
        print(f"ERROR: Memory service unavailable: {e}")
        sys.exit(1)

    summary = rebuild_index(
        coordinator.dao, coordinator.vector_store, coordinator.embedding_provider,
        user_id=args.user_id,
    )
    print(f"Found {summary.rows} memories for {summary.users} user(s) in canonical store")

    if summary.rows == 0:
        print("No entries to rebuild. Exiting.")
        return

    for memory_id in summary.failed_ids:
        print(f"ERROR: Failed to embed memory {memory_id}")
    print(f"✓ Successfully rebuilt index with {summary.embedded} vectors")

    if args.check:
        user_ids = [args.user_id] if args.user_id else coordinator.dao.get_user_ids()
        findings = []
        for user_id in user_ids:
            findings.extend(detect_drift(coordinator.dao, coordinator.vector_store, user_id))
        print(f"Drift audit found {len(findings)} finding(s)")

        if findings:
            plans = [create_correction_plan(f) for f in findings]
            results = apply_corrections(
                plans, coordinator.dao, coordinator.vector_store, coordinator.embedding_provider
            )
            applied = sum(1 for r in results if r.action_taken)
            print(f"✓ Corrections ({get_correction_mode()}): {applied}/{len(results)} applied")

    print("Index rebuild complete!")


if __name__ == "__main__":
    main()
