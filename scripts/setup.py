#!/usr/bin/env python3
"""
Paintwall Project Setup Script

Initializes the project structure for a fresh clone:
1. Creates the uploads/ and data/ directories named in config.yaml
2. Generates slot.json with one slot per grid cell (row/col only)

Usage (from project root, after `pip install -e .`):
    python scripts/setup.py              # Full setup (dirs + slot.json)
    python scripts/setup.py --dirs-only  # Only create directories
    python scripts/setup.py --dry-run    # Preview what would be created
    python scripts/setup.py --force      # Overwrite an existing slot.json
"""

import argparse
import json
import sys
from pathlib import Path

from paintwall.config import load_config, resolve_path
from paintwall.errors import ConfigurationError
from paintwall.layout import load_slot_definitions


def build_slots(columns: int, slot_count: int) -> list[dict]:
    """Slot definitions filling the grid left to right, top to bottom."""
    return [
        {"slot": i + 1, "row": i // columns, "col": i % columns}
        for i in range(slot_count)
    ]


def create_directories(paths: list[Path], dry_run: bool = False) -> int:
    """Create each directory if missing"""
    created = 0

    for path in paths:
        if path.exists():
            print(f"  Exists: {path}")
            continue
        if dry_run:
            print(f"  Would create: {path}/")
        else:
            path.mkdir(parents=True, exist_ok=True)
            print(f"  Created: {path}/")
        created += 1

    return created


def write_slot_file(slot_file: Path, layout: dict, force: bool = False, dry_run: bool = False) -> bool:
    """Write slot.json unless one exists. Returns True if written (or would be)."""
    if slot_file.exists() and not force:
        print(f"  Exists: {slot_file}")
        try:
            slots = load_slot_definitions(slot_file, layout["slot_count"])
            enabled = sum(1 for slot in slots if slot.is_active)
            print(f"  {len(slots)} slots, {enabled} enabled")
        except ConfigurationError as e:
            print(f"  Warning: {e.message}")
        return False

    slots = build_slots(layout["columns"], layout["slot_count"])
    if dry_run:
        print(f"  Would write {len(slots)} slots to {slot_file}")
        return True

    with open(slot_file, "w") as f:
        json.dump(slots, f, indent=2)
    print(f"  Wrote {len(slots)} slots to {slot_file}")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="Initialize Paintwall project structure",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/setup.py              # Full setup
    python scripts/setup.py --dirs-only  # Only create directories
    python scripts/setup.py --dry-run    # Preview changes without making them
        """
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Config file to read (default: config.yaml in the project root)'
    )
    parser.add_argument(
        '--dirs-only',
        action='store_true',
        help='Only create directories, skip slot.json'
    )
    parser.add_argument(
        '--force',
        action='store_true',
        help='Overwrite an existing slot.json'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Preview what would be created without making changes'
    )
    args = parser.parse_args()

    print("=" * 50)
    print("Paintwall Project Setup")
    print("=" * 50)

    if args.dry_run:
        print("\n[DRY RUN - No changes will be made]\n")

    config = load_config(args.config)

    print(f"\n{'[Directories]':=^50}")
    dirs = [resolve_path(config, "uploads"), resolve_path(config, "data")]
    dirs_created = create_directories(dirs, args.dry_run)
    print(f"\n{dirs_created} directories {'would be ' if args.dry_run else ''}created")

    if not args.dirs_only:
        print(f"\n{'[Slots]':=^50}")
        write_slot_file(resolve_path(config, "slots"), config["layout"], args.force, args.dry_run)

    print(f"\n{'[Summary]':=^50}")
    if args.dry_run:
        print("Dry run complete. Run without --dry-run to apply changes.")
    else:
        print("Setup complete!")
        print("\nNext steps:")
        print("  1. Adjust slot.json positions (x/y/w/h) for your display")
        print("  2. Set auth.password in config.yaml (or PAINTWALL_PASSWORD)")
        print("  3. Start the server: uvicorn paintwall.server:app --port 3000")

    return 0


if __name__ == "__main__":
    sys.exit(main())
