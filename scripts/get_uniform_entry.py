#!/usr/bin/env python3
"""
Fetch a Uniform entry by id and print it or save it to data/entries/<id>.json.

Useful to check which fields an entry carries before and after an apply run.

Usage:
  python scripts/get_uniform_entry.py <entry_id> [--save-file]
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.config import load_config
from src.migrators.payloads import referenced_asset_ids
from src.migrators.uniform_api import UniformApi
from src.utils.errors import ReconciliationError


def get_entry_content(api, entry_id, save_file=False):
    """
    Fetches an entry and optionally saves it to a file.

    Args:
        api (UniformApi): The Uniform client.
        entry_id (str): The ID of the entry to fetch.
        save_file (bool): If True, saves the entry to a JSON file.
                          Otherwise, prints to stdout.
    """
    entry = api.get_entry(entry_id)
    assets = referenced_asset_ids(entry.get("fields") or {})
    print(f"Image assets referenced: {', '.join(assets) if assets else 'none'}", file=sys.stderr)

    if save_file:
        output_dir = os.path.join("data", "entries")
        os.makedirs(output_dir, exist_ok=True)
        output_path = os.path.join(output_dir, f"{entry_id}.json")
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(entry, f, ensure_ascii=False, indent=4)
        print(f"Successfully saved entry to {output_path}", file=sys.stderr)
    else:
        print(json.dumps(entry, ensure_ascii=False, indent=4))


def main():
    """Main function to parse arguments and fetch the entry."""
    parser = argparse.ArgumentParser(description="Fetch a Uniform entry by its ID.")
    parser.add_argument("entry_id", help="The ID of the entry to fetch.")
    parser.add_argument(
        "--save-file",
        action="store_true",
        help="Save the entry to a JSON file in data/entries/.",
    )
    args = parser.parse_args()

    try:
        config = load_config()
        config.require_credentials()
        get_entry_content(UniformApi.from_config(config), args.entry_id, args.save_file)
    except ReconciliationError as e:
        print(f"An error occurred: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
