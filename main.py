"""
Entry point for the image → entry reconciliation tool.

Each stage is its own command so the mapping file can be reviewed and
edited between them::

    python main.py check        # verify credentials and API connectivity
    python main.py scan         # match images to entries, write image-mapping.json
    python main.py summarize    # review the mapping
    python main.py apply        # upload/assign and update the entries
"""

import argparse
import sys

from src.config import CONFIG_FILE, load_config
from src.reconciliation_tool import AssetReconciliationTool
from src.utils.errors import ReconciliationError
from src.utils.pre_flight_checks import PreFlightCheckError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Match local product images to Uniform entries and assign them.")
    parser.add_argument("--config", default=CONFIG_FILE, help="Path to the JSON configuration file")
    parser.add_argument("--images-dir", help="Folder containing the images (overrides IMAGES_DIR)")
    parser.add_argument("--mapping-file", help="Path of the mapping JSON file")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check", help="Test the connection to the Uniform API")

    scan = sub.add_parser("scan", help="Match images to entries and write the mapping file")
    scan.add_argument("--entry-mirror", help="Read entries from a local mirror folder instead of the API")
    scan.add_argument(
        "--keep-manual",
        action="store_true",
        help="Keep assignments edited by hand in the existing mapping file",
    )

    sub.add_parser("summarize", help="Summarize the mapping file")

    apply = sub.add_parser("apply", help="Assign the mapped images to their entries")
    apply.add_argument("--dry-run", action="store_true", help="Resolve assets only and write update instructions")
    apply.add_argument("--no-upload", dest="upload", action="store_false", help="Never upload missing assets")
    apply.add_argument("--strict-fetch", action="store_true", help="Skip entries that cannot be fetched before updating")
    apply.set_defaults(upload=None)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main function to run the reconciliation tool.
    """
    args = parse_args(argv)
    try:
        config = load_config(args.config)
        if args.images_dir:
            config.paths.images_dir = args.images_dir
        if args.mapping_file:
            config.paths.mapping_file = args.mapping_file
        if getattr(args, "entry_mirror", None):
            config.paths.entry_mirror_dir = args.entry_mirror
        if getattr(args, "strict_fetch", False):
            config.apply.strict_fetch = True

        tool = AssetReconciliationTool(config)

        if args.command == "check":
            tool.check()
        elif args.command == "scan":
            tool.scan(keep_manual=args.keep_manual)
            tool.log_message("Next: review the mapping file, then run: python main.py apply")
        elif args.command == "summarize":
            print(tool.summarize())
        elif args.command == "apply":
            tool.apply(dry_run=args.dry_run, upload=args.upload)
    except (ReconciliationError, PreFlightCheckError) as e:
        print(f"[ERROR] Fatal error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
