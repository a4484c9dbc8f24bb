"""Main entry point for the file system simulator."""

import logging
import sys
from shell import Shell
from constants import TOTAL_BLOCKS


def main():
    """Main entry point."""
    args = sys.argv[1:]
    debug = '--debug' in args
    args = [arg for arg in args if arg != '--debug']

    if args and args[0] in ('-h', '--help'):
        print("Block File System Simulator")
        print("=" * 60)
        print("\nUsage: python main.py [--debug] [<disk_image> [<num_blocks>]]")
        print("\nExample:")
        print("  python main.py disk.img 100")
        print("\nWithout a disk image the file system lives only in memory.")
        print(f"num_blocks defaults to {TOTAL_BLOCKS}.")
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    disk_path = args[0] if args else None
    blocks = TOTAL_BLOCKS
    if len(args) > 1:
        try:
            blocks = int(args[1])
            if blocks < 1:
                print("Error: Number of blocks must be at least 1")
                sys.exit(1)
        except ValueError:
            print("Error: Invalid number of blocks")
            sys.exit(1)

    # Run shell
    shell = Shell()
    shell.run(disk_path, blocks)


if __name__ == "__main__":
    main()
