import sys

from balanced_split.cli import main

if __name__ == "__main__":
    sys.exit(main())
