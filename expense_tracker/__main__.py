import sys

from expense_tracker.bootstrap import main


if __name__ == "__main__":
    sys.exit(main())
