import sys

from .workflow import main

if __name__ == '__main__':
    sys.exit(main())
