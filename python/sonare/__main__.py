"""Allow ``python -m sonare``."""

from .server import main

if __name__ == "__main__":
    main()
