"""Allow ``python -m rin.cli``."""

from rin.cli import main

if __name__ == "__main__":
    main()
