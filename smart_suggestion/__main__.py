"""Allow running as `python -m smart_suggestion`."""

from .cli import main

if __name__ == "__main__":
    main()
