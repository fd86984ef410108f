"""
gitvis API entrypoint.

Run with: python3 -m gitvis.api
"""
from gitvis.api.app import main


if __name__ == "__main__":
    main()
