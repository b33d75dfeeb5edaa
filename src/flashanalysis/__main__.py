"""Allows ``python -m flashanalysis``."""
from flashanalysis.main import main

if __name__ == "__main__":
    main()
