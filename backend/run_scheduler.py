import sys
from pathlib import Path

# Make the sentinel package importable when run from the repository root
BASE_DIR = Path(__file__).resolve().parent
sys.path.append(str(BASE_DIR))

from sentinel.dashboard import main

if __name__ == "__main__":
    main()
