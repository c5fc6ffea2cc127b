"""autopilot - CLI entry point. See config/autopilot.example.yaml."""
import sys
from pathlib import Path

ROOT = Path(__file__).parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autopilot.cli import main

if __name__ == "__main__":
    main()
