"""
Start verifystate straight from a source checkout, without installing it.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

if __name__ == "__main__":
    from verifystate.main import main

    sys.exit(main())
