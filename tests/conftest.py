import sys
from pathlib import Path

# Ensure the src layout is importable for direct pytest runs
SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))
