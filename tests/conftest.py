"""Import helpers so `pkg.*` resolves without installing the project."""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).parent.parent

# Add the repository root to sys.path so tests can import pkg.sanitization.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
