# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest configuration for the suite",
#   "sections": [
#     {"id": "globals", "name": "sys.path bootstrap", "anchor": "GLB", "kind": "setup"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Makes the ``src`` layout importable when the package has not been installed
(``pip install -e .`` is still the recommended setup).

Usage:
    pytest tests/safe_extract
"""

from __future__ import annotations

import sys
from pathlib import Path

# --- Globals ---

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
