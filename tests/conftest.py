"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add src to Python path so tests run without an editable install
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(src_path))

# Shared bridge test helpers (plain module, importable as ``bridge_helpers``)
helpers = Path(__file__).parent / "ordbridge_tests"
if helpers.exists():
    sys.path.insert(0, str(helpers))
