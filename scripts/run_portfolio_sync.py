"""
CLI: Airtable -> Cloudinary -> datasets por variante.

Wrapper para ejecutar desde el repo sin instalar el paquete.

Variables de entorno (ver .env):
  - AIRTABLE_TOKEN, AIRTABLE_BASE_ID
  - USE_CLOUDINARY, CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET
  - OUTPUT_DIR, STATE_DIR, PORTFOLIO_VARIANTS

Ejecución:
  python scripts/run_portfolio_sync.py
  python scripts/run_portfolio_sync.py --force-full
"""

from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

load_dotenv(_REPO_ROOT / ".env", override=False)

from portfolio_sync.cli import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
