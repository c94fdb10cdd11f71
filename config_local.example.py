# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets and everything else. Only the connector switches
below are read from this file.
"""

# Run only the Matrix connector (no console REPL)
# CONSOLE_ENABLED = False
# MATRIX_ENABLED = True
