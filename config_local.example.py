# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env`. This file should contain only simple switches.
"""

# Example: run the startup import only, no console
# CONSOLE_ENABLED = False

# Example: longer undo window
# UNDO_GRACE_SECONDS = 10.0
