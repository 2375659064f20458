# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)
"""

ENV_VARS = {
    # App / logging
    "TODO_NOTE_APP_NAME": "App display name (default: Simple Todo Note).",
    "TODO_NOTE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Connectors
    "TODO_NOTE_CONSOLE_ENABLED": "Run the console REPL; false = startup work only (true/false).",
    # Paths (gitignored)
    "TODO_NOTE_DATA_DIR": "Local data directory (default: .local/todo_note).",
    "TODO_NOTE_DB_PATH": "SQLite path (default: <data_dir>/simple_todo_note.db).",
    "TODO_NOTE_LEGACY_PATH": (
        "Legacy JSON snapshot imported once at startup "
        "(default: <data_dir>/simple_todo_note.todos.v1.json)."
    ),
    # Tuning
    "TODO_NOTE_UNDO_GRACE_SECONDS": "Seconds a delete can be undone (default: 5).",
    "TODO_NOTE_EDIT_DEBOUNCE_MS": "Pause before a title/note edit is saved (default: 220).",
    "TODO_NOTE_TITLE_MAX_LENGTH": "Maximum title length (default: 160).",
}
