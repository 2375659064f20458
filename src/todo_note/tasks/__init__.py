"""
Task subsystem.

Components:
- task_models.py: data structures (Task, RecurrenceTag, prefs, snapshots)
- task_store.py: SQLite-backed store + async command port
- recurrence.py: cycle evaluation and the "mark done" decision
- controller.py: optimistic in-memory view reconciled against the store
- soft_delete.py: timed delete with undo
- debounce.py: settle timers for title/note edits
- migration.py: one-time import of the legacy JSON snapshot
- views.py: filtering helpers for listings
"""
