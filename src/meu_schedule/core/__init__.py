"""
Schedule core.

Components:
- models.py: data structures (Subject, Task, Reminder, ScheduleState)
- documents.py: persisted document <-> model conversion
- store.py: pure reducer over ScheduleState
- lifecycle.py: status transitions, undo window, archival
- session.py: stateful owner of the current ScheduleState
"""
