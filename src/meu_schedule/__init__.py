"""Personal schedule tracker: subjects, tasks, reminders, agenda and calendar views."""

__version__ = "0.1.0"
