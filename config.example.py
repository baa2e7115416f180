# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (the Matrix password). Keep them in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "MEU_APP_NAME": "App display name (default: meu).",
    "MEU_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Identity
    "MEU_USER_ID": "Opaque id of the schedule document to open (default: $USER, else 'local').",
    # Paths (gitignored)
    "MEU_DATA_DIR": "Local data directory (default: .local/meu).",
    "MEU_STATE_DB_PATH": "Schedule document SQLite path (default: <data_dir>/schedule.sqlite3).",
    "MEU_EXPORT_PATH": "Default /export target (default: <data_dir>/meu-data.json).",
    # Reminders
    "MEU_NOTIFICATIONS_ENABLED": "Fire reminders at all (true/false, default: true).",
    "MEU_TICK_SECONDS": "Reminder runner heartbeat in seconds (default: 30, minimum: 1).",
    # Connectors
    "MEU_CONSOLE_ENABLED": "Interactive console and console reminders (true/false, default: true).",
    "MEU_MATRIX_ENABLED": "Also deliver reminders to a Matrix room (true/false, default: false).",
    # Matrix
    "MEU_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "MEU_MATRIX_USER_ID": "Matrix user ID used to send reminders.",
    "MEU_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "MEU_MATRIX_ROOM": "Room ID that receives reminder messages.",
    "MEU_MATRIX_STORE_PATH": "Matrix session directory (default: <data_dir>/matrix_store).",
}
