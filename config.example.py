# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit .env. This file exists to make the repo self-documenting.
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Console logging level (default: WARNING; the log file always gets DEBUG).",
    # Behaviour
    "TASKSYNC_COLLECTION": "Document collection holding tasks (default: tasks).",
    "TASKSYNC_REQUIRE_VERIFIED_EMAIL": "Block task commands until /verify (true/false, default: true).",
    # Paths (gitignored)
    "TASKSYNC_DATA_DIR": "Local data directory (default: .local/tasksync).",
    "TASKSYNC_STORE_DB_PATH": "SQLite path for tasks and users (default: <data_dir>/tasksync.sqlite3).",
    "TASKSYNC_SESSION_PATH": "Persisted sign-in session (default: <data_dir>/session.json).",
}
