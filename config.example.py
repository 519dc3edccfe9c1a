# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLITE_APP_NAME": "App display name (default: Task Regression Dashboard).",
    "TASKLITE_LOG_LEVEL": "Console logging level (default: INFO).",
    # Backend (required; startup fails without it)
    "TASKLITE_API_KEY": "Backend API key.",
    "TASKLITE_APP_ID": "Backend app identifier.",
    "TASKLITE_PROJECT_ID": "Backend project identifier.",
    "TASKLITE_ENDPOINT": "Backend endpoint (default: sqlite:///<tasks_db_path>).",
    # Live feed
    "TASKLITE_FEED_POLL_SECONDS": "How often the task feed checks for changes (default: 0.5).",
    # Paths (gitignored)
    "TASKLITE_DATA_DIR": "Local data directory (default: .local/tasklite).",
    "TASKLITE_TASKS_DB_PATH": "Task store SQLite path (default: <data_dir>/tasks.sqlite3).",
    "TASKLITE_PRINCIPAL_PATH": "Anonymous sign-in id file (default: <data_dir>/principal).",
}
