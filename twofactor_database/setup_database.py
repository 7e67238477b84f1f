import logging
import os
import sqlite3

logger = logging.getLogger(__name__)

DATABASE_FILE = 'database/2fa_database.db'


def setup_database(path: str = DATABASE_FILE):
    """Create the credential tables if they do not exist yet."""

    # make sure the parent directory exists
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(path)
    cursor = conn.cursor()

    # one row per enrolled identity; the last_*_counter columns are the replay guards
    # (TOTP time step and HOTP event counter are separate sequences)
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        secret_key TEXT NOT NULL,
        key_representation TEXT NOT NULL DEFAULT 'BASE32',
        last_totp_counter INTEGER,
        last_hotp_counter INTEGER,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        last_login TIMESTAMP
    )
    ''')

    cursor.execute('''
    CREATE TABLE IF NOT EXISTS scratch_codes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        code INTEGER NOT NULL,
        digits INTEGER NOT NULL,
        consumed BOOLEAN NOT NULL DEFAULT 0,
        consumed_at TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    ''')

    # verification attempts; the submitted code itself is never stored
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS otp_attempts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        method TEXT NOT NULL,
        is_success BOOLEAN,
        attempted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id)
    )
    ''')

    conn.commit()
    conn.close()
    logger.info("Database setup completed at %s", path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    setup_database()
