"""
Migration script to add the login-lockout columns to the users table
if they don't exist. Run this once against databases created before
lockout support.
"""
from sqlalchemy import inspect, text

from clinic.database import db

LOCKOUT_COLUMNS = {
    'failed_login_attempts': 'INTEGER NOT NULL DEFAULT 0',
    'account_locked_until': 'TIMESTAMP',
}


def migrate_add_lockout_columns():
    """Add failed_login_attempts / account_locked_until to users. Returns added column names."""
    inspector = inspect(db.engine)
    columns = [c['name'] for c in inspector.get_columns('users')]

    added = []
    with db.engine.begin() as conn:
        for name, ddl in LOCKOUT_COLUMNS.items():
            if name in columns:
                print(f"✓ {name} column already exists")
                continue
            print(f"Adding '{name}' column to users table...")
            conn.execute(text(f"ALTER TABLE users ADD COLUMN {name} {ddl}"))
            added.append(name)
    return added


if __name__ == '__main__':
    from app import app
    with app.app_context():
        migrate_add_lockout_columns()
