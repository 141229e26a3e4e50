import sqlite3
from pathlib import Path

import config


def init_db(db_path=None):
    db_path = Path(db_path or config.DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    cur.execute('''
    CREATE TABLE IF NOT EXISTS clients (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        address TEXT,
        notes TEXT,
        created_at TEXT NOT NULL
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        client_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        status TEXT DEFAULT 'planning',
        budget TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (client_id) REFERENCES clients (id)
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS invoices (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        client_id INTEGER NOT NULL,
        project_id INTEGER,
        recurring_invoice_id INTEGER,
        invoice_number TEXT UNIQUE NOT NULL,
        status TEXT DEFAULT 'draft',
        issue_date TEXT NOT NULL,
        due_date TEXT,
        subtotal TEXT DEFAULT '0.00',
        tax_amount TEXT DEFAULT '0.00',
        total TEXT DEFAULT '0.00',
        notes TEXT,
        created_at TEXT NOT NULL
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS invoice_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        invoice_id INTEGER NOT NULL,
        description TEXT NOT NULL,
        quantity TEXT DEFAULT '1.00',
        unit_price TEXT NOT NULL,
        total TEXT NOT NULL,
        FOREIGN KEY (invoice_id) REFERENCES invoices (id) ON DELETE CASCADE
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS job_costs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        project_id INTEGER NOT NULL,
        category TEXT NOT NULL,
        description TEXT,
        amount TEXT NOT NULL,
        cost_date TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (project_id) REFERENCES projects (id)
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS team_members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        role TEXT,
        hourly_rate TEXT DEFAULT '0.00',
        created_at TEXT NOT NULL
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS recurring_invoices (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        client_id INTEGER NOT NULL,
        project_id INTEGER,
        name TEXT NOT NULL,
        frequency TEXT NOT NULL,
        status TEXT DEFAULT 'active',
        start_date TEXT NOT NULL,
        end_date TEXT,
        subtotal TEXT DEFAULT '0.00',
        tax_amount TEXT DEFAULT '0.00',
        total TEXT DEFAULT '0.00',
        next_invoice_date TEXT,
        created_at TEXT NOT NULL
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS gps_time_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        team_member_id INTEGER NOT NULL,
        project_id INTEGER NOT NULL,
        clock_in_time TEXT NOT NULL,
        clock_out_time TEXT,
        clock_in_latitude REAL,
        clock_in_longitude REAL,
        clock_out_latitude REAL,
        clock_out_longitude REAL,
        duration_minutes INTEGER,
        hourly_rate TEXT,
        total_cost TEXT,
        approval_status TEXT DEFAULT 'pending',
        notes TEXT
    )
    ''')
    cur.execute('CREATE INDEX IF NOT EXISTS idx_gps_member ON gps_time_entries (user_id, team_member_id)')
    cur.execute('CREATE INDEX IF NOT EXISTS idx_recurring_user ON recurring_invoices (user_id, status)')
    conn.commit()
    conn.close()
    return db_path


if __name__ == '__main__':
    path = init_db()
    print(f"Initialized database at {path}")
