from flask import Flask, jsonify, request, send_file, g
import sqlite3
from datetime import date, datetime, timedelta, timezone
import csv
import io

import billing
import config
from billing import BillingError
from invoice_pdf import render_invoice_pdf

CLIENT_FIELDS = ('name', 'email', 'phone', 'address', 'notes')
PROJECT_STATUSES = ('planning', 'in_progress', 'on_hold', 'completed', 'cancelled')
INVOICE_STATUSES = ('draft', 'sent', 'viewed', 'partially_paid', 'paid', 'overdue', 'cancelled')
TEAM_ROLES = ('admin', 'manager', 'worker')

app = Flask(__name__)
app.config['DATABASE'] = str(config.DB_PATH)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_conn():
    if 'conn' not in g:
        g.conn = sqlite3.connect(app.config['DATABASE'])
        g.conn.row_factory = sqlite3.Row
        g.conn.execute('PRAGMA foreign_keys = ON;')
    return g.conn


@app.teardown_appcontext
def close_conn(_exc):
    conn = g.pop('conn', None)
    if conn is not None:
        conn.close()


@app.errorhandler(BillingError)
def handle_billing_error(err):
    return jsonify({'error': err.message}), err.status


@app.errorhandler(sqlite3.Error)
def handle_db_error(err):
    app.logger.exception(f"Database error on {request.path}: {err}")
    return jsonify({'error': 'Database error'}), 500


def current_user_id():
    raw = request.headers.get('X-User-Id', '').strip()
    if not raw:
        return config.DEFAULT_USER_ID
    try:
        return int(raw)
    except ValueError:
        raise BillingError('Invalid X-User-Id header')


def _require_int(data, key):
    value = data.get(key)
    if isinstance(value, bool) or value is None:
        raise BillingError(f'{key} required')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BillingError(f'{key} must be an integer')


def _require_number(data, key):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BillingError(f'{key} must be a number')
    return float(value)


def _parse_when(value, key):
    try:
        return billing.parse_timestamp(value)
    except (TypeError, ValueError):
        raise BillingError(f'{key} must be an ISO date or timestamp')


def _parse_day(value, key):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise BillingError(f'{key} must be YYYY-MM-DD')


def _check_choice(value, choices, key):
    if value not in choices:
        raise BillingError(f"{key} must be one of: {', '.join(choices)}")
    return value


def _client_or_404(conn, user_id, client_id):
    row = conn.execute('SELECT * FROM clients WHERE id = ? AND user_id = ?', (client_id, user_id)).fetchone()
    if not row:
        raise BillingError('Client not found', 404)
    return row

# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

@app.route('/api/clients')
def get_clients():
    conn = get_conn()
    cur = conn.execute('SELECT * FROM clients WHERE user_id = ? ORDER BY id', (current_user_id(),))
    return jsonify([dict(x) for x in cur.fetchall()])


@app.route('/api/clients', methods=['POST'])
def add_client():
    data = request.json or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name required'}), 400
    conn = get_conn()
    with conn:
        cur = conn.execute(
            'INSERT INTO clients (user_id, name, email, phone, address, notes, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)',
            (current_user_id(), name, data.get('email'), data.get('phone'), data.get('address'),
             data.get('notes'), utcnow().isoformat()))
    return jsonify({'id': cur.lastrowid}), 201


@app.route('/api/clients/<int:client_id>', methods=['PUT'])
def update_client(client_id):
    data = request.json or {}
    user_id = current_user_id()
    conn = get_conn()
    _client_or_404(conn, user_id, client_id)
    updates, params = [], []
    for field in CLIENT_FIELDS:
        if data.get(field) is not None:
            updates.append(f'{field} = ?')
            params.append(data[field])
    if not updates:
        return jsonify({'error': 'No fields to update'}), 400
    params.extend([client_id, user_id])
    with conn:
        conn.execute(f'UPDATE clients SET {", ".join(updates)} WHERE id = ? AND user_id = ?', params)
    return jsonify({'updated': client_id})


@app.route('/api/clients/<int:client_id>', methods=['DELETE'])
def delete_client(client_id):
    user_id = current_user_id()
    conn = get_conn()
    _client_or_404(conn, user_id, client_id)
    if conn.execute('SELECT 1 FROM projects WHERE client_id = ? LIMIT 1', (client_id,)).fetchone():
        return jsonify({'error': 'Client has projects'}), 409
    with conn:
        conn.execute('DELETE FROM clients WHERE id = ? AND user_id = ?', (client_id, user_id))
    return jsonify({'deleted': client_id})

# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@app.route('/api/projects')
def get_projects():
    conn = get_conn()
    cur = conn.execute('''
        SELECT p.*, c.name as client_name
        FROM projects p
        LEFT JOIN clients c ON p.client_id = c.id
        WHERE p.user_id = ?
        ORDER BY p.id
    ''', (current_user_id(),))
    return jsonify([dict(x) for x in cur.fetchall()])


@app.route('/api/projects', methods=['POST'])
def add_project():
    data = request.json or {}
    user_id = current_user_id()
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name required'}), 400
    client_id = _require_int(data, 'client_id')
    status = _check_choice(data.get('status', 'planning'), PROJECT_STATUSES, 'status')
    budget = str(billing.to_money(data['budget'])) if data.get('budget') is not None else None
    conn = get_conn()
    _client_or_404(conn, user_id, client_id)
    with conn:
        cur = conn.execute('''
            INSERT INTO projects (user_id, client_id, name, description, status, budget, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (user_id, client_id, name, data.get('description', ''), status, budget, utcnow().isoformat()))
    return jsonify({'id': cur.lastrowid}), 201


def _project_or_404(conn, user_id, project_id):
    row = conn.execute('SELECT * FROM projects WHERE id = ? AND user_id = ?', (project_id, user_id)).fetchone()
    if not row:
        raise BillingError('Project not found', 404)
    return row


@app.route('/api/projects/<int:project_id>', methods=['PUT'])
def update_project(project_id):
    data = request.json or {}
    user_id = current_user_id()
    conn = get_conn()
    _project_or_404(conn, user_id, project_id)
    updates, params = [], []
    if data.get('name') is not None:
        name = str(data['name']).strip()
        if not name:
            return jsonify({'error': 'name required'}), 400
        updates.append('name = ?')
        params.append(name)
    if data.get('description') is not None:
        updates.append('description = ?')
        params.append(data['description'])
    if data.get('status') is not None:
        updates.append('status = ?')
        params.append(_check_choice(data['status'], PROJECT_STATUSES, 'status'))
    if data.get('budget') is not None:
        updates.append('budget = ?')
        params.append(str(billing.to_money(data['budget'])))
    if data.get('client_id') is not None:
        client_id = _require_int(data, 'client_id')
        _client_or_404(conn, user_id, client_id)
        updates.append('client_id = ?')
        params.append(client_id)
    if not updates:
        return jsonify({'error': 'No fields to update'}), 400
    params.extend([project_id, user_id])
    with conn:
        conn.execute(f'UPDATE projects SET {", ".join(updates)} WHERE id = ? AND user_id = ?', params)
    return jsonify(dict(_project_or_404(conn, user_id, project_id)))


@app.route('/api/projects/<int:project_id>', methods=['DELETE'])
def delete_project(project_id):
    user_id = current_user_id()
    conn = get_conn()
    _project_or_404(conn, user_id, project_id)
    if conn.execute('SELECT 1 FROM job_costs WHERE project_id = ? LIMIT 1', (project_id,)).fetchone():
        return jsonify({'error': 'Project has job costs'}), 409
    with conn:
        conn.execute('DELETE FROM projects WHERE id = ? AND user_id = ?', (project_id, user_id))
    return jsonify({'deleted': project_id})

# ---------------------------------------------------------------------------
# Job costs
# ---------------------------------------------------------------------------

@app.route('/api/job-costs')
def get_job_costs():
    q = '''SELECT j.*, p.name as project_name
           FROM job_costs j
           LEFT JOIN projects p ON j.project_id = p.id
           WHERE j.user_id = ?'''
    params = [current_user_id()]
    if request.args.get('project_id'):
        q += ' AND j.project_id = ?'
        params.append(_require_int(request.args, 'project_id'))
    q += ' ORDER BY j.cost_date DESC, j.id DESC'
    conn = get_conn()
    return jsonify([dict(x) for x in conn.execute(q, params).fetchall()])


@app.route('/api/job-costs/<int:cost_id>')
def get_job_cost(cost_id):
    conn = get_conn()
    row = conn.execute('SELECT * FROM job_costs WHERE id = ? AND user_id = ?', (cost_id, current_user_id())).fetchone()
    if not row:
        return jsonify({'error': 'Job cost not found'}), 404
    return jsonify(dict(row))


@app.route('/api/job-costs', methods=['POST'])
def add_job_cost():
    data = request.json or {}
    user_id = current_user_id()
    project_id = _require_int(data, 'project_id')
    category = (data.get('category') or '').strip()
    if not category:
        return jsonify({'error': 'Category is required'}), 400
    if data.get('amount') in (None, ''):
        return jsonify({'error': 'Amount is required'}), 400
    amount = billing.to_money(data['amount'])
    now = utcnow()
    cost_date = _parse_when(data['cost_date'], 'cost_date') if data.get('cost_date') else now
    conn = get_conn()
    _project_or_404(conn, user_id, project_id)
    with conn:
        cur = conn.execute('''
            INSERT INTO job_costs (user_id, project_id, category, description, amount, cost_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (user_id, project_id, category, data.get('description'), str(amount),
              cost_date.isoformat(), now.isoformat()))
    return jsonify({'id': cur.lastrowid}), 201


@app.route('/api/job-costs/<int:cost_id>', methods=['DELETE'])
def delete_job_cost(cost_id):
    conn = get_conn()
    with conn:
        cur = conn.execute('DELETE FROM job_costs WHERE id = ? AND user_id = ?', (cost_id, current_user_id()))
    if cur.rowcount == 0:
        return jsonify({'error': 'Job cost not found'}), 404
    return jsonify({'success': True})

# ---------------------------------------------------------------------------
# Team members
# ---------------------------------------------------------------------------

@app.route('/api/team-members')
def get_team_members():
    conn = get_conn()
    cur = conn.execute('SELECT * FROM team_members WHERE user_id = ? ORDER BY id', (current_user_id(),))
    return jsonify([dict(x) for x in cur.fetchall()])


@app.route('/api/team-members/<int:member_id>')
def get_team_member(member_id):
    conn = get_conn()
    row = conn.execute('SELECT * FROM team_members WHERE id = ? AND user_id = ?',
                       (member_id, current_user_id())).fetchone()
    if not row:
        return jsonify({'error': 'Team member not found'}), 404
    return jsonify(dict(row))


@app.route('/api/team-members', methods=['POST'])
def add_team_member():
    data = request.json or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Name is required'}), 400
    role = data.get('role')
    if role is not None:
        _check_choice(role, TEAM_ROLES, 'role')
    hourly_rate = billing.to_money(data.get('hourly_rate'))
    conn = get_conn()
    with conn:
        cur = conn.execute('''
            INSERT INTO team_members (user_id, name, email, phone, role, hourly_rate, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (current_user_id(), name, data.get('email'), data.get('phone'), role,
              str(hourly_rate), utcnow().isoformat()))
    return jsonify({'id': cur.lastrowid}), 201


@app.route('/api/team-members/<int:member_id>', methods=['PUT'])
def update_team_member(member_id):
    data = request.json or {}
    user_id = current_user_id()
    conn = get_conn()
    if not conn.execute('SELECT id FROM team_members WHERE id = ? AND user_id = ?', (member_id, user_id)).fetchone():
        return jsonify({'error': 'Team member not found'}), 404
    updates, params = [], []
    if data.get('name') is not None:
        name = str(data['name']).strip()
        if not name:
            return jsonify({'error': 'Name is required'}), 400
        updates.append('name = ?')
        params.append(name)
    for field in ('email', 'phone'):
        if data.get(field) is not None:
            updates.append(f'{field} = ?')
            params.append(data[field])
    if data.get('role') is not None:
        updates.append('role = ?')
        params.append(_check_choice(data['role'], TEAM_ROLES, 'role'))
    if data.get('hourly_rate') is not None:
        updates.append('hourly_rate = ?')
        params.append(str(billing.to_money(data['hourly_rate'])))
    if not updates:
        return jsonify({'error': 'No fields to update'}), 400
    params.extend([member_id, user_id])
    with conn:
        conn.execute(f'UPDATE team_members SET {", ".join(updates)} WHERE id = ? AND user_id = ?', params)
    row = conn.execute('SELECT * FROM team_members WHERE id = ? AND user_id = ?', (member_id, user_id)).fetchone()
    return jsonify(dict(row))


@app.route('/api/team-members/<int:member_id>', methods=['DELETE'])
def delete_team_member(member_id):
    conn = get_conn()
    with conn:
        conn.execute('DELETE FROM team_members WHERE id = ? AND user_id = ?', (member_id, current_user_id()))
    return jsonify({'success': True})

# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

def _invoice_or_404(conn, user_id, invoice_id):
    row = conn.execute('SELECT * FROM invoices WHERE id = ? AND user_id = ?', (invoice_id, user_id)).fetchone()
    if not row:
        raise BillingError('Invoice not found', 404)
    return row


@app.route('/api/invoices')
def get_invoices():
    status = request.args.get('status')
    q = '''SELECT i.*, c.name as client_name
           FROM invoices i
           LEFT JOIN clients c ON i.client_id = c.id
           WHERE i.user_id = ?'''
    params = [current_user_id()]
    if status:
        q += ' AND i.status = ?'
        params.append(_check_choice(status, INVOICE_STATUSES, 'status'))
    q += ' ORDER BY i.id DESC'
    conn = get_conn()
    return jsonify([dict(x) for x in conn.execute(q, params).fetchall()])


def _invoice_items(conn, invoice_id):
    cur = conn.execute('SELECT description, quantity, unit_price, total FROM invoice_items WHERE invoice_id = ? ORDER BY id',
                       (invoice_id,))
    return [dict(x) for x in cur.fetchall()]


@app.route('/api/invoices', methods=['POST'])
def add_invoice():
    data = request.json or {}
    user_id = current_user_id()
    client_id = _require_int(data, 'client_id')
    project_id = _require_int(data, 'project_id') if data.get('project_id') is not None else None
    status = _check_choice(data.get('status', 'draft'), INVOICE_STATUSES, 'status')
    items, subtotal = billing.price_line_items(data.get('items'))
    tax_amount = billing.to_money(data.get('tax_amount'))
    total = subtotal + tax_amount
    now = utcnow()
    issue_date = _parse_when(data['issue_date'], 'issue_date') if data.get('issue_date') else now
    if data.get('due_date'):
        due_date = _parse_when(data['due_date'], 'due_date')
    else:
        due_date = issue_date + timedelta(days=config.PAYMENT_TERMS_DAYS)

    conn = get_conn()
    _client_or_404(conn, user_id, client_id)
    if project_id is not None:
        _project_or_404(conn, user_id, project_id)
    with conn:
        invoice_number = billing.next_invoice_number(conn, config.INVOICE_PREFIX)
        cur = conn.execute('''
            INSERT INTO invoices
                (user_id, client_id, project_id, invoice_number, status, issue_date, due_date,
                 subtotal, tax_amount, total, notes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (user_id, client_id, project_id, invoice_number, status, issue_date.isoformat(), due_date.isoformat(),
              str(subtotal), str(tax_amount), str(total), data.get('notes'), now.isoformat()))
        invoice_id = cur.lastrowid
        conn.executemany(
            'INSERT INTO invoice_items (invoice_id, description, quantity, unit_price, total) VALUES (?, ?, ?, ?, ?)',
            [(invoice_id, i['description'], i['quantity'], i['unit_price'], i['total']) for i in items])
    return jsonify({'id': invoice_id, 'invoice_number': invoice_number,
                    'subtotal': str(subtotal), 'total': str(total)}), 201


@app.route('/api/invoices/<int:invoice_id>')
def get_invoice(invoice_id):
    conn = get_conn()
    invoice = dict(_invoice_or_404(conn, current_user_id(), invoice_id))
    invoice['items'] = _invoice_items(conn, invoice_id)
    return jsonify(invoice)


@app.route('/api/invoices/<int:invoice_id>', methods=['DELETE'])
def delete_invoice(invoice_id):
    user_id = current_user_id()
    conn = get_conn()
    _invoice_or_404(conn, user_id, invoice_id)
    with conn:
        conn.execute('DELETE FROM invoices WHERE id = ? AND user_id = ?', (invoice_id, user_id))
    return jsonify({'deleted': invoice_id})


@app.route('/api/invoices/<int:invoice_id>/status', methods=['PUT'])
def update_invoice_status(invoice_id):
    data = request.json or {}
    status = _check_choice(data.get('status'), INVOICE_STATUSES, 'status')
    user_id = current_user_id()
    conn = get_conn()
    _invoice_or_404(conn, user_id, invoice_id)
    with conn:
        conn.execute('UPDATE invoices SET status = ? WHERE id = ?', (status, invoice_id))
    return jsonify({'id': invoice_id, 'status': status})


@app.route('/api/invoices/<int:invoice_id>/pdf')
def download_invoice_pdf(invoice_id):
    user_id = current_user_id()
    conn = get_conn()
    invoice = _invoice_or_404(conn, user_id, invoice_id)
    client = _client_or_404(conn, user_id, invoice['client_id'])
    pdf = render_invoice_pdf(invoice, client, _invoice_items(conn, invoice_id))
    return send_file(pdf, mimetype='application/pdf', as_attachment=True,
                     download_name=f"{invoice['invoice_number']}.pdf")

# ---------------------------------------------------------------------------
# Recurring invoices
# ---------------------------------------------------------------------------

@app.route('/api/recurring-invoices')
def get_recurring_invoices():
    conn = get_conn()
    cur = conn.execute('SELECT * FROM recurring_invoices WHERE user_id = ? ORDER BY id', (current_user_id(),))
    return jsonify([dict(x) for x in cur.fetchall()])


@app.route('/api/recurring-invoices', methods=['POST'])
def add_recurring_invoice():
    data = request.json or {}
    user_id = current_user_id()
    client_id = _require_int(data, 'client_id')
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'name required'}), 400
    frequency = _check_choice(data.get('frequency'), billing.FREQUENCIES, 'frequency')
    if not data.get('start_date') or data.get('total') is None:
        return jsonify({'error': 'start_date and total required'}), 400
    start_date = _parse_when(data['start_date'], 'start_date')
    end_date = _parse_when(data['end_date'], 'end_date') if data.get('end_date') else None
    project_id = _require_int(data, 'project_id') if data.get('project_id') is not None else None
    subtotal = billing.to_money(data.get('subtotal'))
    tax_amount = billing.to_money(data.get('tax_amount'))
    total = billing.to_money(data['total'])

    conn = get_conn()
    _client_or_404(conn, user_id, client_id)
    with conn:
        cur = conn.execute('''
            INSERT INTO recurring_invoices
                (user_id, client_id, project_id, name, frequency, status, start_date, end_date,
                 subtotal, tax_amount, total, next_invoice_date, created_at)
            VALUES (?, ?, ?, ?, ?, 'active', ?, ?, ?, ?, ?, ?, ?)
        ''', (user_id, client_id, project_id, name, frequency, start_date.isoformat(),
              end_date.isoformat() if end_date else None, str(subtotal), str(tax_amount), str(total),
              start_date.isoformat(), utcnow().isoformat()))
    return jsonify({'success': True, 'id': cur.lastrowid}), 201


@app.route('/api/recurring-invoices/<int:recurring_id>', methods=['PUT'])
def update_recurring_invoice(recurring_id):
    data = request.json or {}
    user_id = current_user_id()
    conn = get_conn()
    if not conn.execute('SELECT id FROM recurring_invoices WHERE id = ? AND user_id = ?',
                        (recurring_id, user_id)).fetchone():
        return jsonify({'error': 'Recurring invoice not found'}), 404
    updates, params = [], []
    if data.get('name') is not None:
        name = str(data['name']).strip()
        if not name:
            return jsonify({'error': 'name required'}), 400
        updates.append('name = ?')
        params.append(name)
    if data.get('frequency') is not None:
        updates.append('frequency = ?')
        params.append(_check_choice(data['frequency'], billing.FREQUENCIES, 'frequency'))
    if data.get('status') is not None:
        updates.append('status = ?')
        params.append(_check_choice(data['status'], billing.TEMPLATE_STATUSES, 'status'))
    if data.get('total') is not None:
        updates.append('total = ?')
        params.append(str(billing.to_money(data['total'])))
    if not updates:
        return jsonify({'error': 'No fields to update'}), 400
    params.extend([recurring_id, user_id])
    with conn:
        conn.execute(f'UPDATE recurring_invoices SET {", ".join(updates)} WHERE id = ? AND user_id = ?', params)
    return jsonify({'success': True})


@app.route('/api/recurring-invoices/<int:recurring_id>', methods=['DELETE'])
def delete_recurring_invoice(recurring_id):
    conn = get_conn()
    with conn:
        conn.execute('DELETE FROM recurring_invoices WHERE id = ? AND user_id = ?', (recurring_id, current_user_id()))
    return jsonify({'success': True})


@app.route('/api/recurring-invoices/generate', methods=['POST'])
def generate_recurring_invoices():
    user_id = current_user_id()
    conn = get_conn()
    try:
        result = billing.generate_due_invoices(conn, user_id, utcnow())
    except sqlite3.Error:
        app.logger.error(f"[RecurringInvoices] Failed to generate invoices for user {user_id}")
        raise
    app.logger.info(f"[RecurringInvoices] Generated {result['generated_count']} invoice(s) for user {user_id}")
    return jsonify({'success': True, **result})

# ---------------------------------------------------------------------------
# GPS time tracking
# ---------------------------------------------------------------------------

GPS_EXPORT_COLUMNS = ['id', 'team_member_id', 'project_id', 'clock_in_time', 'clock_out_time',
                      'duration_minutes', 'hourly_rate', 'total_cost', 'approval_status', 'notes']


@app.route('/api/gps-time')
def get_gps_entries():
    conn = get_conn()
    cur = conn.execute('SELECT * FROM gps_time_entries WHERE user_id = ? ORDER BY clock_in_time DESC, id DESC',
                       (current_user_id(),))
    return jsonify([dict(x) for x in cur.fetchall()])


@app.route('/api/gps-time/clock-in', methods=['POST'])
def gps_clock_in():
    data = request.json or {}
    user_id = current_user_id()
    team_member_id = _require_int(data, 'team_member_id')
    project_id = _require_int(data, 'project_id')
    latitude = _require_number(data, 'latitude')
    longitude = _require_number(data, 'longitude')
    conn = get_conn()
    result = billing.clock_in(conn, user_id, team_member_id, project_id, latitude, longitude,
                              data.get('notes'), utcnow())
    app.logger.info(f"[GpsTime] Team member {team_member_id} clocked in (entry {result['id']})")
    return jsonify({'success': True, 'message': 'Clocked in successfully', **result})


@app.route('/api/gps-time/clock-out', methods=['POST'])
def gps_clock_out():
    data = request.json or {}
    user_id = current_user_id()
    entry_id = _require_int(data, 'id')
    latitude = _require_number(data, 'latitude')
    longitude = _require_number(data, 'longitude')
    conn = get_conn()
    result = billing.clock_out(conn, user_id, entry_id, latitude, longitude, data.get('notes'), utcnow())
    app.logger.info(f"[GpsTime] Entry {entry_id} clocked out after {result['duration_minutes']} min")
    return jsonify({'success': True, 'message': 'Clocked out successfully', **result})


def _set_approval(entry_id, status):
    conn = get_conn()
    with conn:
        cur = conn.execute('UPDATE gps_time_entries SET approval_status = ? WHERE id = ? AND user_id = ?',
                           (status, entry_id, current_user_id()))
    if cur.rowcount == 0:
        raise BillingError('Entry not found', 404)
    return jsonify({'id': entry_id, 'approval_status': status})


@app.route('/api/gps-time/<int:entry_id>/approve', methods=['POST'])
def approve_gps_entry(entry_id):
    return _set_approval(entry_id, 'approved')


@app.route('/api/gps-time/<int:entry_id>/reject', methods=['POST'])
def reject_gps_entry(entry_id):
    return _set_approval(entry_id, 'rejected')


def _gps_entries_in_range():
    start_date = request.args.get('start_date')
    end_date = request.args.get('end_date')
    q = 'SELECT * FROM gps_time_entries WHERE user_id = ?'
    params = [current_user_id()]
    if start_date:
        q += ' AND DATE(clock_in_time) >= ?'
        params.append(_parse_day(start_date, 'start_date').isoformat())
    if end_date:
        q += ' AND DATE(clock_in_time) <= ?'
        params.append(_parse_day(end_date, 'end_date').isoformat())
    q += ' ORDER BY clock_in_time, id'
    return get_conn().execute(q, params).fetchall()


@app.route('/api/gps-time/summary')
def gps_summary():
    return jsonify(billing.summarize_entries(_gps_entries_in_range()))


@app.route('/api/gps-time/export')
def export_gps_csv():
    rows = _gps_entries_in_range()
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(GPS_EXPORT_COLUMNS)
    for r in rows:
        writer.writerow([r[col] for col in GPS_EXPORT_COLUMNS])
    output.seek(0)
    return send_file(io.BytesIO(output.getvalue().encode('utf-8')), mimetype='text/csv',
                     as_attachment=True, download_name='gps_time_entries.csv')


if __name__ == '__main__':
    from db_init import init_db
    init_db(app.config['DATABASE'])
    app.run(debug=True, host='0.0.0.0')
