"""Recurring invoice generation and GPS time-entry costing.

Functions here take an open sqlite3 connection (rows as ``sqlite3.Row``)
and an explicit ``now`` so the Flask handlers and the tests drive them the
same way. Timestamps are naive UTC and stored as ISO-8601 text; money is
stored as two-place decimal strings.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta

import config

logger = logging.getLogger(__name__)

FREQUENCIES = ('weekly', 'biweekly', 'monthly', 'quarterly', 'yearly')
TEMPLATE_STATUSES = ('active', 'paused', 'cancelled')
APPROVAL_STATUSES = ('pending', 'approved', 'rejected')

# relativedelta clamps to the last day of a shorter month (Jan 31 -> Feb 28/29)
_PERIODS = {
    'weekly': relativedelta(days=7),
    'biweekly': relativedelta(days=14),
    'monthly': relativedelta(months=1),
    'quarterly': relativedelta(months=3),
    'yearly': relativedelta(years=1),
}

CENTS = Decimal('0.01')


class BillingError(Exception):
    """A rejected request, carried back to the caller as ``{'error': message}``."""

    def __init__(self, message, status=400):
        super().__init__(message)
        self.message = message
        self.status = status


def to_money(value):
    """Parse a user-supplied amount into a two-place ``Decimal``.

    ``None`` and the empty string count as zero.
    """
    if value is None or value == '':
        return Decimal('0.00')
    if isinstance(value, bool):
        raise BillingError(f'Invalid amount: {value!r}')
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise BillingError(f'Invalid amount: {value!r}')
        # more than 26 integer digits overflows the 28-digit context here
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise BillingError(f'Invalid amount: {value!r}')


def parse_timestamp(value):
    """Read a stored or submitted timestamp as naive UTC.

    Values carrying an offset are converted to UTC and the offset dropped,
    so they compare against ``utcnow()``.
    """
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def price_line_items(items):
    """Validate invoice line items and total them.

    Each item needs a description and a unit price; quantity defaults to 1.
    Returns the priced items and their subtotal.
    """
    if not isinstance(items, list) or not items:
        raise BillingError('items must be a non-empty list')
    priced = []
    subtotal = Decimal('0.00')
    for item in items:
        if not isinstance(item, dict):
            raise BillingError('each item must be an object')
        description = (item.get('description') or '').strip()
        if not description:
            raise BillingError('item description required')
        if item.get('unit_price') is None:
            raise BillingError('item unit_price required')
        quantity = to_money(item.get('quantity', 1))
        unit_price = to_money(item['unit_price'])
        try:
            line_total = (quantity * unit_price).quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise BillingError(f'Line total too large for {description!r}')
        priced.append({
            'description': description,
            'quantity': str(quantity),
            'unit_price': str(unit_price),
            'total': str(line_total),
        })
        subtotal += line_total
    return priced, subtotal


# ---------------------------------------------------------------------------
# Recurring invoices
# ---------------------------------------------------------------------------

def advance_date(value, frequency):
    """Step ``value`` forward by one billing period of ``frequency``."""
    try:
        period = _PERIODS[frequency]
    except KeyError:
        raise ValueError(f'Unknown frequency: {frequency!r}')
    return value + period


def next_invoice_number(conn, prefix=None):
    prefix = prefix or config.RECURRING_INVOICE_PREFIX
    cur = conn.execute(
        'SELECT MAX(CAST(SUBSTR(invoice_number, ?) AS INTEGER)) FROM invoices WHERE invoice_number LIKE ?',
        (len(prefix) + 1, prefix + '%'),
    )
    max_num = cur.fetchone()[0] or 0
    return f'{prefix}{max_num + 1:04d}'


def generate_due_invoices(conn, user_id, now):
    """Materialise one invoice for every active template that has come due.

    A template is due when its next invoice date is at or before ``now``.
    Each due template yields exactly one invoice per call and its next date
    moves forward by a single period, so a template that missed several
    periods is not caught up. Paused and cancelled templates are left
    untouched. Everything runs in one transaction: any database error rolls
    the whole batch back and propagates.
    """
    templates = conn.execute(
        "SELECT * FROM recurring_invoices WHERE user_id = ? AND status = 'active' ORDER BY id",
        (user_id,),
    ).fetchall()

    due_date = now + timedelta(days=config.PAYMENT_TERMS_DAYS)
    invoice_numbers = []
    with conn:
        for template in templates:
            if not template['next_invoice_date']:
                continue
            current = parse_timestamp(template['next_invoice_date'])
            if current > now:
                continue

            invoice_number = next_invoice_number(conn)
            conn.execute('''
                INSERT INTO invoices
                    (user_id, client_id, project_id, recurring_invoice_id, invoice_number, status,
                     issue_date, due_date, subtotal, tax_amount, total, created_at)
                VALUES (?, ?, ?, ?, ?, 'sent', ?, ?, ?, ?, ?, ?)
            ''', (user_id, template['client_id'], template['project_id'], template['id'], invoice_number,
                  now.isoformat(), due_date.isoformat(), template['subtotal'], template['tax_amount'],
                  template['total'], now.isoformat()))

            next_date = advance_date(current, template['frequency'])
            conn.execute(
                'UPDATE recurring_invoices SET next_invoice_date = ? WHERE id = ?',
                (next_date.isoformat(), template['id']),
            )
            invoice_numbers.append(invoice_number)
            logger.info('Generated %s from recurring invoice %s, next due %s',
                        invoice_number, template['id'], next_date.isoformat())

    return {'generated_count': len(invoice_numbers), 'invoice_numbers': invoice_numbers}


# ---------------------------------------------------------------------------
# GPS time tracking
# ---------------------------------------------------------------------------

def compute_duration_minutes(clock_in_time, clock_out_time):
    """Elapsed minutes between two timestamps, rounded half up."""
    seconds = Decimal(str((clock_out_time - clock_in_time).total_seconds()))
    return int((seconds / 60).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_total_cost(duration_minutes, hourly_rate):
    hours = Decimal(duration_minutes) / Decimal(60)
    return (hours * Decimal(hourly_rate)).quantize(CENTS, rounding=ROUND_HALF_UP)


def member_hourly_rate(conn, team_member_id):
    """Current rate for a team member.

    A missing member or an empty rate falls back to zero, so the entry is
    costed at 0.00 instead of being refused.
    """
    row = conn.execute('SELECT hourly_rate FROM team_members WHERE id = ?', (team_member_id,)).fetchone()
    if row is None or not row['hourly_rate']:
        logger.warning('No hourly rate for team member %s, costing entry at 0.00', team_member_id)
        return Decimal('0')
    return Decimal(row['hourly_rate'])


def clock_in(conn, user_id, team_member_id, project_id, latitude, longitude, notes, now):
    # read-then-insert; two simultaneous clock-ins can both pass this check
    latest = conn.execute('''
        SELECT * FROM gps_time_entries
        WHERE user_id = ? AND team_member_id = ?
        ORDER BY clock_in_time DESC, id DESC LIMIT 1
    ''', (user_id, team_member_id)).fetchone()
    if latest is not None and not latest['clock_out_time']:
        raise BillingError('Already clocked in', 409)

    with conn:
        cur = conn.execute('''
            INSERT INTO gps_time_entries
                (user_id, team_member_id, project_id, clock_in_time,
                 clock_in_latitude, clock_in_longitude, approval_status, notes)
            VALUES (?, ?, ?, ?, ?, ?, 'pending', ?)
        ''', (user_id, team_member_id, project_id, now.isoformat(), latitude, longitude, notes))
    return {'id': cur.lastrowid, 'clock_in_time': now.isoformat()}


def clock_out(conn, user_id, entry_id, latitude, longitude, notes, now):
    entry = conn.execute(
        'SELECT * FROM gps_time_entries WHERE id = ? AND user_id = ?', (entry_id, user_id)
    ).fetchone()
    if entry is None:
        raise BillingError('Entry not found', 404)
    if entry['clock_out_time']:
        raise BillingError('Already clocked out', 409)

    duration_minutes = compute_duration_minutes(parse_timestamp(entry['clock_in_time']), now)
    rate = member_hourly_rate(conn, entry['team_member_id'])
    total_cost = compute_total_cost(duration_minutes, rate)

    with conn:
        conn.execute('''
            UPDATE gps_time_entries
            SET clock_out_time = ?, clock_out_latitude = ?, clock_out_longitude = ?,
                duration_minutes = ?, hourly_rate = ?, total_cost = ?, notes = ?
            WHERE id = ?
        ''', (now.isoformat(), latitude, longitude, duration_minutes,
              str(rate.quantize(CENTS)), str(total_cost), notes or entry['notes'], entry_id))
    return {
        'id': entry_id,
        'clock_out_time': now.isoformat(),
        'duration_minutes': duration_minutes,
        'hourly_rate': str(rate.quantize(CENTS)),
        'total_cost': str(total_cost),
    }


def summarize_entries(entries):
    total_minutes = sum(e['duration_minutes'] or 0 for e in entries)
    total_cost = sum((Decimal(e['total_cost']) for e in entries if e['total_cost']), Decimal('0'))
    hours = (Decimal(total_minutes) / Decimal(60)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)
    return {
        'total_duration_hours': str(hours),
        'total_cost': str(total_cost.quantize(CENTS)),
        'approved_entries': sum(1 for e in entries if e['approval_status'] == 'approved'),
        'pending_entries': sum(1 for e in entries if e['approval_status'] == 'pending'),
    }
