from datetime import datetime


def seed_invoice(client, clock):
    client_id = client.post('/api/clients', json={'name': 'Harbor Dental', 'phone': '555-0100'}).get_json()['id']
    client.post('/api/recurring-invoices', json={
        'client_id': client_id, 'name': 'Lawn care', 'frequency': 'weekly',
        'start_date': '2024-03-01T08:00:00', 'total': '75',
    })
    clock['now'] = datetime(2024, 3, 2)
    client.post('/api/recurring-invoices/generate')
    return client.get('/api/invoices').get_json()[0]['id']


def test_get_and_update_status(client, clock):
    invoice_id = seed_invoice(client, clock)

    invoice = client.get(f'/api/invoices/{invoice_id}').get_json()
    assert invoice['invoice_number'] == 'REC-0001'
    assert invoice['subtotal'] == '0.00'

    resp = client.put(f'/api/invoices/{invoice_id}/status', json={'status': 'paid'})
    assert resp.get_json() == {'id': invoice_id, 'status': 'paid'}
    assert client.get('/api/invoices?status=paid').get_json()[0]['id'] == invoice_id
    assert client.get('/api/invoices?status=sent').get_json() == []

    resp = client.put(f'/api/invoices/{invoice_id}/status', json={'status': 'lost'})
    assert resp.status_code == 400


def test_missing_invoice(client):
    resp = client.get('/api/invoices/77')
    assert resp.status_code == 404
    assert resp.get_json() == {'error': 'Invoice not found'}


def test_invoice_pdf(client, clock):
    invoice_id = seed_invoice(client, clock)

    resp = client.get(f'/api/invoices/{invoice_id}/pdf')

    assert resp.status_code == 200
    assert resp.mimetype == 'application/pdf'
    assert resp.data.startswith(b'%PDF')
    assert 'REC-0001.pdf' in resp.headers['Content-Disposition']


def test_invoice_pdf_hidden_from_other_callers(client, clock):
    invoice_id = seed_invoice(client, clock)
    assert client.get(f'/api/invoices/{invoice_id}/pdf', headers={'X-User-Id': '9'}).status_code == 404


def create_invoice(client, client_id, **overrides):
    payload = {
        'client_id': client_id,
        'tax_amount': '17.32',
        'notes': 'Thanks for choosing us',
        'items': [
            {'description': 'Drywall patch', 'quantity': 3, 'unit_price': '45.50'},
            {'description': 'Paint touch-up', 'unit_price': '80'},
        ],
    }
    payload.update(overrides)
    return client.post('/api/invoices', json=payload)


def test_create_invoice_with_line_items(client, clock):
    client_id = client.post('/api/clients', json={'name': 'Harbor Dental'}).get_json()['id']

    resp = create_invoice(client, client_id)

    assert resp.status_code == 201
    body = resp.get_json()
    assert body['invoice_number'] == 'INV-0001'
    assert (body['subtotal'], body['total']) == ('216.50', '233.82')

    invoice = client.get(f"/api/invoices/{body['id']}").get_json()
    assert invoice['status'] == 'draft'
    assert invoice['tax_amount'] == '17.32'
    assert invoice['issue_date'] == '2024-03-04T09:00:00'
    assert invoice['due_date'] == '2024-04-03T09:00:00'
    assert [i['total'] for i in invoice['items']] == ['136.50', '80.00']

    assert create_invoice(client, client_id).get_json()['invoice_number'] == 'INV-0002'


def test_manual_and_recurring_numbers_are_separate(client, clock):
    seed_invoice(client, clock)
    client_id = client.get('/api/clients').get_json()[0]['id']
    assert create_invoice(client, client_id).get_json()['invoice_number'] == 'INV-0001'


def test_create_invoice_validation(client, clock):
    client_id = client.post('/api/clients', json={'name': 'Harbor Dental'}).get_json()['id']

    assert create_invoice(client, client_id, items=[]).status_code == 400
    assert create_invoice(client, client_id, items=[{'description': 'Labor'}]).status_code == 400
    assert create_invoice(client, client_id, status='lost').status_code == 400
    assert create_invoice(client, client_id, due_date='soon').status_code == 400
    assert create_invoice(client, client_id, project_id=55).status_code == 404
    assert create_invoice(client, 404).status_code == 404
    assert client.get('/api/invoices').get_json() == []


def test_invoice_dates_with_offset(client, clock):
    client_id = client.post('/api/clients', json={'name': 'Harbor Dental'}).get_json()['id']
    invoice_id = create_invoice(client, client_id, issue_date='2024-03-01T10:00:00+02:00').get_json()['id']
    invoice = client.get(f'/api/invoices/{invoice_id}').get_json()
    assert invoice['issue_date'] == '2024-03-01T08:00:00'
    assert invoice['due_date'] == '2024-03-31T08:00:00'


def test_delete_invoice_removes_items(client, clock, conn):
    client_id = client.post('/api/clients', json={'name': 'Harbor Dental'}).get_json()['id']
    invoice_id = create_invoice(client, client_id).get_json()['id']

    assert client.delete(f'/api/invoices/{invoice_id}').get_json() == {'deleted': invoice_id}
    assert client.get(f'/api/invoices/{invoice_id}').status_code == 404
    assert conn.execute('SELECT COUNT(*) FROM invoice_items').fetchone()[0] == 0


def test_invoice_pdf_with_line_items(client, clock):
    client_id = client.post('/api/clients', json={'name': 'Harbor Dental'}).get_json()['id']
    invoice_id = create_invoice(client, client_id).get_json()['id']

    resp = client.get(f'/api/invoices/{invoice_id}/pdf')

    assert resp.status_code == 200
    assert resp.data.startswith(b'%PDF')
    assert 'INV-0001.pdf' in resp.headers['Content-Disposition']
