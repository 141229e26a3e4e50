import pytest


@pytest.fixture
def project_id(client, clock):
    client_id = client.post('/api/clients', json={'name': 'Oak Street HOA'}).get_json()['id']
    return client.post('/api/projects', json={'client_id': client_id, 'name': 'Roof repair'}).get_json()['id']


def add_cost(client, project_id, **overrides):
    payload = {'project_id': project_id, 'category': 'materials', 'amount': '412.5',
               'description': 'Shingles', 'cost_date': '2024-03-02'}
    payload.update(overrides)
    return client.post('/api/job-costs', json=payload)


def test_create_list_and_get(client, project_id):
    resp = add_cost(client, project_id)
    assert resp.status_code == 201
    cost_id = resp.get_json()['id']
    add_cost(client, project_id, category='permits', amount='75', cost_date='2024-03-05')

    costs = client.get('/api/job-costs').get_json()
    assert [c['category'] for c in costs] == ['permits', 'materials']
    assert costs[1]['project_name'] == 'Roof repair'

    cost = client.get(f'/api/job-costs/{cost_id}').get_json()
    assert cost['amount'] == '412.50'
    assert cost['cost_date'] == '2024-03-02T00:00:00'


def test_cost_date_defaults_to_now(client, project_id):
    cost_id = add_cost(client, project_id, cost_date=None).get_json()['id']
    assert client.get(f'/api/job-costs/{cost_id}').get_json()['cost_date'] == '2024-03-04T09:00:00'


def test_filter_by_project(client, project_id):
    client_id = client.get('/api/clients').get_json()[0]['id']
    other = client.post('/api/projects', json={'client_id': client_id, 'name': 'Gutters'}).get_json()['id']
    add_cost(client, project_id)
    add_cost(client, other, category='labor')

    costs = client.get(f'/api/job-costs?project_id={other}').get_json()
    assert [c['category'] for c in costs] == ['labor']
    assert client.get('/api/job-costs?project_id=abc').status_code == 400


def test_validation(client, project_id):
    assert add_cost(client, project_id, category=' ').get_json() == {'error': 'Category is required'}
    assert add_cost(client, project_id, amount='').get_json() == {'error': 'Amount is required'}
    assert add_cost(client, project_id, amount='12 dollars').status_code == 400
    assert add_cost(client, 999).status_code == 404


def test_scoped_to_caller_and_delete(client, project_id):
    cost_id = add_cost(client, project_id).get_json()['id']
    other = {'X-User-Id': '2'}

    assert client.get('/api/job-costs', headers=other).get_json() == []
    assert client.get(f'/api/job-costs/{cost_id}', headers=other).status_code == 404
    assert client.delete(f'/api/job-costs/{cost_id}', headers=other).status_code == 404

    assert client.delete(f'/api/job-costs/{cost_id}').get_json() == {'success': True}
    assert client.get(f'/api/job-costs/{cost_id}').status_code == 404


def test_project_with_costs_cannot_be_deleted(client, project_id):
    add_cost(client, project_id)
    resp = client.delete(f'/api/projects/{project_id}')
    assert resp.status_code == 409
    assert resp.get_json() == {'error': 'Project has job costs'}
