def test_teacher_crud(client, admin_headers):
    r = client.post('/api/teachers', json={'firstName': 'Ada', 'lastName': 'Lovelace'}, headers=admin_headers)
    assert r.status_code == 200
    ada = r.json()['teacher']
    assert ada['id']
    assert ada['color'] == '#6366f1'

    # snake_case keys are accepted too
    r = client.post('/api/teachers', json={'id': 'crud-t2', 'first_name': 'Zed', 'last_name': 'Adams'}, headers=admin_headers)
    assert r.json()['teacher']['lastName'] == 'Adams'

    names = [t['lastName'] for t in client.get('/api/teachers', headers=admin_headers).json()]
    assert names.index('Adams') < names.index('Lovelace')

    r = client.patch(f"/api/teachers/{ada['id']}", json={'color': '#10b981'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()['teacher'] == {**ada, 'color': '#10b981'}

    assert client.patch('/api/teachers/ghost', json={'color': '#000000'}, headers=admin_headers).status_code == 404
    assert client.delete(f"/api/teachers/{ada['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/teachers/{ada['id']}", headers=admin_headers).status_code == 404
    assert client.delete(f"/api/teachers/{ada['id']}", headers=admin_headers).status_code == 404


def test_school_crud_and_order(client, admin_headers):
    client.post('/api/schools', json={'id': 'crud-s1', 'name': 'Beta', 'sortOrder': 50}, headers=admin_headers)
    client.post('/api/schools', json={'id': 'crud-s2', 'name': 'Alpha', 'sortOrder': 50}, headers=admin_headers)
    client.post('/api/schools', json={'id': 'crud-s3', 'name': 'Omega', 'sort_order': 40}, headers=admin_headers)
    ids = [s['id'] for s in client.get('/api/schools', headers=admin_headers).json() if s['id'].startswith('crud-')]
    assert ids == ['crud-s3', 'crud-s2', 'crud-s1']

    r = client.patch('/api/schools/crud-s1', json={'address': '1 Main St'}, headers=admin_headers)
    assert r.json()['school'] == {'id': 'crud-s1', 'name': 'Beta', 'address': '1 Main St', 'sortOrder': 50}
    assert client.get('/api/schools/crud-s1', headers=admin_headers).json()['address'] == '1 Main St'
    assert client.delete('/api/schools/crud-s3', headers=admin_headers).status_code == 204


def _setup_refs(client, headers):
    client.post('/api/teachers', json={'id': 'crud-lt', 'firstName': 'Alan', 'lastName': 'Turing'}, headers=headers)
    client.post('/api/schools', json={'id': 'crud-ls', 'name': 'Bletchley'}, headers=headers)


def test_lesson_defaults_and_validation(client, admin_headers):
    _setup_refs(client, admin_headers)
    r = client.post('/api/lessons', json={'date': '2024-01-08', 'schoolId': 'crud-ls'}, headers=admin_headers)
    assert r.status_code == 200
    lesson = r.json()['lesson']
    assert (lesson['subject'], lesson['startTime'], lesson['endTime'], lesson['room'], lesson['status']) == \
        ('English', '09:00', '09:45', '101', 'upcoming')
    assert r.json()['conflicts'] == []

    bad = [
        {'date': '2024-01-08', 'startTime': '10:00', 'endTime': '09:00'},
        {'date': '2024-01-08', 'startTime': '9:00'},
        {'date': '08.01.2024'},
        {'date': '2024-01-08', 'teacherId': 'ghost'},
        {'date': '2024-01-08', 'schoolId': 'ghost'},
        {'date': '2024-01-08', 'status': 'moved'},
    ]
    for body in bad:
        assert client.post('/api/lessons', json=body, headers=admin_headers).status_code == 400, body


def test_lesson_patch_is_partial(client, admin_headers):
    _setup_refs(client, admin_headers)
    body = {'id': 'crud-l1', 'subject': 'Maths', 'grade': '9', 'teacherId': 'crud-lt', 'schoolId': 'crud-ls',
            'date': '2024-01-09', 'startTime': '11:00', 'endTime': '11:45', 'room': '12', 'topic': 'Fractions'}
    assert client.post('/api/lessons', json=body, headers=admin_headers).status_code == 200

    r = client.patch('/api/lessons/crud-l1', json={'room': '14', 'status': 'completed'}, headers=admin_headers)
    assert r.status_code == 200
    lesson = r.json()['lesson']
    assert lesson['room'] == '14' and lesson['status'] == 'completed'
    assert lesson['subject'] == 'Maths' and lesson['topic'] == 'Fractions'

    r = client.patch('/api/lessons/crud-l1', json={'endTime': '10:00'}, headers=admin_headers)
    assert r.status_code == 400
    assert client.get('/api/lessons/crud-l1', headers=admin_headers).json()['endTime'] == '11:45'
    assert client.patch('/api/lessons/ghost', json={'room': '1'}, headers=admin_headers).status_code == 404


def test_lesson_conflicts_reported(client, admin_headers):
    _setup_refs(client, admin_headers)
    first = {'id': 'crud-c1', 'teacherId': 'crud-lt', 'schoolId': 'crud-ls', 'date': '2024-01-10',
             'startTime': '13:00', 'endTime': '13:45', 'room': 'A'}
    client.post('/api/lessons', json=first, headers=admin_headers)
    r = client.post('/api/lessons', json={**first, 'id': 'crud-c2', 'startTime': '13:30', 'endTime': '14:15', 'room': 'B'},
                    headers=admin_headers)
    assert r.status_code == 200
    conflicts = r.json()['conflicts']
    assert [c['kind'] for c in conflicts] == ['teacher']
    assert sorted(conflicts[0]['lessonIds']) == ['crud-c1', 'crud-c2']


def test_lesson_listing_filters_and_history(client, admin_headers):
    _setup_refs(client, admin_headers)
    for i, day in enumerate(['2024-01-11', '2024-01-12', '2024-01-13']):
        client.post('/api/lessons', json={'id': f'crud-h{i}', 'teacherId': 'crud-lt', 'schoolId': 'crud-ls', 'date': day,
                                          'startTime': '16:00', 'room': ''}, headers=admin_headers)
    r = client.get('/api/lessons', params={'date_from': '2024-01-12', 'date_to': '2024-01-13', 'teacher_id': 'crud-lt'},
                   headers=admin_headers)
    assert [l['id'] for l in r.json()] == ['crud-h1', 'crud-h2']
    r = client.get('/api/lessons', params={'teacher_id': 'all', 'date_from': '2024-01-13', 'date_to': '2024-01-13'},
                   headers=admin_headers)
    assert 'crud-h2' in [l['id'] for l in r.json()]

    history = [l['id'] for l in client.get('/api/lessons/history', headers=admin_headers).json()]
    assert history.index('crud-h2') < history.index('crud-h1') < history.index('crud-h0')

    assert client.delete('/api/lessons/crud-h0', headers=admin_headers).status_code == 204
    assert client.get('/api/lessons/crud-h0', headers=admin_headers).status_code == 404


def test_viewer_cannot_write(client, viewer_headers):
    assert client.get('/api/teachers', headers=viewer_headers).status_code == 200
    assert client.post('/api/teachers', json={'firstName': 'No'}, headers=viewer_headers).status_code == 403
    assert client.post('/api/schools', json={'name': 'No'}, headers=viewer_headers).status_code == 403
    assert client.post('/api/lessons', json={'date': '2024-01-15'}, headers=viewer_headers).status_code == 403
    assert client.delete('/api/lessons/crud-h1', headers=viewer_headers).status_code == 403
