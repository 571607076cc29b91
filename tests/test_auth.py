from urllib.parse import urlparse, parse_qs

import pytest

from eventboard.auth import check_credentials

from conftest import event_form, png_upload


@pytest.mark.parametrize('username, password, expected', [
    ('admin', 'admin123', True),
    ('admin', 'wrong', False),
    ('Admin', 'admin123', False),
    ('admin', 'admin123 ', False),
    ('', '', False),
    (None, 'admin123', False),
    ('admin', None, False),
])
def test_check_credentials(settings, username, password, expected):
    assert check_credentials(username, password, settings) is expected


def test_login_sets_session(client):
    resp = client.post('/api/login', json={'username': 'admin', 'password': 'admin123'})

    assert resp.status_code == 200
    assert resp.get_json() == {'success': True}
    status = client.get('/api/auth/status').get_json()
    assert status == {'loggedIn': True, 'username': 'admin'}


def test_login_accepts_form_data(client):
    resp = client.post('/api/login', data={'username': 'admin', 'password': 'admin123'})
    assert resp.status_code == 200


def test_login_rejects_bad_credentials(client):
    resp = client.post('/api/login', json={'username': 'admin', 'password': 'nope'})

    assert resp.status_code == 401
    assert resp.get_json() == {'success': False, 'error': 'Invalid credentials'}
    assert client.get('/api/auth/status').get_json()['loggedIn'] is False


def test_logout_clears_session(auth_client):
    assert auth_client.post('/api/logout').get_json() == {'success': True}
    assert auth_client.get('/api/auth/status').get_json()['loggedIn'] is False


def test_session_is_permanent(auth_client, app):
    with auth_client.session_transaction() as sess:
        assert sess.permanent
        assert sess['logged_in'] is True
    assert app.permanent_session_lifetime.total_seconds() == 24 * 3600


def _redirect_target(resp):
    location = urlparse(resp.headers['Location'])
    return location.path, parse_qs(location.query).get('next')


def test_protected_page_redirects_to_login(client):
    resp = client.get('/insert')

    assert resp.status_code == 302
    assert _redirect_target(resp) == ('/login', ['/insert'])


def test_protected_page_keeps_query_in_return_url(client):
    resp = client.get('/modify?id=3')
    assert _redirect_target(resp) == ('/login', ['/modify?id=3'])


def test_protected_page_after_login(auth_client):
    assert auth_client.get('/insert').status_code == 200
    assert auth_client.get('/modify').status_code == 200


def test_login_page_follows_only_local_next(auth_client):
    resp = auth_client.get('/login?next=/modify')
    assert resp.headers['Location'].endswith('/modify')

    resp = auth_client.get('/login?next=//evil.example.com')
    assert resp.headers['Location'].endswith('/insert')


@pytest.mark.parametrize('target', ['/\\evil.example.com', '//evil.example.com', 'https://evil.example.com'])
def test_login_page_ignores_offsite_next(auth_client, target):
    resp = auth_client.get('/login', query_string={'next': target})

    assert urlparse(resp.headers['Location']).path == '/insert'
    assert 'evil' not in resp.headers['Location']


def test_login_page_renders(client):
    assert client.get('/login').status_code == 200


@pytest.mark.parametrize('method, path', [
    ('post', '/api/events'),
    ('put', '/api/events/1'),
    ('delete', '/api/events/1'),
])
def test_mutations_require_login(client, repository, blob, method, path):
    event_id = repository.insert(event_form(), 'photo.png', '2024-05-01T10:00:00.000Z')
    assert event_id == 1
    data = {**event_form(name='Changed'), 'image': png_upload()}

    resp = getattr(client, method)(path, data=data, content_type='multipart/form-data')

    assert resp.status_code == 401
    assert resp.get_json() == {'success': False, 'error': 'Unauthorized'}
    assert [e.to_dict() for e in repository.find_all()] == [
        {'id': 1, **event_form(), 'image': 'photo.png', 'timestamp': '2024-05-01T10:00:00.000Z'}
    ]
    assert blob.puts == [] and blob.deletes == []
