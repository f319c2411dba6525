# ribbat/api/conftest.py
import pytest

from ribbat import create_app


@pytest.fixture
def app():
    app = create_app('testing')
    yield app
    app.services['storage'].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """uid 로 로그인하고 (사용자 JSON, Authorization 헤더) 를 돌려주는 헬퍼."""
    def _login(uid='u1', display_name='Alice'):
        response = client.post('/api/auth/login', json={
            'uid': uid,
            'displayName': display_name,
            'email': f'{uid}@example.com',
        })
        assert response.status_code == 200
        body = response.get_json()
        return body['user'], {'Authorization': f"Bearer {body['access_token']}"}
    return _login
