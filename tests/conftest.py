import pytest
from sqlalchemy.exc import OperationalError

from medvault_pkg import create_app, db
from medvault_pkg.models import Role, User


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(client):
    """Registers a user over HTTP and logs them in. Returns a dict with id, token and headers."""
    counter = {"n": 0}

    def _register(role='patient', email=None, password='password123', **fields):
        counter["n"] += 1
        email = email or f"{role}{counter['n']}@example.com"
        body = {"email": email, "password": password, "role": role}
        if role == 'patient':
            body.update(first_name=fields.get('first_name', 'Pat'), last_name=fields.get('last_name', f"Ient{counter['n']}"))
        else:
            body.update(name=fields.get('name', f"Doc Tor{counter['n']}"), specialization=fields.get('specialization', 'Cardiology'))
        response = client.post('/api/auth/register', json=body)
        assert response.status_code == 201, response.get_json()
        login = client.post('/api/auth/login', json={"email": email, "password": password})
        assert login.status_code == 200, login.get_json()
        token = login.get_json()["access_token"]
        return {
            "id": response.get_json()["user"]["id"],
            "email": email,
            "token": token,
            "headers": {"Authorization": f"Bearer {token}"}
        }

    return _register


@pytest.fixture
def make_user(app):
    """Creates a bare user row directly, for tests that work below the HTTP layer."""
    def _make_user(role=Role.PATIENT, email=None):
        user = User(email=email or f"{role.value}-{User.query.count() + 1}@example.com",
                    user_metadata={"role": role.value})
        user.set_password('password123')
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def remote_down():
    """A stand-in for any remote call while the record store is unreachable."""
    def _raise(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("record store unreachable"))
    return _raise
