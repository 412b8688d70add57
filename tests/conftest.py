import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from league.app import create_app, db
from league.models import Player, User


@pytest.fixture
def app(tmp_path, monkeypatch):
    # use temporary SQLite databases for testing
    monkeypatch.setenv("LEAGUE_DB_PATH", str(tmp_path / "test.db"))
    monkeypatch.setenv("LEAGUE_LOG_DB_PATH", str(tmp_path / "test_logs.db"))
    monkeypatch.delenv("LEAGUE_DEFAULT_MODE", raising=False)
    application = create_app()
    application.config['TESTING'] = True
    with application.app_context():
        db.create_all()
        admin = User(email='admin@example.com', name='Admin', is_admin=True)
        admin.set_password('admin123')
        db.session.add(admin)
        for name, color in [('Ana', '#e11d48'), ('Bruno', '#2563eb'),
                            ('Carla', '#16a34a'), ('Zoe', '#9333ea')]:
            db.session.add(Player(name=name, background_color=color))
        db.session.commit()
        yield application
        db.session.remove()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    resp = client.post('/api/login', json={'email': 'admin@example.com', 'password': 'admin123'})
    assert resp.status_code == 200
    return client


@pytest.fixture
def catalog(session):
    return {p.name: p for p in session.query(Player).all()}
