import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sistema_mar.app import create_app  # noqa: E402
from sistema_mar.models import db  # noqa: E402
from sistema_mar.store import MODULES, QUESTIONS, OPTIONS  # noqa: E402

PASSWORD = 'segredo123'


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'USE_SQL_STORE': True,
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'WEBHOOK_URL': None,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(app):
    return app.store


@pytest.fixture
def services(app):
    return app.services


@pytest.fixture
def quiz(store):
    """Two modules: two questions (text, checkbox) then one text question."""
    first = store.insert(MODULES, {'title': 'Mercado', 'description': 'Sobre o mercado', 'order_number': 1})[0]
    second = store.insert(MODULES, {'title': 'Atração', 'description': 'Sobre atração', 'order_number': 2})[0]
    q1 = store.insert(QUESTIONS, {
        'module_id': first['id'], 'text': 'Qual o nome da sua empresa?', 'type': 'text', 'order_number': 1,
    })[0]
    q2 = store.insert(QUESTIONS, {
        'module_id': first['id'], 'text': 'Quais canais você usa?', 'type': 'checkbox', 'order_number': 2,
    })[0]
    q3 = store.insert(QUESTIONS, {
        'module_id': second['id'], 'text': 'Quantos clientes novos por mês?', 'type': 'number', 'order_number': 1,
    })[0]
    store.insert(OPTIONS, [
        {'question_id': q2['id'], 'text': 'Instagram', 'order_number': 1},
        {'question_id': q2['id'], 'text': 'Google', 'order_number': 2},
        {'question_id': q2['id'], 'text': 'Indicação', 'order_number': 3},
    ])
    return {'modules': [first, second], 'q1': q1, 'q2': q2, 'q3': q3}


@pytest.fixture
def user(services):
    return services.users.create_user('cliente@example.com', PASSWORD, full_name='Cliente Teste')


@pytest.fixture
def admin_user(services):
    return services.users.create_user('admin@example.com', PASSWORD, full_name='Admin', is_admin=True)


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, email, password=PASSWORD):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def user_client(client, user):
    response = login(client, user['email'])
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(client, admin_user):
    response = login(client, admin_user['email'])
    assert response.status_code == 200
    return client


@pytest.fixture
def no_sleep(monkeypatch):
    import sistema_mar.utils
    monkeypatch.setattr(sistema_mar.utils.time, 'sleep', lambda seconds: None)
