from conftest import login

from sistema_mar.answers import Scalar


def test_ping(client):
    response = client.get('/ping')
    assert response.get_json() == {'status': 'ok', 'store': 'sql'}


def test_login_requires_fields(client):
    response = client.post('/auth/login', json={'email': 'cliente@example.com'})
    assert response.status_code == 400


def test_login_rejects_wrong_password(client, user):
    response = login(client, user['email'], 'errada123')
    body = response.get_json()
    assert response.status_code == 401
    assert body['success'] is False
    assert body['error']['code'] == 'invalid_credentials'


def test_login_and_me(user_client, user):
    body = user_client.get('/auth/me').get_json()
    assert body['data']['email'] == user['email']
    assert body['data']['is_admin'] is False


def test_quiz_requires_login(client, quiz):
    response = client.get('/quiz')
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'UNAUTHORIZED'


def test_quiz_without_structure_is_unavailable(user_client):
    response = user_client.get('/quiz')
    assert response.status_code == 503
    assert response.get_json()['data']['state'] == 'config_error'


def test_full_quiz_flow(user_client, quiz):
    data = user_client.get('/quiz').get_json()['data']
    assert data['state'] == 'in_progress'
    assert data['question']['id'] == quiz['q1']['id']

    data = user_client.post('/quiz/next', json={'questionId': quiz['q1']['id'], 'answer': 'Acme Inc'}).get_json()['data']
    assert data['questionIndex'] == 1

    data = user_client.post('/quiz/next', json={'questionId': quiz['q2']['id'], 'answer': ['Instagram']}).get_json()['data']
    assert data['moduleIndex'] == 1

    data = user_client.post('/quiz/next', json={'questionId': quiz['q3']['id'], 'answer': '12'}).get_json()['data']
    assert data['state'] == 'review'
    assert [item['answer'] for item in data['review']] == ['Acme Inc', ['Instagram'], '12']

    response = user_client.post('/quiz/confirm', json={'agreed': False})
    assert response.status_code == 400

    data = user_client.post('/quiz/confirm', json={'agreed': True}).get_json()['data']
    assert data['state'] == 'confirmed'

    body = user_client.post('/quiz/complete').get_json()
    assert body['success'] is True
    assert body['data']['method'] == 'rpc'
    assert body['data']['consolidated'] is True

    data = user_client.get('/quiz').get_json()['data']
    assert data['state'] == 'completed'
    assert data['redirect'] == 'view_answers'

    data = user_client.get('/quiz?review=1').get_json()['data']
    assert data['state'] == 'review'


def test_complete_outside_confirmation_is_rejected(user_client, quiz):
    user_client.get('/quiz')
    response = user_client.post('/quiz/complete')
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'INVALID_STATE'


def test_answer_endpoint(user_client, quiz):
    response = user_client.post('/quiz/answer', json={'answer': 'x'})
    assert response.status_code == 400

    body = user_client.post('/quiz/answer', json={'questionId': quiz['q1']['id'], 'answer': 'Acme Inc'}).get_json()
    assert body['success'] is True
    assert body['data']['submissionId']


def test_completed_quiz_rejects_answer_changes(user_client, services, user, quiz):
    user_client.post('/quiz/answer', json={'questionId': quiz['q1']['id'], 'answer': 'Acme'})
    assert services.completion.complete_quiz_manually(user['id']).success is True

    response = user_client.post('/quiz/next', json={'questionId': quiz['q1']['id'], 'answer': 'Mudou'})
    assert response.status_code == 409

    response = user_client.post('/quiz/answer', json={'questionId': quiz['q1']['id'], 'answer': 'Mudou2'})
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'ALREADY_COMPLETED'

    submission = services.quiz.get_submission(user['id'])
    assert services.quiz.get_answers(submission['id']) == {quiz['q1']['id']: Scalar('Acme')}
    assert services.consolidation.get(submission['id'])['respostas']['Resposta_1'] == 'Acme'


def test_answers_exports(user_client, quiz):
    user_client.post('/quiz/answer', json={'questionId': quiz['q1']['id'], 'answer': 'Acme Inc'})

    report = user_client.get('/quiz/answers').get_json()['data']
    assert report['modules'][0]['answers'][0]['answer'] == 'Acme Inc'

    csv_response = user_client.get('/quiz/answers.csv')
    assert csv_response.mimetype == 'text/csv'
    assert 'Acme Inc' in csv_response.get_data(as_text=True)

    pdf_response = user_client.get('/quiz/report.pdf')
    assert pdf_response.mimetype == 'application/pdf'
    assert pdf_response.data.startswith(b'%PDF')


def test_answers_before_starting_is_not_found(user_client, quiz):
    response = user_client.get('/quiz/answers')
    assert response.status_code == 404


def test_admin_routes_reject_regular_users(user_client):
    assert user_client.get('/admin/users').status_code == 403
    assert user_client.get('/admin/metrics').status_code == 403


def test_admin_routes_require_login(client):
    assert client.get('/admin/users').status_code == 401


def test_admin_lists_users_and_metrics(admin_client, services, user, quiz):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])

    users = admin_client.get('/admin/users').get_json()['data']
    assert {u['email'] for u in users} == {'admin@example.com', 'cliente@example.com'}

    metrics = admin_client.get('/admin/metrics').get_json()['data']
    assert metrics['totalUsers'] == 2
    assert metrics['inProgressSubmissions'] == 1


def test_admin_completes_quiz_for_user(admin_client, services, user, quiz):
    body = admin_client.post(f"/admin/users/{user['id']}/complete-quiz").get_json()
    assert body['success'] is True
    assert body['data']['method'] == 'create'
    assert services.quiz.get_submission(user['id'])['completed'] is True

    log = admin_client.get('/admin/audit-log').get_json()['data']
    assert log[0]['action'] == 'complete_quiz'


def test_admin_submission_exports(admin_client, services, user, quiz):
    services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme Inc', user['email'])
    services.completion.complete_quiz_manually(user['id'])
    submission_id = services.quiz.get_submission(user['id'])['id']

    summary = admin_client.get('/admin/submissions/export.csv').get_data(as_text=True)
    assert summary.splitlines()[0] == 'ID,Usuário,Email,Data de Início,Data de Conclusão,Status'
    assert 'Completo' in summary

    respostas = admin_client.get(f'/admin/submissions/{submission_id}/respostas.csv').get_data(as_text=True)
    assert 'Acme Inc' in respostas

    pdf = admin_client.get(f'/admin/submissions/{submission_id}/report.pdf')
    assert pdf.data.startswith(b'%PDF')

    assert admin_client.get('/admin/submissions/missing').status_code == 404


def test_admin_webhook_settings(admin_client):
    response = admin_client.put('/admin/settings/webhook', json={'url': 'http://inseguro.example.com'})
    assert response.status_code == 400

    response = admin_client.put('/admin/settings/webhook', json={'url': 'https://hooks.example.com/mar'})
    assert response.status_code == 200
    assert admin_client.get('/admin/settings/webhook').get_json()['data']['url'] == 'https://hooks.example.com/mar'


def test_admin_seeds_quiz(admin_client):
    body = admin_client.post('/admin/quiz/seed').get_json()
    assert body['data']['modules'] == 7

    validation = admin_client.get('/admin/quiz/validate').get_json()['data']
    assert validation == {'valid': True, 'problems': []}
