from unittest import mock

import requests

from sistema_mar.errors import QuizError, StoreError
from sistema_mar.services.completion_service import (
    CompletionService, DirectUpdateCompletionTier, RpcCompletionTier, TierOutcome, TierResult, _is_confirmation,
)
from sistema_mar.store import SUBMISSIONS, RESPOSTAS


def _rpc_failing_on(store, monkeypatch, name, result=None, error=None):
    real_rpc = store.rpc

    def rpc(procedure, params=None):
        if procedure == name:
            if error:
                raise error
            return result
        return real_rpc(procedure, params)

    monkeypatch.setattr(store, 'rpc', rpc)


def test_only_explicit_success_confirms():
    assert _is_confirmation(True)
    assert _is_confirmation({'success': True})
    assert _is_confirmation([{'completed': True}])
    for value in (None, False, {}, [], [True, True], {'success': 'yes'}, 'ok'):
        assert not _is_confirmation(value)


def test_rpc_tier_completes_existing_submission(services, store, user, quiz):
    services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme Inc', user['email'])

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success
    assert result.method == 'rpc'
    assert result.consolidated is True
    assert result.webhook_sent is False
    submission = store.select_one(SUBMISSIONS, filters={'user_id': user['id']})
    assert submission['completed'] is True
    assert submission['status'] == 'completed'
    assert submission['completed_at']
    assert result.to_dict()['submissionId'] == submission['id']


def test_consolidated_row_for_single_answer(services, store, user, quiz):
    result = services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme Inc', user['email'])
    services.completion.complete_quiz_manually(user['id'])

    row = store.select_one(RESPOSTAS, filters={'submission_id': result.submission_id})
    text = quiz['q1']['text']
    assert row['respostas'] == {'Pergunta_1': text, 'Resposta_1': 'Acme Inc', text: 'Acme Inc'}
    assert row['user_email'] == user['email']
    assert row['full_name'] == 'Cliente Teste'


def test_rpc_error_falls_back_to_direct_update(services, store, user, quiz, monkeypatch):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    _rpc_failing_on(store, monkeypatch, 'complete_quiz', error=StoreError('function missing', code='PGRST202'))

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success
    assert result.method == 'direct'
    assert [a['outcome'] for a in result.attempts] == ['error', 'confirmed']
    assert store.select_one(SUBMISSIONS, filters={'user_id': user['id']})['completed'] is True


def test_falsy_rpc_result_is_not_a_confirmation(services, store, user, quiz, monkeypatch):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    _rpc_failing_on(store, monkeypatch, 'complete_quiz', result=None)

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.method == 'direct'
    assert result.attempts[0] == {'method': 'rpc', 'outcome': 'not_confirmed'}


def test_missing_submission_is_created_completed(services, store, user, quiz):
    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success
    assert result.method == 'create'
    submission = store.select_one(SUBMISSIONS, filters={'user_id': user['id']})
    assert submission['completed'] is True
    assert submission['current_module'] == 3
    assert submission['user_email'] == user['email']
    assert store.select_one(RESPOSTAS, filters={'submission_id': submission['id']})['respostas'] == {}


def test_unverified_update_reports_failure(services, store, user, quiz, monkeypatch):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    _rpc_failing_on(store, monkeypatch, 'complete_quiz', error=StoreError('timeout', code='TIMEOUT'))
    monkeypatch.setattr(store, 'update', lambda *args, **kwargs: [])

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success is False
    assert result.error['code'] == 'VERIFICATION_FAILED'
    assert [a['outcome'] for a in result.attempts] == ['error', 'error', 'not_confirmed']
    data = result.to_dict()
    assert data['success'] is False
    assert 'method' not in data
    assert store.select_one(SUBMISSIONS, filters={'user_id': user['id']})['completed'] is False


def test_no_tier_confirming_gives_generic_error(store):
    class Never:
        name = 'never'

        def attempt(self, user_id):
            return TierResult(TierOutcome.NOT_CONFIRMED, self.name)

    service = CompletionService(store, consolidation=None, webhook=None, tiers=[Never()])
    result = service.complete_quiz_manually('user-1')
    assert result.success is False
    assert result.error['code'] == 'COMPLETION_FAILED'
    assert result.error['hint']


def test_already_completed_submission_keeps_completed_at(services, store, user, quiz):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    services.completion.complete_quiz_manually(user['id'])
    first = store.select_one(SUBMISSIONS, filters={'user_id': user['id']})

    tier = DirectUpdateCompletionTier(store)
    outcome = tier.attempt(user['id'])
    assert outcome.outcome == TierOutcome.CONFIRMED

    again = services.completion.complete_quiz_manually(user['id'])
    assert again.success
    assert store.select_one(SUBMISSIONS, filters={'user_id': user['id']})['completed_at'] == first['completed_at']


def test_consolidation_failure_does_not_undo_completion(services, store, user, quiz, monkeypatch):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])

    def broken(submission_id):
        raise QuizError('consolidation failed', code='DB_ERROR')

    monkeypatch.setattr(services.consolidation, 'rebuild', broken)
    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success
    assert result.consolidated is False
    assert store.select_one(SUBMISSIONS, filters={'user_id': user['id']})['completed'] is True


def test_webhook_failure_does_not_undo_completion(services, store, user, quiz, monkeypatch, no_sleep):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    services.webhook.configure_url('https://hooks.example.com/mar')
    monkeypatch.setattr(requests, 'post', mock.Mock(side_effect=requests.exceptions.ConnectionError('down')))

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success
    assert result.to_dict()['webhookSent'] is False
    assert store.select_one(SUBMISSIONS, filters={'user_id': user['id']})['completed'] is True


def test_webhook_success_is_reported(services, store, user, quiz, monkeypatch):
    services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme Inc', user['email'])
    services.webhook.configure_url('https://hooks.example.com/mar')
    monkeypatch.setattr(requests, 'post', mock.Mock(return_value=mock.Mock(status_code=200)))

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.webhook_sent is True
    submission = store.select_one(SUBMISSIONS, filters={'user_id': user['id']})
    assert submission['webhook_processed'] is True


def test_read_failure_after_rpc_confirmation_stays_structured(services, store, user, quiz, monkeypatch):
    services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme Inc', user['email'])
    _rpc_failing_on(store, monkeypatch, 'complete_quiz', result=True)
    real_select = store.select

    def connection_reset(table, *args, **kwargs):
        if table == SUBMISSIONS and 'user_id' in (kwargs.get('filters') or {}):
            raise StoreError('connection reset', code='NETWORK_ERROR')
        return real_select(table, *args, **kwargs)

    monkeypatch.setattr(store, 'select', connection_reset)

    tier_result = RpcCompletionTier(store).attempt(user['id'])
    assert tier_result.outcome == TierOutcome.CONFIRMED
    assert tier_result.submission is None

    result = services.completion.complete_quiz_manually(user['id'])

    assert result.success is True
    assert result.method == 'rpc'
    assert result.submission_id is None
    assert result.consolidated is False
    assert result.webhook_sent is False
