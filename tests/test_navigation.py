import pytest

from sistema_mar.errors import StoreError, ValidationError
from sistema_mar.services.completion_service import CompletionResult
from sistema_mar.services.navigation import QuizNavigator, QuizState, InvalidTransition
from sistema_mar.store import SUBMISSIONS


def _navigator(services, user, **kwargs):
    nav = QuizNavigator(services.quiz, services.completion, user['id'], user['email'])
    return nav.load(**kwargs)


def test_first_visit_starts_at_first_question(services, user, quiz):
    nav = _navigator(services, user)

    assert nav.state == QuizState.IN_PROGRESS
    assert nav.current_question()['id'] == quiz['q1']['id']
    assert nav.submission['current_module'] == 1
    data = nav.to_dict()
    assert data['progress'] == 0
    assert data['totalQuestions'] == 3


def test_moving_within_a_module_does_not_persist(services, store, user, quiz):
    nav = _navigator(services, user).next()

    assert nav.current_question()['id'] == quiz['q2']['id']
    assert [o['text'] for o in nav.current_question()['options']] == ['Instagram', 'Google', 'Indicação']
    assert store.select_one(SUBMISSIONS, filters={'user_id': user['id']})['current_module'] == 1


def test_module_rollover_is_persisted(services, user, quiz):
    nav = _navigator(services, user).next().next()

    assert nav.module_index == 1
    assert nav.current_question()['id'] == quiz['q3']['id']
    assert services.quiz.get_submission(user['id'])['current_module'] == 2


def test_resume_from_persisted_module(services, user, quiz):
    submission = services.quiz.fetch_or_create_submission(user['id'])
    services.quiz.update_position(submission['id'], 2)

    nav = _navigator(services, user)

    assert nav.module_index == 1
    assert nav.question_index == 0


def test_snapshot_restores_question_index(services, user, quiz):
    snapshot = _navigator(services, user).next().snapshot()

    nav = _navigator(services, user, snapshot=snapshot)

    assert nav.question_index == 1


def test_out_of_range_position_is_clamped(services, user, quiz):
    submission = services.quiz.fetch_or_create_submission(user['id'])
    services.quiz.update_position(submission['id'], 0)
    assert _navigator(services, user).module_index == 0


def test_finishing_last_module_enters_review(services, user, quiz):
    nav = _navigator(services, user).next().next().next()

    assert nav.state == QuizState.REVIEW
    submission = services.quiz.get_submission(user['id'])
    assert submission['status'] == 'review_pending'
    assert submission['current_module'] == 3
    assert _navigator(services, user).state == QuizState.REVIEW


def test_review_lists_every_question(services, user, quiz):
    services.quiz.save_answer(user['id'], quiz['q2']['id'], ['Google'])
    nav = _navigator(services, user).next().next().next()

    review = nav.to_dict()['review']

    assert [item['questionId'] for item in review] == [quiz['q1']['id'], quiz['q2']['id'], quiz['q3']['id']]
    assert review[1]['answer'] == ['Google']
    assert review[0]['answer'] is None


def test_previous_from_review_returns_to_last_question(services, user, quiz):
    nav = _navigator(services, user).next().next().next().previous()

    assert nav.state == QuizState.IN_PROGRESS
    assert nav.current_question()['id'] == quiz['q3']['id']
    submission = services.quiz.get_submission(user['id'])
    assert submission['status'] == 'in_progress'
    assert submission['current_module'] == 2


def test_previous_across_modules(services, user, quiz):
    nav = _navigator(services, user).next().next().previous()

    assert nav.module_index == 0
    assert nav.current_question()['id'] == quiz['q2']['id']
    assert services.quiz.get_submission(user['id'])['current_module'] == 1


def test_edit_from_review(services, user, quiz):
    nav = _navigator(services, user).next().next().next()

    nav.edit(0, 1)

    assert nav.state == QuizState.IN_PROGRESS
    assert nav.current_question()['id'] == quiz['q2']['id']
    assert services.quiz.get_submission(user['id'])['status'] == 'in_progress'
    with pytest.raises(ValidationError):
        nav.edit(5, 0)


def test_confirm_requires_agreement(services, user, quiz):
    nav = _navigator(services, user).next().next().next()

    with pytest.raises(ValidationError):
        nav.confirm(False)
    assert nav.confirm(True).state == QuizState.CONFIRMED


def test_actions_outside_their_state_are_rejected(services, user, quiz):
    nav = _navigator(services, user)
    with pytest.raises(InvalidTransition):
        nav.confirm(True)
    with pytest.raises(InvalidTransition):
        nav.complete()


def test_next_saves_the_answer_before_moving(services, store, user, quiz, monkeypatch):
    nav = _navigator(services, user).next(quiz['q1']['id'], 'Acme')
    assert nav.current_question()['id'] == quiz['q2']['id']
    assert services.quiz.get_answers(nav.submission['id'])[quiz['q1']['id']].as_text() == 'Acme'

    def denied(*args, **kwargs):
        raise StoreError('permission denied for table quiz_answers', code='42501')

    monkeypatch.setattr(store, 'upsert', denied)
    nav.next(quiz['q2']['id'], ['Google'])

    assert nav.current_question()['id'] == quiz['q2']['id']
    assert nav.last_error['code'] == '42501'


def test_completed_submission_cannot_advance(services, user, quiz):
    services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme')
    services.completion.complete_quiz_manually(user['id'])
    nav = _navigator(services, user)

    with pytest.raises(InvalidTransition):
        nav.next(quiz['q1']['id'], 'Mudou')
    assert services.quiz.get_answers(nav.submission['id'])[quiz['q1']['id']].as_text() == 'Acme'


def test_complete_moves_to_completed(services, user, quiz):
    nav = _navigator(services, user).next().next().next().confirm(True)

    result = nav.complete()

    assert result.success
    assert nav.state == QuizState.COMPLETED
    assert nav.submission['completed'] is True


def test_failed_completion_stays_confirmed(services, user, quiz, monkeypatch):
    nav = _navigator(services, user).next().next().next().confirm(True)
    failure = CompletionResult(success=False, error={'message': 'Falha ao concluir', 'code': 'TIMEOUT'})
    monkeypatch.setattr(services.completion, 'complete_quiz_manually', lambda user_id: failure)

    result = nav.complete()

    assert result.success is False
    assert nav.state == QuizState.CONFIRMED
    assert nav.last_error['code'] == 'TIMEOUT'
    assert 'Categoria: network' in nav.last_error['technical']


def test_completed_submission_redirects_to_answers(services, user, quiz):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    services.completion.complete_quiz_manually(user['id'])

    nav = _navigator(services, user)

    assert nav.state == QuizState.COMPLETED
    assert nav.redirect == 'view_answers'


def test_override_shows_completed_submission_in_review(services, user, quiz):
    services.quiz.fetch_or_create_submission(user['id'], user['email'])
    services.completion.complete_quiz_manually(user['id'])

    nav = _navigator(services, user, override=True)

    assert nav.state == QuizState.REVIEW
    with pytest.raises(InvalidTransition):
        nav.edit(0, 0)


def test_missing_structure_is_a_config_error(services, user):
    nav = _navigator(services, user)

    assert nav.state == QuizState.CONFIG_ERROR
    assert nav.last_error['code'] == 'CONFIG_ERROR'
    assert nav.to_dict()['state'] == 'config_error'
