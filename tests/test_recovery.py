import pytest

from sistema_mar import seed_data
from sistema_mar.errors import ValidationError
from sistema_mar.store import MODULES, QUESTIONS, OPTIONS

EXPECTED_OPTIONS = sum(len(q.get('options') or []) for q in seed_data.QUESTIONS)


def test_seed_creates_full_structure(services, store):
    result = services.recovery.seed_quiz_data()

    assert result == {'modules': 7, 'questions': len(seed_data.QUESTIONS), 'options': EXPECTED_OPTIONS}
    assert services.quiz.load_valid_structure().module_count == 7


def test_seed_is_incremental(services, store):
    services.recovery.seed_quiz_data()
    services.recovery.seed_quiz_data()

    assert store.count(MODULES) == 7
    assert store.count(QUESTIONS) == len(seed_data.QUESTIONS)
    assert store.count(OPTIONS) == EXPECTED_OPTIONS


def test_questions_land_in_their_declared_module(services, store):
    services.recovery.seed_quiz_data()
    structure = services.quiz.load_structure()

    for index, module in enumerate(structure.modules):
        declared = [q['text'] for q in seed_data.QUESTIONS if q['module_number'] == module['order_number']]
        assert [q['text'] for q in structure.questions_for(index)] == declared


def test_recover_on_empty_database(services, store):
    result = services.recovery.recover_quiz_data()

    assert result['success'] is True
    assert result['data']['questions'] == len(seed_data.QUESTIONS)
    assert store.count(OPTIONS) == EXPECTED_OPTIONS


def test_recover_leaves_intact_data_alone(services, store):
    services.recovery.seed_quiz_data()
    ids = {q['id'] for q in store.select(QUESTIONS, columns='id')}

    result = services.recovery.recover_quiz_data()

    assert result['success'] is True
    assert 'íntegros' in result['message']
    assert {q['id'] for q in store.select(QUESTIONS, columns='id')} == ids


def test_recover_fixes_module_titles(services, store):
    services.recovery.seed_quiz_data()
    first = store.select_one(MODULES, filters={'order_number': 1})
    store.update(MODULES, {'title': 'Módulo quebrado'}, {'id': first['id']})

    services.recovery.recover_quiz_data()

    assert store.select_one(MODULES, filters={'id': first['id']})['title'] == 'Mercado'


def test_forced_recovery_rebuilds_questions(services, store):
    services.recovery.seed_quiz_data()
    old_ids = {q['id'] for q in store.select(QUESTIONS, columns='id')}

    result = services.recovery.recover_quiz_data(force=True)

    assert result['success'] is True
    new_ids = {q['id'] for q in store.select(QUESTIONS, columns='id')}
    assert len(new_ids) == len(seed_data.QUESTIONS)
    assert not old_ids & new_ids


def test_missing_questions_are_refilled_when_answers_exist(services, store, user):
    services.recovery.seed_quiz_data()
    questions = store.select(QUESTIONS, order='order_number')
    answered = questions[0]
    services.quiz.save_answer(user['id'], answered['id'], 'Acme Inc')
    store.delete(OPTIONS, {'question_id': questions[-1]['id']})
    store.delete(QUESTIONS, {'id': questions[-1]['id']})

    result = services.recovery.recover_quiz_data()

    assert result['success'] is True
    assert store.count(QUESTIONS) == len(seed_data.QUESTIONS)
    assert store.select_one(QUESTIONS, filters={'id': answered['id']}) is not None


def test_editor_module_and_question_lifecycle(services, store, admin_user):
    module = services.recovery.save_module({'title': 'Extra'}, admin_id=admin_user['id'])
    assert module['order_number'] == 1

    question = services.recovery.save_question({
        'module_id': module['id'], 'text': 'Qual canal?', 'type': 'radio', 'options': ['A', ' ', 'B'],
    }, admin_id=admin_user['id'])
    assert [o['text'] for o in store.select(OPTIONS, filters={'question_id': question['id']}, order='order_number')] == ['A', 'B']

    with pytest.raises(ValidationError):
        services.recovery.delete_module(module['id'])

    saved = services.recovery.replace_options(question['id'], ['C'], admin_id=admin_user['id'])
    assert [o['text'] for o in saved] == ['C']

    services.recovery.delete_question(question['id'])
    services.recovery.delete_module(module['id'])
    assert store.count(MODULES) == 0
    assert {'create_module', 'create_question', 'replace_options'} <= {a['action'] for a in services.admin.recent_actions()}


def test_editor_rejects_invalid_input(services, quiz):
    with pytest.raises(ValidationError):
        services.recovery.save_module({'title': ' '})
    with pytest.raises(ValidationError):
        services.recovery.save_question({'module_id': quiz['modules'][0]['id'], 'text': 'x', 'type': 'slider'})
    with pytest.raises(ValidationError):
        services.recovery.replace_options(quiz['q1']['id'], ['A'])


def test_answered_question_cannot_be_deleted(services, user, quiz):
    services.quiz.save_answer(user['id'], quiz['q1']['id'], 'Acme Inc')
    with pytest.raises(ValidationError):
        services.recovery.delete_question(quiz['q1']['id'])
