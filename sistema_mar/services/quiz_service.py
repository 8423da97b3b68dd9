import logging
from dataclasses import dataclass, field

from sistema_mar.answers import encode_answer, decode_answer, from_input
from sistema_mar.errors import QuizError, StoreError, ConfigurationError, format_error
from sistema_mar.models import STATUS_IN_PROGRESS, STATUS_REVIEW_PENDING
from sistema_mar.store import MODULES, QUESTIONS, OPTIONS, SUBMISSIONS, ANSWERS
from sistema_mar.utils import now_iso

logger = logging.getLogger(__name__)

ALREADY_COMPLETED = 'ALREADY_COMPLETED'


@dataclass
class QuizStructure:
    """Modules, questions and options, each sorted by order_number."""
    modules: list = field(default_factory=list)
    questions_by_module: dict = field(default_factory=dict)
    options_by_question: dict = field(default_factory=dict)

    @property
    def module_count(self):
        return len(self.modules)

    def questions_for(self, module_index):
        if module_index < 0 or module_index >= len(self.modules):
            return []
        return self.questions_by_module.get(self.modules[module_index]['id'], [])

    def question_at(self, module_index, question_index):
        questions = self.questions_for(module_index)
        if 0 <= question_index < len(questions):
            return questions[question_index]
        return None

    def ordered_questions(self):
        for module in self.modules:
            for question in self.questions_by_module.get(module['id'], []):
                yield module, question

    def question_by_id(self, question_id):
        for _, question in self.ordered_questions():
            if question['id'] == question_id:
                return question
        return None

    def options_for(self, question_id):
        return self.options_by_question.get(question_id, [])

    def validate(self):
        """Returns a list of problems; empty means consistent."""
        problems = []
        if not self.modules:
            problems.append('Nenhum módulo encontrado')
        module_ids = {m['id'] for m in self.modules}
        for module in self.modules:
            if not self.questions_by_module.get(module['id']):
                problems.append(f"Módulo '{module['title']}' não possui perguntas")
        for module_id, questions in self.questions_by_module.items():
            if module_id not in module_ids:
                problems.append(f"{len(questions)} pergunta(s) apontam para um módulo inexistente ({module_id})")
        return problems

    def to_dict(self):
        return {
            'modules': [
                dict(module, questions=[
                    dict(q, options=self.options_for(q['id']))
                    for q in self.questions_by_module.get(module['id'], [])
                ])
                for module in self.modules
            ]
        }


@dataclass
class AnswerResult:
    success: bool
    submission_id: str = None
    error: dict = None

    @property
    def status_code(self):
        if self.success:
            return 200
        if (self.error or {}).get('code') == ALREADY_COMPLETED:
            return 409
        return 500

    def to_dict(self):
        if self.success:
            return {'success': True, 'submissionId': self.submission_id}
        return {'success': False, 'error': self.error}


class QuizService:
    def __init__(self, store):
        self.store = store

    # --- Structure ---
    def load_structure(self):
        modules = self.store.select(MODULES, order='order_number')
        questions = self.store.select(QUESTIONS, order='order_number')
        options = self.store.select(OPTIONS, order='order_number')

        structure = QuizStructure(modules=modules)
        for question in questions:
            structure.questions_by_module.setdefault(question['module_id'], []).append(question)
        for option in options:
            structure.options_by_question.setdefault(option['question_id'], []).append(option)
        return structure

    def load_valid_structure(self):
        """Loads the structure and raises ConfigurationError when it is unusable."""
        try:
            structure = self.load_structure()
        except StoreError as e:
            raise ConfigurationError(
                'Não foi possível carregar o questionário',
                details=e.to_dict(),
                hint='Verifique a conexão com o banco de dados',
            )
        problems = structure.validate()
        if problems:
            raise ConfigurationError(
                'O questionário está com a configuração incompleta',
                details=problems,
                hint='Um administrador pode restaurar os dados em Recuperação do Questionário',
            )
        return structure

    # --- Submission ---
    def get_submission(self, user_id):
        return self.store.select_one(SUBMISSIONS, filters={'user_id': user_id})

    def fetch_or_create_submission(self, user_id, user_email=None):
        submission = self.get_submission(user_id)
        if submission:
            return submission
        try:
            created = self.store.insert(SUBMISSIONS, {
                'user_id': user_id,
                'user_email': user_email,
                'current_module': 1,
                'status': STATUS_IN_PROGRESS,
                'completed': False,
                'started_at': now_iso(),
            })
        except StoreError as e:
            if not e.is_unique_violation:
                raise
            # Another request created it first
            logger.info(f"Submission for {user_id} created concurrently, reusing it")
            submission = self.get_submission(user_id)
            if submission:
                return submission
            raise
        return created[0] if created else self.get_submission(user_id)

    def update_position(self, submission_id, current_module, status=None):
        values = {'current_module': current_module}
        if status:
            values['status'] = status
        self.store.update(SUBMISSIONS, values, {'id': submission_id})

    def mark_review_pending(self, submission_id, module_count):
        """Position past the last module plus an explicit review status."""
        self.update_position(submission_id, module_count + 1, STATUS_REVIEW_PENDING)

    # --- Answers ---
    def save_answer(self, user_id, question_id, answer, user_email=None):
        try:
            submission = self.fetch_or_create_submission(user_id, user_email)
            if submission.get('completed'):
                raise QuizError('O questionário já foi concluído e não pode ser alterado', code=ALREADY_COMPLETED)
            self.store.upsert(ANSWERS, {
                'submission_id': submission['id'],
                'question_id': question_id,
                'answer': encode_answer(from_input(answer)),
                'updated_at': now_iso(),
            }, on_conflict='submission_id,question_id')
        except QuizError as e:
            error = format_error(e, context='save_answer', questionId=question_id)
            logger.error(f"[Quiz] Failed to save answer {question_id} for {user_id}: {e.message} ({e.code})")
            return AnswerResult(success=False, error=error)
        return AnswerResult(success=True, submission_id=submission['id'])

    def get_answer_rows(self, submission_id):
        return self.store.select(ANSWERS, filters={'submission_id': submission_id})

    def get_answers(self, submission_id):
        """{question_id: Scalar | MultiValue} for the submission."""
        return {
            row['question_id']: decode_answer(row['answer'])
            for row in self.get_answer_rows(submission_id)
            if row.get('answer') is not None
        }
