import logging
from enum import Enum

from sistema_mar.errors import (
    QuizError, StoreError, ConfigurationError, ValidationError,
    format_error, format_technical_error,
)
from sistema_mar.models import STATUS_IN_PROGRESS, STATUS_REVIEW_PENDING

logger = logging.getLogger(__name__)


class QuizState(str, Enum):
    LOADING = 'loading'
    IN_PROGRESS = 'in_progress'
    REVIEW = 'review'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CONFIG_ERROR = 'config_error'


class InvalidTransition(QuizError):
    code = 'INVALID_STATE'


class QuizNavigator:
    """
    Per-user quiz position. The persisted part (current_module, status)
    lives on the submission; the question index and the confirmation
    checkbox live in the caller's session via snapshot().
    """

    def __init__(self, quiz_service, completion_service, user_id, user_email=None):
        self.quiz = quiz_service
        self.completion = completion_service
        self.user_id = user_id
        self.user_email = user_email
        self.state = QuizState.LOADING
        self.structure = None
        self.submission = None
        self.module_index = 0
        self.question_index = 0
        self.redirect = None
        self.last_error = None

    # --- Loading ---
    def load(self, override=False, snapshot=None):
        self.redirect = None
        try:
            self.structure = self.quiz.load_valid_structure()
            self.submission = self.quiz.fetch_or_create_submission(self.user_id, self.user_email)
        except (ConfigurationError, StoreError) as e:
            logger.error(f"[Quiz] Could not load quiz for {self.user_id}: {e.message}")
            self.state = QuizState.CONFIG_ERROR
            self._set_error(e, 'load_quiz')
            return self

        module_count = self.structure.module_count
        if self.submission.get('completed'):
            if not override:
                self.state = QuizState.COMPLETED
                self.redirect = 'view_answers'
                return self
            self.state = QuizState.REVIEW
        elif (self.submission.get('status') == STATUS_REVIEW_PENDING
              or (self.submission.get('current_module') or 1) > module_count):
            self.state = QuizState.REVIEW
        else:
            current = self.submission.get('current_module') or 1
            self.module_index = min(max(current - 1, 0), module_count - 1)
            self.question_index = 0
            self.state = QuizState.IN_PROGRESS

        if snapshot and snapshot.get('submission_id') == self.submission['id']:
            self._restore(snapshot)
        return self

    def _restore(self, snapshot):
        saved_state = snapshot.get('state')
        if self.state == QuizState.IN_PROGRESS and saved_state == QuizState.IN_PROGRESS.value:
            if snapshot.get('module_index') == self.module_index:
                last = len(self.structure.questions_for(self.module_index)) - 1
                self.question_index = min(max(snapshot.get('question_index') or 0, 0), last)
        elif self.state == QuizState.REVIEW and saved_state == QuizState.CONFIRMED.value:
            self.state = QuizState.CONFIRMED

    def snapshot(self):
        return {
            'submission_id': (self.submission or {}).get('id'),
            'state': self.state.value,
            'module_index': self.module_index,
            'question_index': self.question_index,
        }

    # --- Helpers ---
    def _require(self, *states):
        if self.state not in states:
            raise InvalidTransition(
                f"Ação indisponível no estado '{self.state.value}'",
                details={'allowed': [s.value for s in states]},
            )

    def _set_error(self, error, context):
        self.last_error = format_error(error, context=context)
        self.last_error['technical'] = format_technical_error(self.last_error)

    def _persist(self, current_module, status=STATUS_IN_PROGRESS):
        self.quiz.update_position(self.submission['id'], current_module, status)
        self.submission['current_module'] = current_module
        self.submission['status'] = status

    def current_question(self):
        if self.state != QuizState.IN_PROGRESS:
            return None
        question = self.structure.question_at(self.module_index, self.question_index)
        if question is None:
            return None
        return dict(question, options=self.structure.options_for(question['id']))

    # --- Transitions ---
    def next(self, question_id=None, answer=None):
        """Saves the current answer, when given, then advances one question."""
        self._require(QuizState.IN_PROGRESS)
        self.last_error = None
        if question_id:
            result = self.quiz.save_answer(self.user_id, question_id, answer, self.user_email)
            if not result.success:
                self.last_error = result.error
                return self
        questions = self.structure.questions_for(self.module_index)
        try:
            if self.question_index < len(questions) - 1:
                self.question_index += 1
            elif self.module_index < self.structure.module_count - 1:
                self._persist(self.module_index + 2)
                self.module_index += 1
                self.question_index = 0
            else:
                self.quiz.mark_review_pending(self.submission['id'], self.structure.module_count)
                self.submission['current_module'] = self.structure.module_count + 1
                self.submission['status'] = STATUS_REVIEW_PENDING
                self.state = QuizState.REVIEW
        except StoreError as e:
            logger.error(f"[Quiz] Failed to persist position for {self.user_id}: {e.message}")
            self._set_error(e, 'quiz_next')
        return self

    def previous(self):
        self._require(QuizState.IN_PROGRESS, QuizState.REVIEW)
        self.last_error = None
        try:
            if self.state == QuizState.REVIEW:
                last_module = self.structure.module_count - 1
                self._persist(last_module + 1)
                self.module_index = last_module
                self.question_index = len(self.structure.questions_for(last_module)) - 1
                self.state = QuizState.IN_PROGRESS
            elif self.question_index > 0:
                self.question_index -= 1
            elif self.module_index > 0:
                self._persist(self.module_index)
                self.module_index -= 1
                self.question_index = len(self.structure.questions_for(self.module_index)) - 1
        except StoreError as e:
            logger.error(f"[Quiz] Failed to persist position for {self.user_id}: {e.message}")
            self._set_error(e, 'quiz_previous')
        return self

    def edit(self, module_index, question_index=0):
        """Jumps from the review screen back to one question."""
        self._require(QuizState.REVIEW, QuizState.CONFIRMED, QuizState.IN_PROGRESS)
        if self.submission.get('completed'):
            raise InvalidTransition('O questionário já foi concluído e não pode ser editado')
        if self.structure.question_at(module_index, question_index) is None:
            raise ValidationError('Pergunta não encontrada', details={
                'module_index': module_index, 'question_index': question_index,
            })
        self.last_error = None
        try:
            self._persist(module_index + 1)
        except StoreError as e:
            self._set_error(e, 'quiz_edit')
            return self
        self.module_index = module_index
        self.question_index = question_index
        self.state = QuizState.IN_PROGRESS
        return self

    def confirm(self, agreed):
        self._require(QuizState.REVIEW, QuizState.CONFIRMED)
        if self.submission.get('completed'):
            raise InvalidTransition('O questionário já foi concluído')
        if not agreed:
            raise ValidationError('É necessário confirmar que as respostas estão corretas')
        self.state = QuizState.CONFIRMED
        return self

    def complete(self):
        self._require(QuizState.CONFIRMED)
        result = self.completion.complete_quiz_manually(self.user_id)
        if result.success:
            self.state = QuizState.COMPLETED
            self.last_error = None
            self.submission = self.quiz.get_submission(self.user_id) or self.submission
        else:
            # Stay confirmed so the user can retry without answering again
            self._set_error(result.error, 'complete_quiz')
        return result

    # --- Serialisation ---
    def to_dict(self):
        data = {
            'state': self.state.value,
            'submissionId': (self.submission or {}).get('id'),
            'redirect': self.redirect,
            'error': self.last_error,
        }
        if not self.structure:
            return data

        total = sum(len(self.structure.questions_for(i)) for i in range(self.structure.module_count))
        answered_before = sum(len(self.structure.questions_for(i)) for i in range(self.module_index))
        data.update({
            'moduleCount': self.structure.module_count,
            'moduleIndex': self.module_index,
            'questionIndex': self.question_index,
            'totalQuestions': total,
        })

        if self.state == QuizState.IN_PROGRESS:
            module = self.structure.modules[self.module_index]
            question = self.current_question()
            answers = self.quiz.get_answers(self.submission['id'])
            current = answers.get(question['id']) if question else None
            data.update({
                'module': module,
                'question': question,
                'answer': current.to_json() if current is not None else None,
                'progress': round(100 * (answered_before + self.question_index) / total) if total else 0,
            })
        elif self.state in (QuizState.REVIEW, QuizState.CONFIRMED):
            answers = self.quiz.get_answers(self.submission['id'])
            data['review'] = [
                {
                    'module': module['title'],
                    'questionId': question['id'],
                    'question': question['text'],
                    'answer': answers[question['id']].to_json() if question['id'] in answers else None,
                }
                for module, question in self.structure.ordered_questions()
            ]
            data['progress'] = 100
        return data
