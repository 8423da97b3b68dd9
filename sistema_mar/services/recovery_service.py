import logging

from sistema_mar import seed_data
from sistema_mar.errors import StoreError, QuizError, ValidationError
from sistema_mar.models import QUESTION_TYPES, OPTION_TYPES
from sistema_mar.store import MODULES, QUESTIONS, OPTIONS, ANSWERS

logger = logging.getLogger(__name__)

QUESTION_FIELDS = ('text', 'type', 'required', 'order_number', 'hint', 'max_options', 'placeholder', 'prefix')


def _question_row(question, module_id):
    row = {k: question.get(k) for k in QUESTION_FIELDS if k in question}
    row['module_id'] = module_id
    return row


class RecoveryService:
    """Seeds, repairs and edits the quiz structure."""

    def __init__(self, store, admin_service=None):
        self.store = store
        self.admin = admin_service

    def _module_ids(self):
        return {m['order_number']: m['id'] for m in self.store.select(MODULES, columns='id, order_number')}

    def _module_id_for(self, question, module_ids):
        module_id = module_ids.get(question['module_number'])
        if not module_id:
            raise QuizError(
                f"Módulo {question['module_number']} não encontrado para a pergunta '{question['text']}'",
                code='CONFIG_ERROR',
            )
        return module_id

    def _replace_options(self, question_id, texts):
        self.store.delete(OPTIONS, {'question_id': question_id})
        if not texts:
            return 0
        rows = [{'question_id': question_id, 'text': text, 'order_number': i} for i, text in enumerate(texts, start=1)]
        self.store.insert(OPTIONS, rows)
        return len(rows)

    # --- Seed / recovery ---
    def seed_quiz_data(self):
        """Incremental: upserts modules and questions, replaces options per question."""
        modules = self.store.upsert(MODULES, seed_data.MODULES, on_conflict='order_number')
        module_ids = self._module_ids()

        questions = options = 0
        for question in seed_data.QUESTIONS:
            row = _question_row(question, self._module_id_for(question, module_ids))
            saved = self.store.upsert(QUESTIONS, row, on_conflict='module_id,order_number')[0]
            questions += 1
            options += self._replace_options(saved['id'], question.get('options'))

        logger.info(f"[Seed] {len(modules)} módulos, {questions} perguntas, {options} opções")
        return {'modules': len(modules), 'questions': questions, 'options': options}

    def recover_quiz_data(self, force=False):
        """
        Repairs module titles and, when questions are missing (or force),
        rebuilds questions and options from the seed literals.
        """
        try:
            existing = {m['order_number']: m for m in self.store.select(MODULES, order='order_number')}
            for module in seed_data.MODULES:
                current = existing.get(module['order_number'])
                if not current:
                    self.store.insert(MODULES, module)
                elif current['title'] != module['title'] or current.get('description') != module['description']:
                    logger.warning(f"[Recovery] Fixing module {module['order_number']} ('{current['title']}')")
                    self.store.update(MODULES, {'title': module['title'], 'description': module['description']}, {'id': current['id']})

            module_ids = self._module_ids()
            question_count = self.store.count(QUESTIONS)
            if question_count >= len(seed_data.QUESTIONS) and not force:
                return {
                    'success': True,
                    'message': 'Dados do questionário íntegros, nenhuma pergunta recriada',
                    'data': {'modules': len(module_ids), 'questions': question_count, 'options': self.store.count(OPTIONS)},
                }

            if self.store.count(ANSWERS) and not force:
                # Answers reference question ids; only refill what is missing
                result = self.seed_quiz_data()
                return {'success': True, 'message': 'Perguntas ausentes restauradas', 'data': result}

            self.store.delete(OPTIONS, everything=True)
            self.store.delete(QUESTIONS, everything=True)
            questions = options = 0
            for question in seed_data.QUESTIONS:
                row = _question_row(question, self._module_id_for(question, module_ids))
                saved = self.store.insert(QUESTIONS, row)[0]
                questions += 1
                options += self._replace_options(saved['id'], question.get('options'))
        except (StoreError, QuizError) as e:
            logger.error(f"[Recovery] Failed: {e.message}")
            return {'success': False, 'message': f"Erro na recuperação: {e.message}", 'error': e.to_dict()}

        logger.info(f"[Recovery] Rebuilt {questions} perguntas e {options} opções")
        return {
            'success': True,
            'message': 'Dados do questionário recuperados com sucesso',
            'data': {'modules': len(module_ids), 'questions': questions, 'options': options},
        }

    # --- Editor ---
    def save_module(self, data, module_id=None, admin_id=None):
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError('O título do módulo é obrigatório')
        values = {'title': title, 'description': data.get('description')}
        if 'order_number' in data:
            values['order_number'] = int(data['order_number'])
        elif not module_id:
            values['order_number'] = self.store.count(MODULES) + 1

        if module_id:
            rows = self.store.update(MODULES, values, {'id': module_id})
            if not rows:
                raise QuizError('Módulo não encontrado', code='NOT_FOUND')
            module = rows[0]
        else:
            module = self.store.insert(MODULES, values)[0]
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'update_module' if module_id else 'create_module', module['id'])
        return module

    def delete_module(self, module_id, admin_id=None):
        questions = self.store.select(QUESTIONS, columns='id', filters={'module_id': module_id})
        if questions:
            raise ValidationError('Remova as perguntas do módulo antes de excluí-lo', details={'questions': len(questions)})
        self.store.delete(MODULES, {'id': module_id})
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'delete_module', module_id)

    def save_question(self, data, question_id=None, admin_id=None):
        values = {k: data[k] for k in QUESTION_FIELDS if k in data}
        if 'module_id' in data:
            values['module_id'] = data['module_id']
        if not question_id:
            if not (values.get('text') or '').strip() or not values.get('module_id'):
                raise ValidationError('Texto e módulo da pergunta são obrigatórios')
            values.setdefault('type', 'text')
            if 'order_number' not in values:
                values['order_number'] = self.store.count(QUESTIONS, filters={'module_id': values['module_id']}) + 1
        if 'type' in values and values['type'] not in QUESTION_TYPES:
            raise ValidationError('Tipo de pergunta inválido', details={'allowed': list(QUESTION_TYPES)})

        if question_id:
            if values:
                rows = self.store.update(QUESTIONS, values, {'id': question_id})
            else:
                rows = self.store.select(QUESTIONS, filters={'id': question_id})
            if not rows:
                raise QuizError('Pergunta não encontrada', code='NOT_FOUND')
            question = rows[0]
        else:
            question = self.store.insert(QUESTIONS, values)[0]

        if 'options' in data:
            if question['type'] not in OPTION_TYPES and data['options']:
                raise ValidationError('Apenas perguntas de escolha aceitam opções')
            self._replace_options(question['id'], [o for o in data['options'] if (o or '').strip()])
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'update_question' if question_id else 'create_question', question['id'])
        return question

    def replace_options(self, question_id, texts, admin_id=None):
        question = self.store.select_one(QUESTIONS, filters={'id': question_id})
        if not question:
            raise QuizError('Pergunta não encontrada', code='NOT_FOUND')
        if question['type'] not in OPTION_TYPES:
            raise ValidationError('Apenas perguntas de escolha aceitam opções')
        count = self._replace_options(question_id, [t.strip() for t in texts if (t or '').strip()])
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'replace_options', question_id, {'options': count})
        return self.store.select(OPTIONS, filters={'question_id': question_id}, order='order_number')

    def delete_question(self, question_id, admin_id=None):
        if self.store.count(ANSWERS, filters={'question_id': question_id}):
            raise ValidationError('A pergunta já possui respostas e não pode ser excluída')
        self.store.delete(OPTIONS, {'question_id': question_id})
        self.store.delete(QUESTIONS, {'id': question_id})
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'delete_question', question_id)
