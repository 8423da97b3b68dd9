import logging
import time
from werkzeug.utils import secure_filename

from sistema_mar.errors import StoreError, QuizError, ValidationError
from sistema_mar.models import MATERIAL_TYPES
from sistema_mar.store import MATERIALS, MATERIAL_ACCESSES
from sistema_mar.utils import now_iso

logger = logging.getLogger(__name__)

MATERIALS_BUCKET = 'materials'
EDITABLE_FIELDS = ('title', 'description', 'file_url', 'thumbnail_url', 'category', 'type', 'plan_level')


class MaterialService:
    def __init__(self, store, admin_service=None):
        self.store = store
        self.admin = admin_service

    def list_materials(self, category=None):
        filters = {'category': category} if category else None
        return self.store.select(MATERIALS, filters=filters, order='created_at', desc=True)

    def categories(self):
        return sorted({m['category'] for m in self.store.select(MATERIALS, columns='category') if m.get('category')})

    def get(self, material_id):
        material = self.store.select_one(MATERIALS, filters={'id': material_id})
        if not material:
            raise QuizError('Material não encontrado', code='NOT_FOUND', details={'material_id': material_id})
        return material

    @staticmethod
    def _clean(data, partial=False):
        values = {k: data[k] for k in EDITABLE_FIELDS if k in data}
        if not partial or 'title' in values:
            if not (values.get('title') or '').strip():
                raise ValidationError('O título é obrigatório')
        if not partial or 'file_url' in values:
            if not (values.get('file_url') or '').strip():
                raise ValidationError('O arquivo ou link do material é obrigatório')
        if 'type' in values and values['type'] not in MATERIAL_TYPES:
            raise ValidationError('Tipo de material inválido', details={'allowed': list(MATERIAL_TYPES)})
        return values

    def create(self, data, admin_id=None):
        values = self._clean(data)
        values.setdefault('type', 'document')
        values.setdefault('category', 'Geral')
        values.setdefault('plan_level', 'basic')
        values['access_count'] = 0
        values['created_at'] = values['updated_at'] = now_iso()
        material = self.store.insert(MATERIALS, values)[0]
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'create_material', material['id'], {'title': material['title']})
        return material

    def update(self, material_id, data, admin_id=None):
        self.get(material_id)
        values = self._clean(data, partial=True)
        values['updated_at'] = now_iso()
        material = self.store.update(MATERIALS, values, {'id': material_id})[0]
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'update_material', material_id, {'fields': sorted(values)})
        return material

    def delete(self, material_id, admin_id=None):
        material = self.get(material_id)
        self.store.delete(MATERIAL_ACCESSES, {'material_id': material_id})
        self.store.delete(MATERIALS, {'id': material_id})
        if self.admin and admin_id:
            self.admin.log_action(admin_id, 'delete_material', material_id, {'title': material['title']})
        return material

    def upload_file(self, file_storage):
        """Uploads a file to the materials bucket and returns its public URL."""
        filename = secure_filename(file_storage.filename or '')
        if not filename:
            raise ValidationError('Arquivo inválido')
        path = f"{int(time.time())}_{filename}"
        return self.store.upload(MATERIALS_BUCKET, path, file_storage.read(), file_storage.mimetype)

    def register_access(self, material_id, user_id):
        """Records the open and bumps access_count. Returns the material URL."""
        material = self.get(material_id)
        self.store.insert(MATERIAL_ACCESSES, {
            'material_id': material_id,
            'user_id': user_id,
            'accessed_at': now_iso(),
        })
        try:
            self.store.rpc('increment_material_access_count', {'material_id': material_id})
        except StoreError as e:
            logger.warning(f"[Materials] increment rpc failed ({e.code}), updating counter directly")
            self.store.update(MATERIALS, {'access_count': (material.get('access_count') or 0) + 1}, {'id': material_id})
        return material['file_url']
