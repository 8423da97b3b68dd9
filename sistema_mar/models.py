from datetime import datetime, date
from flask_sqlalchemy import SQLAlchemy
import uuid

db = SQLAlchemy()


def new_uuid():
    return str(uuid.uuid4())


class BaseModel(db.Model):
    __abstract__ = True

    def to_dict(self):
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[column.name] = value
        return data


# Question types
QUESTION_TYPES = ('text', 'email', 'number', 'url', 'instagram', 'textarea', 'radio', 'checkbox')
MULTI_VALUE_TYPES = ('checkbox',)
OPTION_TYPES = ('radio', 'checkbox')

# Submission progress
STATUS_IN_PROGRESS = 'in_progress'
STATUS_REVIEW_PENDING = 'review_pending'
STATUS_COMPLETED = 'completed'

ROLE_ADMIN = 'admin'

MATERIAL_TYPES = ('document', 'video', 'link', 'other')


class AuthUser(BaseModel):
    """Local stand-in for the hosted auth service's users."""
    __tablename__ = 'auth_users'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    user_metadata = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_sign_in_at = db.Column(db.DateTime, nullable=True)


class Profile(BaseModel):
    __tablename__ = 'profiles'
    id = db.Column(db.String(36), primary_key=True) # Same id as the auth user
    user_email = db.Column(db.String(255), nullable=True)
    full_name = db.Column(db.String(200), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    company_name = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)


class UserRole(BaseModel):
    __tablename__ = 'user_roles'
    __table_args__ = (db.UniqueConstraint('user_id', 'role', name='uq_user_role'),)
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), nullable=False, index=True)
    role = db.Column(db.String(30), nullable=False, default=ROLE_ADMIN)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class QuizModule(BaseModel):
    __tablename__ = 'quiz_modules'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    order_number = db.Column(db.Integer, unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class QuizQuestion(BaseModel):
    __tablename__ = 'quiz_questions'
    __table_args__ = (db.UniqueConstraint('module_id', 'order_number', name='uq_question_module_order'),)
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    module_id = db.Column(db.String(36), db.ForeignKey('quiz_modules.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default='text')
    required = db.Column(db.Boolean, default=True)
    order_number = db.Column(db.Integer, nullable=False)
    hint = db.Column(db.Text, nullable=True)
    max_options = db.Column(db.Integer, nullable=True)
    placeholder = db.Column(db.String(200), nullable=True)
    prefix = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class QuizOption(BaseModel):
    __tablename__ = 'quiz_options'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    question_id = db.Column(db.String(36), db.ForeignKey('quiz_questions.id'), nullable=False)
    text = db.Column(db.String(500), nullable=False)
    order_number = db.Column(db.Integer, nullable=False)


class QuizSubmission(BaseModel):
    __tablename__ = 'quiz_submissions'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    user_id = db.Column(db.String(36), unique=True, nullable=False) # One submission per user
    user_email = db.Column(db.String(255), nullable=True)
    current_module = db.Column(db.Integer, default=1)
    status = db.Column(db.String(20), default=STATUS_IN_PROGRESS)
    completed = db.Column(db.Boolean, default=False)
    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    webhook_processed = db.Column(db.Boolean, default=False)
    contact_consent = db.Column(db.Boolean, default=False)


class QuizAnswer(BaseModel):
    __tablename__ = 'quiz_answers'
    __table_args__ = (db.UniqueConstraint('submission_id', 'question_id', name='uq_answer_submission_question'),)
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    submission_id = db.Column(db.String(36), db.ForeignKey('quiz_submissions.id'), nullable=False)
    question_id = db.Column(db.String(36), db.ForeignKey('quiz_questions.id'), nullable=False)
    answer = db.Column(db.Text, nullable=True) # Plain text or JSON array for checkbox
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)


class QuizRespostasCompletas(BaseModel):
    """Flattened answers per submission, rebuilt on every completion."""
    __tablename__ = 'quiz_respostas_completas'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    submission_id = db.Column(db.String(36), db.ForeignKey('quiz_submissions.id'), unique=True, nullable=False)
    user_id = db.Column(db.String(36), nullable=False)
    user_email = db.Column(db.String(255), nullable=True)
    full_name = db.Column(db.String(200), nullable=True)
    data_submissao = db.Column(db.DateTime, default=datetime.utcnow)
    respostas = db.Column(db.JSON, nullable=False, default=dict)
    webhook_processed = db.Column(db.Boolean, default=False)


class Material(BaseModel):
    __tablename__ = 'materials'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    file_url = db.Column(db.String(500), nullable=False)
    thumbnail_url = db.Column(db.String(500), nullable=True)
    category = db.Column(db.String(100), default='Geral')
    type = db.Column(db.String(20), default='document')
    plan_level = db.Column(db.String(50), default='basic')
    access_count = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)


class MaterialAccess(BaseModel):
    __tablename__ = 'material_accesses'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    material_id = db.Column(db.String(36), db.ForeignKey('materials.id'), nullable=False)
    user_id = db.Column(db.String(36), nullable=False)
    accessed_at = db.Column(db.DateTime, default=datetime.utcnow)


class AdminAuditLog(BaseModel):
    __tablename__ = 'admin_audit_log'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    admin_user_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    target_id = db.Column(db.String(100), nullable=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class SystemConfig(BaseModel):
    __tablename__ = 'system_config'
    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)


TABLES = {
    model.__tablename__: model
    for model in (
        AuthUser, Profile, UserRole, QuizModule, QuizQuestion, QuizOption,
        QuizSubmission, QuizAnswer, QuizRespostasCompletas, Material,
        MaterialAccess, AdminAuditLog, SystemConfig,
    )
}
