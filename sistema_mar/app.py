import os
import logging
from dataclasses import dataclass

from dotenv import load_dotenv
load_dotenv() # Load env vars before anything else

import click
from flask import Flask, jsonify, send_from_directory
from werkzeug.middleware.proxy_fix import ProxyFix
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from flask_login import LoginManager

from sistema_mar.errors import QuizError, StoreError, ValidationError, ConfigurationError, format_error
from sistema_mar.models import db, ROLE_ADMIN
from sistema_mar.services.supabase_service import init_supabase, SupabaseStore
from sistema_mar.services.sql_store import SqlStore
from sistema_mar.services.quiz_service import QuizService
from sistema_mar.services.consolidation_service import ConsolidationService
from sistema_mar.services.webhook_service import WebhookService
from sistema_mar.services.completion_service import CompletionService
from sistema_mar.services.export_service import ExportService
from sistema_mar.services.material_service import MaterialService
from sistema_mar.services.user_service import UserService
from sistema_mar.services.recovery_service import RecoveryService
from sistema_mar.services.admin_service import AdminService
from sistema_mar.services.navigation import InvalidTransition
from sistema_mar.store import USER_ROLES
from sistema_mar.utils import api_response

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every service shares the application's single store handle."""
    quiz: QuizService
    consolidation: ConsolidationService
    webhook: WebhookService
    completion: CompletionService
    exports: ExportService
    materials: MaterialService
    users: UserService
    recovery: RecoveryService
    admin: AdminService


def build_services(store, config):
    admin = AdminService(store)
    consolidation = ConsolidationService(store)
    webhook = WebhookService(
        store,
        default_url=config.get('WEBHOOK_URL'),
        timeout=float(config.get('WEBHOOK_TIMEOUT') or 10),
    )
    return Services(
        quiz=QuizService(store),
        consolidation=consolidation,
        webhook=webhook,
        completion=CompletionService(store, consolidation, webhook),
        exports=ExportService(store),
        materials=MaterialService(store, admin),
        users=UserService(store, admin),
        recovery=RecoveryService(store, admin),
        admin=admin,
    )


def check_db_connection(url):
    if not url:
        return False
    try:
        # Short timeout to avoid hanging startup
        engine = create_engine(url, connect_args={'connect_timeout': 5})
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as conn_e:
        logger.warning(f"DB connection test failed: {conn_e}")
        return False


def resolve_database_url(app):
    database_url = os.environ.get('DATABASE_URL')
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    if database_url and 'postgresql' in database_url:
        if check_db_connection(database_url):
            logger.info("DATABASE: Connection to PostgreSQL successful.")
            return database_url
        logger.warning("DATABASE: PostgreSQL unreachable. Falling back to SQLite.")
    elif database_url:
        return database_url

    if os.access(app.root_path, os.W_OK):
        return f"sqlite:///{os.path.join(app.root_path, 'sistema_mar.db')}"
    # Read-only filesystem (Vercel)
    return 'sqlite:////tmp/sistema_mar.db'


def create_app(test_config=None):
    app = Flask(__name__, instance_path='/tmp')
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # --- CONFIGURATION ---
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'sistema-mar-dev-key')
    app.config['SUPABASE_URL'] = os.environ.get('SUPABASE_URL')
    app.config['SUPABASE_KEY'] = os.environ.get('SUPABASE_KEY')
    app.config['SUPABASE_SERVICE_ROLE_KEY'] = os.environ.get('SUPABASE_SERVICE_ROLE_KEY')
    app.config['WEBHOOK_URL'] = os.environ.get('WEBHOOK_URL')
    app.config['WEBHOOK_TIMEOUT'] = os.environ.get('WEBHOOK_TIMEOUT', '10')
    app.config['UPLOAD_FOLDER'] = os.environ.get('UPLOAD_FOLDER', os.path.join(app.root_path, 'static', 'uploads'))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    if test_config:
        app.config.update(test_config)
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = resolve_database_url(app)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Check for read-only filesystem (Vercel)
    try:
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
    except OSError:
        app.config['UPLOAD_FOLDER'] = '/tmp/uploads'
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # --- STORE ---
    db.init_app(app)
    app.supabase = None
    if not app.config.get('USE_SQL_STORE'):
        app.supabase = init_supabase(app)

    if app.supabase:
        app.store = SupabaseStore(app.supabase)
        app.logger.info("STORE: Using Supabase")
    else:
        app.store = SqlStore(upload_folder=app.config['UPLOAD_FOLDER'])
        with app.app_context():
            db.create_all()
        app.logger.info(f"STORE: Using SQL database ({app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0]})")

        @app.route('/uploads/<path:filename>')
        def uploaded_file(filename):
            return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    app.services = build_services(app.store, app.config)

    # --- AUTH ---
    from sistema_mar.auth import auth as auth_blueprint, load_user

    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.user_loader(load_user)

    @login_manager.unauthorized_handler
    def unauthorized():
        return api_response(False, error={'message': 'Faça login para continuar', 'code': 'UNAUTHORIZED'}, status=401)

    # --- ERROR HANDLERS ---
    @app.errorhandler(QuizError)
    def quiz_error(error):
        status = 500
        if isinstance(error, ValidationError):
            status = 400
        elif isinstance(error, InvalidTransition):
            status = 409
        elif isinstance(error, ConfigurationError):
            status = 503
        elif error.code == 'NOT_FOUND':
            status = 404
        elif isinstance(error, StoreError) and error.code == '42501':
            status = 403
        if status >= 500:
            app.logger.error(f"Unhandled {type(error).__name__}: {error.message} ({error.code})")
        return api_response(False, error=format_error(error, context='request'), status=status)

    @app.errorhandler(400)
    def bad_request(error):
        return api_response(False, error={'message': 'Requisição inválida', 'code': 'BAD_REQUEST'}, status=400)

    @app.errorhandler(403)
    def forbidden(error):
        return api_response(False, error={'message': 'Acesso restrito a administradores', 'code': 'FORBIDDEN'}, status=403)

    @app.errorhandler(404)
    def not_found_error(error):
        return api_response(False, error={'message': 'Recurso não encontrado', 'code': 'NOT_FOUND'}, status=404)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Internal error: {error}")
        return api_response(False, error={'message': 'Erro interno do servidor', 'code': 'INTERNAL_ERROR'}, status=500)

    @app.route('/ping')
    def ping():
        return jsonify({'status': 'ok', 'store': app.store.backend})

    # --- REGISTER BLUEPRINTS ---
    from sistema_mar.routes.quiz import quiz_bp
    from sistema_mar.routes.admin import admin_bp
    from sistema_mar.routes.materials import materials_bp
    from sistema_mar.routes.profile import profile_bp

    app.register_blueprint(auth_blueprint)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(materials_bp)
    app.register_blueprint(profile_bp)

    register_commands(app)
    return app


def register_commands(app):
    @app.cli.command('seed-quiz')
    def seed_quiz_command():
        """Insert or update modules, questions and options."""
        result = app.services.recovery.seed_quiz_data()
        click.echo(f"Seed concluído: {result['modules']} módulos, {result['questions']} perguntas, {result['options']} opções")

    @app.cli.command('recover-quiz')
    @click.option('--force', is_flag=True, help='Recria perguntas e opções mesmo se parecerem íntegras.')
    def recover_quiz_command(force):
        """Repair the quiz structure from the bundled content."""
        result = app.services.recovery.recover_quiz_data(force=force)
        click.echo(result['message'])
        if not result['success']:
            raise click.ClickException(result['message'])

    @app.cli.command('create-admin')
    @click.argument('email')
    @click.argument('password')
    @click.option('--name', default='Administrador')
    def create_admin_command(email, password, name):
        """Create a user with the admin role."""
        try:
            user = app.services.users.create_user(email, password, full_name=name, is_admin=True)
        except QuizError as e:
            raise click.ClickException(e.message)
        click.echo(f"Usuário admin {user['email']} criado ({user['id']})")

    @app.cli.command('grant-admin')
    @click.argument('user_id')
    def grant_admin_command(user_id):
        """Give the admin role to an existing user."""
        app.store.upsert(USER_ROLES, {'user_id': user_id, 'role': ROLE_ADMIN}, on_conflict='user_id,role')
        click.echo(f"Usuário {user_id} agora é administrador")

