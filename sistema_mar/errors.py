import json
import logging
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    PERMISSION = 'permission'
    VALIDATION = 'validation'
    DATABASE = 'database'
    AUTH = 'auth'
    NETWORK = 'network'
    UNKNOWN = 'unknown'


AUTH_CODES = ('invalid_credentials', 'user_not_found', 'email_not_confirmed', 'AUTH_ERROR')


def error_category(code):
    """Maps a store/Postgres error code to a broad category."""
    if not code:
        return ErrorCategory.UNKNOWN
    code = str(code)
    if code == '42501' or code == 'PGRST301':
        return ErrorCategory.PERMISSION
    if code == 'VALIDATION_ERROR':
        return ErrorCategory.VALIDATION
    if code in AUTH_CODES:
        return ErrorCategory.AUTH
    if code in ('NETWORK_ERROR', 'TIMEOUT'):
        return ErrorCategory.NETWORK
    if code.startswith('23') or code.startswith('42') or code.startswith('PGRST') or code == 'DB_ERROR':
        return ErrorCategory.DATABASE
    return ErrorCategory.UNKNOWN


class QuizError(Exception):
    """Base error for the application."""

    code = None

    def __init__(self, message, code=None, details=None, hint=None, origin=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details
        self.hint = hint
        self.origin = origin

    def to_dict(self):
        return {
            'message': self.message,
            'code': self.code,
            'details': self.details,
            'hint': self.hint,
        }


class StoreError(QuizError):
    """Failure reported by the data store (network, permission, constraint)."""

    def __init__(self, message, code=None, details=None, hint=None, origin='store'):
        super().__init__(message, code=code, details=details, hint=hint, origin=origin)

    @property
    def is_unique_violation(self):
        return self.code == '23505'


class VerificationError(QuizError):
    """A write looked successful but the follow-up read did not confirm it."""

    code = 'VERIFICATION_FAILED'


class ValidationError(QuizError):
    code = 'VALIDATION_ERROR'

    def __init__(self, message, details=None):
        super().__init__(message, details=details, origin='validation')


class ConfigurationError(QuizError):
    """Quiz structure could not be loaded or is inconsistent."""

    code = 'CONFIG_ERROR'


def format_error(error, context='unknown', **extra):
    """
    Builds the structured error dict shown to users and support.
    Accepts QuizError instances, plain exceptions, dicts and strings.
    """
    timestamp = datetime.utcnow().isoformat()

    if isinstance(error, QuizError):
        result = error.to_dict()
        result['origin'] = error.origin or 'unknown'
    elif isinstance(error, dict):
        result = {
            'message': error.get('message') or 'Erro desconhecido',
            'code': error.get('code'),
            'details': error.get('details'),
            'hint': error.get('hint'),
            'origin': error.get('origin') or 'unknown',
        }
    elif isinstance(error, str):
        result = {'message': error, 'code': None, 'details': None, 'hint': None, 'origin': 'unknown'}
    else:
        result = {
            'message': str(error) or 'Erro desconhecido',
            'code': None,
            'details': type(error).__name__,
            'hint': None,
            'origin': 'unknown',
        }

    result['context'] = context
    result['timestamp'] = timestamp
    result.update(extra)
    return result


def format_error_for_display(error):
    message = error.get('message') or 'Ocorreu um erro inesperado'
    if error.get('code'):
        message += f" (Código: {error['code']})"
    if error.get('hint'):
        message += f". Dica: {error['hint']}"
    return message


def format_technical_error(error):
    """Multi-line report with everything support needs to triage a failure."""
    parts = [f"Erro: {error.get('message')}"]
    if error.get('code'):
        parts.append(f"Código: {error['code']}")
    parts.append(f"Categoria: {error_category(error.get('code')).value}")
    if error.get('origin'):
        parts.append(f"Origem: {error['origin']}")
    if error.get('hint'):
        parts.append(f"Dica: {error['hint']}")
    details = error.get('details')
    if details:
        if not isinstance(details, str):
            details = json.dumps(details, indent=2, ensure_ascii=False, default=str)
        parts.append(f"Detalhes: {details}")
    if error.get('context'):
        parts.append(f"Contexto: {error['context']}")
    return '\n'.join(parts)


def is_permission_error(error):
    code = error.get('code') if isinstance(error, dict) else getattr(error, 'code', None)
    return error_category(code) == ErrorCategory.PERMISSION


def log_error(error, tag='Error'):
    category = error_category(error.get('code')).value
    logger.error(f"[{tag}] {error.get('message')} (code={error.get('code')}, category={category})")
