"""Sistema MAR - questionário de diagnóstico da Crie Valor Consultoria."""

__version__ = '1.0.0'
