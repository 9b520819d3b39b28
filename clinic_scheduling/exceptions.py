"""
Scheduling Exceptions

Error taxonomy shared by the scheduling services and the API helpers.
"""


class SchedulingError(Exception):
	"""Excepción base para errores de agendamiento."""
	pass


class ValidationError(SchedulingError):
	"""Datos de entrada inválidos."""
	pass


class FormatError(ValidationError):
	"""Texto de hora, fecha o instante ISO mal formado."""
	pass


class ConfigurationError(SchedulingError):
	"""Configuración inconsistente (ventana de trabajo, intervalos)."""
	pass
