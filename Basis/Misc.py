import math
import time
import typing
import typeguard

from . import Exceptions


def raise_if(expression: bool, exception: BaseException = AssertionError('Assertion Failed')) -> None:
	"""
	Raises an exception if the expression evaluates to True
	:param expression: The expression to evaluate
	:param exception: The exception to raise
	"""

	if not isinstance(exception, BaseException):
		raise Exceptions.InvalidArgumentException(raise_if, 'exception', type(exception))
	elif expression:
		raise exception


def raise_ifn(expression: bool, exception: BaseException = AssertionError('Assertion Failed')) -> None:
	"""
	Raises an exception if the expression evaluates to False
	:param expression: The expression to evaluate
	:param exception: The exception to raise
	"""

	if not isinstance(exception, BaseException):
		raise Exceptions.InvalidArgumentException(raise_ifn, 'exception', type(exception))
	elif not expression:
		raise exception


def check_type(caller: typing.Callable, parameter_name: str, value: typing.Any, annotation: typing.Any) -> typing.Any:
	"""
	Checks a value against a type annotation
	:param caller: The callable whose parameter is checked
	:param parameter_name: The name of the checked parameter
	:param value: The argument passed in
	:param annotation: The annotation the argument must satisfy
	:return: The value, unchanged
	:raises InvalidArgumentException: If the value does not satisfy the annotation
	"""

	try:
		typeguard.check_type(value, annotation)
	except typeguard.TypeCheckError:
		accepted: tuple[typing.Any, ...] = typing.get_args(annotation) or (annotation,)
		raise Exceptions.InvalidArgumentException(caller, parameter_name, type(value), accepted) from None

	return value


def check_callable(caller: typing.Callable, parameter_name: str, *values: typing.Any) -> None:
	"""
	Checks that every value is callable
	:param caller: The callable whose parameter is checked
	:param parameter_name: The name of the checked parameter
	:param values: The arguments passed in
	:raises InvalidArgumentException: If any value is not callable
	"""

	for value in values:
		raise_ifn(callable(value), Exceptions.InvalidArgumentException(caller, parameter_name, type(value), ('Callable',)))


def is_nan(value: typing.Any) -> bool:
	"""
	:param value: The value to test
	:return: Whether the value is a float NaN
	"""

	return isinstance(value, float) and math.isnan(value)


def timestamp() -> float:
	"""
	:return: The current wall clock time in milliseconds since the epoch
	"""

	return time.time() * 1e3
