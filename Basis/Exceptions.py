import typing
import types


class InvalidArgumentException(TypeError):
	"""
	[InvalidArgumentException(TypeError)] - Exception representing an invalid type passed to a parameter
	"""

	def __init__(self, caller: typing.Callable | types.FunctionType | types.MethodType | types.LambdaType = None, parameter_name: str = None, argument_type: type = None, parameter_types: typing.Iterable[type | str] = None):
		"""
		[InvalidArgumentException(TypeError)] - Exception representing an invalid type passed to a parameter
		- Constructor -
		:param caller: (CALLABLE) The callable that raised this exception
		:param parameter_name: (str) The name of the parameter
		:param argument_type: (type) The type of the argument passed in
		:param parameter_types: (ITERABLE[type]) The types this parameter accepts or the associated type annotations if None
		"""

		if caller is None or parameter_name is None or argument_type is None:
			super().__init__()
			return

		annotations: dict[str, typing.Any] = getattr(caller, '__annotations__', {})

		if parameter_types is None and parameter_name in annotations:
			annotation: typing.Any = annotations[parameter_name]
			accepted: tuple[str, ...] = tuple(f"'{x}'" for x in annotation.__args__) if hasattr(annotation, '__args__') else (f"'{annotation}'",)
		elif parameter_types is None:
			accepted: tuple[str, ...] = ('<UNKNOWN>',)
		else:
			accepted: tuple[str, ...] = tuple(f"'{x.__name__ if isinstance(x, type) else x}'" for x in parameter_types)

		type_list: str = f'either {", ".join(accepted[:-1])} or {accepted[-1]}' if len(accepted) > 1 else accepted[0]
		qualname: str = getattr(caller, '__qualname__', repr(caller))
		callable_type: str = 'Callable'

		if '<lambda>' in qualname:
			callable_type = 'Lambda'
		elif '.' in qualname:
			callable_type = 'Method'
		elif isinstance(caller, types.FunctionType):
			callable_type = 'Function'

		code: typing.Optional[types.CodeType] = getattr(caller, '__code__', None)
		parameters: str = ', '.join(code.co_varnames[:code.co_argcount + code.co_kwonlyargcount]) if code is not None else '...'
		self.parameter_name: str = parameter_name
		self.argument_type: type = argument_type
		super().__init__(f'{callable_type} {qualname.replace(".", "::")}({parameters}) - parameter \'{parameter_name}\' must be {type_list}; got \'{argument_type.__name__ if isinstance(argument_type, type) else argument_type}\'')


class InvalidSourceException(ValueError):
	"""
	[InvalidSourceException(ValueError)] - Exception representing a missing source for a sequence
	"""

	def __init__(self, what: str = 'Sequence source is None'):
		"""
		[InvalidSourceException(ValueError)] - Exception representing a missing source for a sequence
		- Constructor -
		:param what: The message
		"""

		super().__init__(what)


class IterableEmptyException(Exception):
	"""
	[IterableEmptyException(Exception)] - Exception representing attempt to pull from empty iterable
	"""

	def __init__(self, what: str = ''):
		"""
		[IterableEmptyException(Exception)] - Exception representing attempt to pull from empty iterable
		- Constructor -
		:param what: The message
		"""

		super().__init__(what)


class UnhandledRejectionError(RuntimeError):
	"""
	[UnhandledRejectionError(RuntimeError)] - Exception surfacing a future rejected without any rejection callback
	"""

	def __init__(self, reason: typing.Any = None):
		"""
		[UnhandledRejectionError(RuntimeError)] - Exception surfacing a future rejected without any rejection callback
		- Constructor -
		:param reason: The rejection reason
		"""

		super().__init__(f'Unhandled rejection: {reason!r}')
		self.reason: typing.Any = reason


class FutureCancelledError(RuntimeError):
	"""
	[FutureCancelledError(RuntimeError)] - Exception representing a wait on a cancelled future
	"""

	def __init__(self, reason: typing.Any = None):
		"""
		[FutureCancelledError(RuntimeError)] - Exception representing a wait on a cancelled future
		- Constructor -
		:param reason: The cancellation reason
		"""

		super().__init__('Future was cancelled' if reason is None else f'Future was cancelled: {reason!r}')
		self.reason: typing.Any = reason
