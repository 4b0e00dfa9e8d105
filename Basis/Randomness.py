from __future__ import annotations

import abc
import random as _random
import typing


class RandomSource(abc.ABC):
	"""
	[RandomSource] - Capability of producing uniform values in [0, 1)
	Any class defining a callable 'random' (such as random.Random) satisfies it
	"""

	@classmethod
	def __subclasshook__(cls, subclass: type) -> bool:
		if cls is RandomSource:
			return any(callable(klass.__dict__.get('random')) for klass in subclass.__mro__)

		return NotImplemented

	@abc.abstractmethod
	def random(self) -> float:
		"""
		:return: The next uniform value in [0, 1)
		"""

		...


class PythonRandom(RandomSource):
	"""
	[PythonRandom(RandomSource)] - RandomSource backed by the standard library generator
	"""

	def __init__(self, seed: typing.Optional[int | float | str | bytes] = None):
		"""
		[PythonRandom(RandomSource)] - RandomSource backed by the standard library generator
		- Constructor -
		:param seed: The seed or None to seed from the system
		"""

		self.__generator__: _random.Random = _random.Random(seed)

	def __repr__(self) -> str:
		return f'<{type(self).__name__} at {hex(id(self))}>'

	def random(self) -> float:
		return self.__generator__.random()


DEFAULT: RandomSource = PythonRandom()
