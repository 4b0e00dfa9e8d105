from __future__ import annotations

import abc
import collections.abc
import heapq
import math
import typing

from . import Exceptions
from . import Misc
from . import Randomness


class Step(typing.NamedTuple):
	"""
	[Step] - Result of pulling one element from a sequence
	'done' is True once the sequence is exhausted, in which case 'value' is meaningless
	"""

	done: bool
	value: typing.Any = None

	@staticmethod
	def of(value: typing.Any) -> Step:
		return Step(False, value)


STOP: Step = Step(True)

type NextFunction = typing.Callable[[], Step]
type IteratorFactory = typing.Callable[[], NextFunction]


def __stopped__() -> Step:
	return STOP


class Sequenceable[T](abc.ABC):
	"""
	[Sequenceable] - Capability of producing fresh, independent traversals
	"""

	@abc.abstractmethod
	def iterator(self) -> NextFunction:
		"""
		:return: A new next function starting from the first element; each call returns a Step
		"""

		...


class Sequence[T](Sequenceable[T]):
	"""
	[Sequence(Sequenceable)] - Lazy, restartable, possibly infinite sequence
	Derived sequences wrap their source's iterator factory and evaluate nothing until traversed
	"""

	def __init__(self, source: typing.Any):
		"""
		[Sequence(Sequenceable)] - Lazy, restartable, possibly infinite sequence
		- Constructor -
		Strings iterate characters, mappings iterate (key, value) pairs, sequences iterate by index,
		 zero-argument callables are used as the iterator factory and any other non-iterable value becomes a singleton
		:param source: The source to iterate
		:raises InvalidSourceException: If 'source' is None
		"""

		Misc.raise_if(source is None or source is ..., Exceptions.InvalidSourceException())

		if isinstance(source, Sequenceable):
			self.__factory__: IteratorFactory = source.iterator
		elif isinstance(source, collections.abc.Mapping):
			self.__factory__: IteratorFactory = Sequence.__from_mapping__(source)
		elif isinstance(source, collections.abc.Sequence):
			self.__factory__: IteratorFactory = Sequence.__from_indexable__(source)
		elif callable(source):
			self.__factory__: IteratorFactory = Sequence.__from_factory__(source)
		elif isinstance(source, collections.abc.Iterable):
			self.__factory__: IteratorFactory = Sequence.__from_factory__(lambda: iter(source))
		else:
			self.__factory__: IteratorFactory = Sequence.__from_indexable__((source,))

	def __iter__(self) -> typing.Iterator[T]:
		next_: NextFunction = self.iterator()

		while not (step := next_()).done:
			yield step.value

	def __repr__(self) -> str:
		return f'<{type(self).__name__} at {hex(id(self))}>'

	@staticmethod
	def __wrap__(factory: IteratorFactory) -> Sequence:
		"""
		INTERNAL METHOD
		Builds a sequence directly from an iterator factory
		:param factory: The iterator factory
		:return: The new sequence
		"""

		sequence: Sequence = Sequence.__new__(Sequence)
		sequence.__factory__ = factory
		return sequence

	@staticmethod
	def __adapt__(iterator: typing.Iterator) -> NextFunction:
		"""
		INTERNAL METHOD
		Converts a Python iterator into a next function
		:param iterator: The iterator to pull from
		:return: The next function
		"""

		def adapted_next() -> Step:
			try:
				return Step.of(next(iterator))
			except StopIteration:
				return STOP

		return adapted_next

	@staticmethod
	def __from_indexable__(items: collections.abc.Sequence) -> IteratorFactory:
		def iterator() -> NextFunction:
			index: int = 0

			def indexed_next() -> Step:
				nonlocal index

				if index < len(items):
					index += 1
					return Step.of(items[index - 1])

				return STOP

			return indexed_next

		return iterator

	@staticmethod
	def __from_mapping__(mapping: collections.abc.Mapping) -> IteratorFactory:
		def iterator() -> NextFunction:
			keys: collections.deque = collections.deque(mapping.keys())

			def mapping_next() -> Step:
				if len(keys) > 0:
					key: typing.Any = keys.popleft()
					return Step.of((key, mapping[key]))

				return STOP

			return mapping_next

		return iterator

	@staticmethod
	def __from_factory__(factory: typing.Callable[[], typing.Any]) -> IteratorFactory:
		def iterator() -> NextFunction:
			produced: typing.Any = factory()

			if isinstance(produced, collections.abc.Iterator):
				return Sequence.__adapt__(produced)
			elif callable(produced):
				return produced
			elif isinstance(produced, collections.abc.Iterable):
				return Sequence.__adapt__(iter(produced))

			raise Exceptions.InvalidArgumentException(Sequence.__init__, 'source', type(produced), ('Iterator', 'Callable[[], Step]'))

		return iterator

	def iterator(self) -> NextFunction:
		return self.__factory__()

	# Information

	def is_empty(self) -> bool:
		"""
		:return: Whether this sequence has no elements
		"""

		return self.iterator()().done

	def count(self) -> int:
		"""
		Traverses this sequence once
		:return: The number of elements
		"""

		return sum(1 for _ in self)

	# Iteration

	def for_each[K](self, do: typing.Callable[[T], K], if_: typing.Optional[typing.Callable[[T], typing.Any]] = None) -> typing.Optional[K]:
		"""
		Eagerly applies 'do' to every element accepted by 'if_'
		Errors raised by either callable propagate to the caller
		:param do: The function to apply
		:param if_: The optional element filter
		:return: The last result of 'do' or None if it was never called
		:raises InvalidArgumentException: If 'do' or 'if_' is not callable
		"""

		Misc.check_callable(Sequence.for_each, 'do', do)
		Misc.raise_ifn(if_ is None or callable(if_), Exceptions.InvalidArgumentException(Sequence.for_each, 'if_', type(if_)))
		next_: NextFunction = self.iterator()
		result: typing.Optional[K] = None

		while not (step := next_()).done:
			if if_ is None or if_(step.value):
				result = do(step.value)

		return result

	def for_each_apply[K](self, do: typing.Callable[..., K], if_: typing.Optional[typing.Callable[..., typing.Any]] = None) -> typing.Optional[K]:
		"""
		Like 'for_each', with every element unpacked as the positional arguments of 'do' and 'if_'
		"""

		return self.for_each(lambda args: do(*args), None if if_ is None else lambda args: if_(*args))

	def map[K](self, fn: typing.Optional[typing.Callable[[T], K]] = None, filter_fn: typing.Optional[typing.Callable[[K], typing.Any]] = None) -> Sequence[K]:
		"""
		Lazily maps this sequence
		:param fn: The mapping function or None for the identity
		:param filter_fn: If given, only mapped values it accepts are kept
		:return: The mapped sequence
		"""

		source: Sequence[T] = self

		def iterator() -> NextFunction:
			next_: NextFunction = source.iterator()

			def map_next() -> Step:
				while not (step := next_()).done:
					value: typing.Any = step.value if fn is None else fn(step.value)

					if filter_fn is None or filter_fn(value):
						return Step.of(value)

				return STOP

			return map_next

		return Sequence.__wrap__(iterator)

	def map_apply[K](self, fn: typing.Callable[..., K], filter_fn: typing.Optional[typing.Callable[[K], typing.Any]] = None) -> Sequence[K]:
		"""
		Like 'map', with every element unpacked as the positional arguments of 'fn'
		"""

		return self.map(lambda args: fn(*args), filter_fn)

	def pluck(self, member: typing.Any) -> Sequence:
		"""
		Lazily extracts one member of every element
		Subscriptable elements are indexed, others have the attribute read
		:param member: The key, index or attribute name
		:return: The sequence of members
		"""

		return self.map(lambda obj: obj[member] if hasattr(obj, '__getitem__') else getattr(obj, member))

	def enumerate(self, start: int = 0) -> Sequence[tuple[int, T]]:
		"""
		:param start: The first index
		:return: A lazy sequence of (index, element) pairs
		"""

		source: Sequence[T] = self

		def iterator() -> NextFunction:
			next_: NextFunction = source.iterator()
			index: int = start

			def enumerate_next() -> Step:
				nonlocal index
				step: Step = next_()

				if step.done:
					return STOP

				index += 1
				return Step.of((index - 1, step.value))

			return enumerate_next

		return Sequence.__wrap__(iterator)

	# Selection and filtering

	def filter[K](self, filter_fn: typing.Optional[typing.Callable[[T], typing.Any]] = None, map_fn: typing.Optional[typing.Callable[[T], K]] = None) -> Sequence[T | K]:
		"""
		Lazily filters this sequence
		:param filter_fn: The predicate or None to keep truthy elements
		:param map_fn: If given, applied to every kept element
		:return: The filtered sequence
		"""

		source: Sequence[T] = self

		def iterator() -> NextFunction:
			next_: NextFunction = source.iterator()

			def filter_next() -> Step:
				while not (step := next_()).done:
					accepted: typing.Any = step.value if filter_fn is None else filter_fn(step.value)

					if accepted:
						return Step.of(step.value if map_fn is None else map_fn(step.value))

				return STOP

			return filter_next

		return Sequence.__wrap__(iterator)

	def filter_apply[K](self, filter_fn: typing.Callable[..., typing.Any], map_fn: typing.Optional[typing.Callable[..., K]] = None) -> Sequence[T | K]:
		"""
		Like 'filter', with every element unpacked as the positional arguments of 'filter_fn' and 'map_fn'
		"""

		return self.filter(lambda args: filter_fn(*args), None if map_fn is None else lambda args: map_fn(*args))

	def head(self, default: typing.Any = ...) -> T:
		"""
		:param default: The value returned for an empty sequence
		:return: The first element
		:raises IterableEmptyException: If this sequence is empty and no default was given
		"""

		step: Step = self.iterator()()

		if not step.done:
			return step.value
		elif default is ...:
			raise Exceptions.IterableEmptyException('Tried to get the head value of an empty sequence')

		return default

	def last(self, default: typing.Any = ...) -> T:
		"""
		:param default: The value returned for an empty sequence
		:return: The last element
		:raises IterableEmptyException: If this sequence is empty and no default was given
		"""

		next_: NextFunction = self.iterator()
		step: Step = next_()

		if step.done:
			if default is ...:
				raise Exceptions.IterableEmptyException('Tried to get the last value of an empty sequence')

			return default

		result: T = step.value

		while not (step := next_()).done:
			result = step.value

		return result

	def greater(self, evaluation: typing.Callable[[T], typing.Any] = float) -> list[T]:
		"""
		:param evaluation: The function scoring each element
		:return: Every element sharing the highest score, in order
		"""

		best: typing.Any = -math.inf
		result: list[T] = []

		for x in self:
			score: typing.Any = evaluation(x)

			if score > best:
				best = score
				result = [x]
			elif score == best:
				result.append(x)

		return result

	def lesser(self, evaluation: typing.Callable[[T], typing.Any] = float) -> list[T]:
		"""
		:param evaluation: The function scoring each element
		:return: Every element sharing the lowest score, in order
		"""

		best: typing.Any = math.inf
		result: list[T] = []

		for x in self:
			score: typing.Any = evaluation(x)

			if score < best:
				best = score
				result = [x]
			elif score == best:
				result.append(x)

		return result

	def sample(self, n: int, random: typing.Optional[Randomness.RandomSource] = None) -> Sequence[T]:
		"""
		Selects 'n' elements at random, keeping their original relative order
		Memory use is bounded by 'n': only the elements holding the 'n' smallest random keys are kept
		:param n: The number of elements to select
		:param random: The source of random keys or the default source if None
		:return: A sequence with at most 'n' elements
		:raises InvalidArgumentException: If 'n' is not an integer
		:raises InvalidArgumentException: If 'random' is not a RandomSource
		"""

		Misc.check_type(Sequence.sample, 'n', n, int)
		random = Randomness.DEFAULT if random is None else random
		Misc.raise_ifn(isinstance(random, Randomness.RandomSource), Exceptions.InvalidArgumentException(Sequence.sample, 'random', type(random), (Randomness.RandomSource,)))

		if n < 1:
			return EMPTY

		reservoir: list[tuple[float, int, T]] = []

		for index, x in enumerate(self):
			key: float = random.random()

			if len(reservoir) < n:
				heapq.heappush(reservoir, (-key, index, x))
			elif key < -reservoir[0][0]:
				heapq.heapreplace(reservoir, (-key, index, x))

		return Sequence([x for _, _, x in sorted(reservoir, key=lambda entry: entry[1])])

	# Aggregation

	def foldl[K](self, fn: typing.Callable[[K, T], K], initial: K = ...) -> K:
		"""
		Folds this sequence with 'fn' as a left associative operator
		:param fn: The binary fold function
		:param initial: The starting value or the first element if omitted
		:return: The folded value, or None for an empty sequence without initial value
		"""

		next_: NextFunction = self.iterator()

		if initial is ...:
			step: Step = next_()

			if step.done:
				return None

			initial = step.value

		while not (step := next_()).done:
			initial = fn(initial, step.value)

		return initial

	def scanl[K](self, fn: typing.Callable[[K, T], K], initial: K = ...) -> Sequence[K]:
		"""
		Lazy version of 'foldl' iterating over every intermediate value, starting with the initial one
		"""

		source: Sequence[T] = self

		def iterator() -> NextFunction:
			next_: NextFunction = source.iterator()
			started: bool = False
			finished: bool = False
			value: typing.Any = None

			def scan_next() -> Step:
				nonlocal started, finished, value

				if finished:
					return STOP
				elif not started and initial is not ...:
					started = True
					value = initial
					return Step.of(value)

				step: Step = next_()

				if step.done:
					finished = True
					return STOP

				value = fn(value, step.value) if started else step.value
				started = True
				return Step.of(value)

			return scan_next

		return Sequence.__wrap__(iterator)

	def foldr[K](self, fn: typing.Callable[[T, K], K], initial: K = ...) -> K:
		"""
		Folds this sequence with 'fn' as a right associative operator
		This is a left fold of the reversed sequence, so every element is held in memory
		"""

		return self.reverse().foldl(lambda x, y: fn(y, x), initial)

	def scanr[K](self, fn: typing.Callable[[T, K], K], initial: K = ...) -> Sequence[K]:
		"""
		Lazy version of 'foldr' iterating over every intermediate value
		This is a left scan of the reversed sequence, so every element is held in memory
		"""

		return self.reverse().scanl(lambda x, y: fn(y, x), initial)

	def sum(self, n: typing.Any = 0) -> typing.Any:
		"""
		:param n: The starting value
		:return: The sum of every element plus 'n'
		"""

		return self.foldl(lambda a, b: a + b, n)

	def min(self, n: typing.Any = math.inf) -> typing.Any:
		"""
		:param n: The upper bound returned for an empty sequence
		:return: The smallest element, or 'n' if it is smaller
		"""

		return self.foldl(lambda a, b: b if b < a else a, n)

	def max(self, n: typing.Any = -math.inf) -> typing.Any:
		"""
		:param n: The lower bound returned for an empty sequence
		:return: The largest element, or 'n' if it is larger
		"""

		return self.foldl(lambda a, b: b if b > a else a, n)

	def all(self, predicate: typing.Callable[[T], typing.Any] = bool, strict: bool = False) -> bool:
		"""
		:param predicate: The test applied to each element
		:param strict: Whether to evaluate every element instead of stopping at the first failure
		:return: Whether every element passes, True for an empty sequence
		"""

		result: bool = True

		for x in self:
			if not predicate(x):
				result = False

				if not strict:
					break

		return result

	def any(self, predicate: typing.Callable[[T], typing.Any] = bool, strict: bool = False) -> bool:
		"""
		:param predicate: The test applied to each element
		:param strict: Whether to evaluate every element instead of stopping at the first success
		:return: Whether any element passes, False for an empty sequence
		"""

		result: bool = False

		for x in self:
			if predicate(x):
				result = True

				if not strict:
					break

		return result

	# Conversions

	def to_list(self, target: typing.Optional[list] = None) -> list[T]:
		"""
		:param target: The list to append to or a new list if None
		:return: The list holding every element
		"""

		target = [] if target is None else target
		target.extend(self)
		return target

	def to_dict(self, target: typing.Optional[dict] = None) -> dict:
		"""
		:param target: The dict to update or a new dict if None
		:return: The dict built from this sequence's (key, value) pairs
		"""

		target = {} if target is None else target

		for key, value in self:
			target[key] = value

		return target

	def join(self, sep: str = '') -> str:
		return str(sep).join(str(x) for x in self)

	# Whole sequence operations

	def reverse(self) -> Sequence[T]:
		"""
		Holds every element in memory
		:return: This sequence in reverse order
		"""

		return Sequence(self.to_list()[::-1])

	def sorted(self, key: typing.Optional[typing.Callable[[T], typing.Any]] = None, reverse: bool = False) -> Sequence[T]:
		"""
		Holds every element in memory
		:param key: The sort key
		:param reverse: Whether to sort in descending order
		:return: This sequence in sorted order
		"""

		return Sequence(sorted(self, key=key, reverse=reverse))

	# Operations on many sequences

	def zip(self, *others: typing.Any) -> Sequence[tuple]:
		"""
		Lazily iterates this and every other sequence together, stopping with the shortest
		:param others: The other sequences
		:return: The sequence of tuples
		"""

		sequences: tuple[Sequence, ...] = (self, *(iterable(x) for x in others))

		def iterator() -> NextFunction:
			nexts: list[NextFunction] = [sequence.iterator() for sequence in sequences]
			finished: bool = False

			def zip_next() -> Step:
				nonlocal finished
				values: list[typing.Any] = []

				for next_ in nexts:
					if finished or (step := next_()).done:
						finished = True
						return STOP

					values.append(step.value)

				return Step.of(tuple(values))

			return zip_next

		return Sequence.__wrap__(iterator)

	def product(self, *others: typing.Any) -> Sequence[tuple]:
		"""
		Lazily iterates the cartesian product of this and every other sequence
		The rightmost sequence advances fastest; an exhausted sequence is restarted and carries into the one on its left
		:param others: The other sequences
		:return: The sequence of tuples
		"""

		sequences: tuple[Sequence, ...] = (self, *(iterable(x) for x in others))

		def iterator() -> NextFunction:
			nexts: list[NextFunction] = [sequence.iterator() for sequence in sequences]
			current: typing.Optional[list[typing.Any]] = None
			finished: bool = False

			def product_next() -> Step:
				nonlocal current, finished

				if finished:
					return STOP
				elif current is None:
					steps: list[Step] = [next_() for next_ in nexts]

					if any(step.done for step in steps):
						finished = True
						return STOP

					current = [step.value for step in steps]
					return Step.of(tuple(current))

				for index in range(len(nexts) - 1, -1, -1):
					step: Step = nexts[index]()

					if not step.done:
						current[index] = step.value
						return Step.of(tuple(current))
					elif index == 0:
						break

					nexts[index] = sequences[index].iterator()

					if (step := nexts[index]()).done:
						break

					current[index] = step.value

				finished = True
				return STOP

			return product_next

		return Sequence.__wrap__(iterator)

	def chain(self, *others: typing.Any) -> Sequence:
		"""
		Lazily concatenates this and every other sequence
		:param others: The other sequences
		:return: The concatenated sequence
		"""

		sequences: tuple[Sequence, ...] = (self, *(iterable(x) for x in others))

		def iterator() -> NextFunction:
			index: int = 0
			next_: NextFunction = sequences[0].iterator()

			def chain_next() -> Step:
				nonlocal index, next_

				while (step := next_()).done:
					if index + 1 >= len(sequences):
						return STOP

					index += 1
					next_ = sequences[index].iterator()

				return step

			return chain_next

		return Sequence.__wrap__(iterator)

	def flatten(self) -> Sequence:
		"""
		Lazily chains the elements of this sequence, each converted with 'iterable'
		"""

		source: Sequence = self

		def iterator() -> NextFunction:
			outer: NextFunction = source.iterator()
			inner: NextFunction = __stopped__

			def flatten_next() -> Step:
				nonlocal inner

				while (step := inner()).done:
					if (element := outer()).done:
						return STOP

					inner = iterable(element.value).iterator()

				return step

			return flatten_next

		return Sequence.__wrap__(iterator)

	def cycle(self, n: int | float = math.inf) -> Sequence[T]:
		"""
		Lazily repeats this whole sequence
		:param n: The number of repetitions, forever by default
		:return: The repeated sequence, empty if 'n' < 1
		"""

		source: Sequence[T] = self

		def iterator() -> NextFunction:
			remaining: int | float = n
			produced: bool = False
			next_: NextFunction = source.iterator() if n >= 1 else __stopped__

			def cycle_next() -> Step:
				nonlocal remaining, produced, next_

				while remaining >= 1:
					if not (step := next_()).done:
						produced = True
						return step

					remaining = remaining - 1 if produced else 0
					produced = False

					if remaining >= 1:
						next_ = source.iterator()

				return STOP

			return cycle_next

		return Sequence.__wrap__(iterator)

	# Builders

	@staticmethod
	def range(start: int | float = 0, stop: typing.Optional[int | float] = None, step: int | float = 1) -> Sequence[int | float]:
		"""
		Numeric range supporting fractional and negative steps
		With a single argument it is taken as the stop value
		:param start: The first value
		:param stop: The exclusive bound
		:param step: The increment
		:return: The range sequence, empty when the bounds are inverted for the step's direction
		:raises ValueError: If 'step' is zero
		"""

		if stop is None:
			start, stop = 0, start

		Misc.raise_if(step == 0, ValueError('Range step must not be zero'))

		def iterator() -> NextFunction:
			index: int = 0

			def range_next() -> Step:
				nonlocal index
				value: int | float = start + index * step

				if Misc.is_nan(value) or Misc.is_nan(stop) or (value >= stop if step > 0 else value <= stop):
					return STOP

				index += 1
				return Step.of(value)

			return range_next

		return Sequence.__wrap__(iterator)

	@staticmethod
	def repeat[K](x: K, n: int | float = math.inf) -> Sequence[K]:
		"""
		:param x: The element to repeat
		:param n: The number of repetitions, forever by default
		:return: The sequence repeating 'x'
		"""

		def iterator() -> NextFunction:
			remaining: int | float = n

			def repeat_next() -> Step:
				nonlocal remaining

				if remaining < 1:
					return STOP

				remaining -= 1
				return Step.of(x)

			return repeat_next

		return Sequence.__wrap__(iterator)

	@staticmethod
	def iterate[K](f: typing.Callable[[K], K], x: K, n: int | float = math.inf) -> Sequence[K]:
		"""
		:param f: The function applied repeatedly
		:param x: The first element
		:param n: The number of elements, unbounded by default
		:return: The sequence x, f(x), f(f(x)), ...
		"""

		def iterator() -> NextFunction:
			remaining: int | float = n
			started: bool = False
			value: K = x

			def iterate_next() -> Step:
				nonlocal remaining, started, value

				if remaining < 1:
					return STOP

				remaining -= 1
				value = f(value) if started else value
				started = True
				return Step.of(value)

			return iterate_next

		return Sequence.__wrap__(iterator)


def product(*sequences: typing.Any) -> Sequence[tuple]:
	"""
	:param sequences: The sequences to combine
	:return: The cartesian product of every sequence, or EMPTY if none is given
	"""

	if len(sequences) == 0:
		return EMPTY

	return iterable(sequences[0]).product(*sequences[1:])


def iterable(source: typing.Any) -> Sequence:
	"""
	:param source: A sequence or anything a Sequence can be built from
	:return: 'source' itself if it is already a Sequence, otherwise a new Sequence over it
	"""

	return source if isinstance(source, Sequence) else Sequence(source)


EMPTY: Sequence = Sequence.__wrap__(lambda: __stopped__)
repeat = Sequence.repeat
iterate = Sequence.iterate
