from __future__ import annotations

import abc
import enum
import functools
import threading
import typing

from . import Exceptions
from . import Iterable
from . import Misc
from . import Scheduler


MINIMUM_DELAY_MS: float = 10
DEFAULT_RETRY_TIMES: int = 10
DEFAULT_RETRY_DELAY_MS: float = 100
DEFAULT_RETRY_DELAY_FACTOR: float = 2.0
DEFAULT_RETRY_MAX_DELAY_MS: float = 300_000


class FutureState(enum.Enum):
	PENDING = 0
	RESOLVED = 1
	REJECTED = 2
	CANCELLED = 3


class FutureLike(abc.ABC):
	"""
	[FutureLike] - Capability of being represented by a Future
	Every combinator accepting futures checks for this capability instead of the Future type
	"""

	@abc.abstractmethod
	def as_future(self) -> Future:
		"""
		:return: The canonical Future representing this object
		"""

		...


def is_future(obj: typing.Any) -> bool:
	"""
	:param obj: The object to test
	:return: Whether the object is future-like
	"""

	return isinstance(obj, FutureLike)


class Future[T](FutureLike):
	"""
	[Future(FutureLike)] - Single assignment container for a value computed asynchronously
	A future starts pending and settles exactly once as resolved, rejected or cancelled
	Callbacks never run inside the call that triggers them; they are queued on the future's scheduler
	"""

	def __init__(self, value: T = ..., *, scheduler: typing.Optional[Scheduler.Scheduler] = None):
		"""
		[Future(FutureLike)] - Single assignment container for a value computed asynchronously
		- Constructor -
		:param value: If given, the future is resolved with it immediately
		:param scheduler: The scheduler callbacks are dispatched on or the default scheduler if None
		:raises InvalidArgumentException: If 'scheduler' is not a Scheduler
		"""

		Misc.raise_ifn(scheduler is None or isinstance(scheduler, Scheduler.Scheduler), Exceptions.InvalidArgumentException(Future.__init__, 'scheduler', type(scheduler), (Scheduler.Scheduler,)))
		self.__state__: FutureState = FutureState.PENDING
		self.__completion__: typing.Optional[tuple[typing.Any, typing.Any]] = None
		self.__callbacks__: dict[FutureState, list[typing.Callable]] = {FutureState.RESOLVED: [], FutureState.REJECTED: [], FutureState.CANCELLED: []}
		self.__lock__: threading.RLock = threading.RLock()
		self.__scheduler__: Scheduler.Scheduler = Scheduler.get_default_scheduler() if scheduler is None else scheduler

		if value is not ...:
			self.resolve(value)

	def __repr__(self) -> str:
		return f'Future:{self.__state__.name.lower()}'

	def as_future(self) -> Future[T]:
		return self

	# State

	@property
	def state(self) -> FutureState:
		return self.__state__

	@property
	def value(self) -> typing.Optional[T | typing.Any]:
		"""
		:return: The resolution value, rejection reason or cancellation reason, None while pending
		"""

		return None if self.__completion__ is None else self.__completion__[1]

	@property
	def context(self) -> typing.Any:
		"""
		:return: The context given by the producer on settlement (this future by default), None while pending
		"""

		return None if self.__completion__ is None else self.__completion__[0]

	@property
	def scheduler(self) -> Scheduler.Scheduler:
		return self.__scheduler__

	def is_pending(self) -> bool:
		return self.__state__ is FutureState.PENDING

	def is_resolved(self) -> bool:
		return self.__state__ is FutureState.RESOLVED

	def is_rejected(self) -> bool:
		return self.__state__ is FutureState.REJECTED

	def is_cancelled(self) -> bool:
		return self.__state__ is FutureState.CANCELLED

	def is_settled(self) -> bool:
		return self.__state__ is not FutureState.PENDING

	# Settlement

	def __complete__(self, context: typing.Any, value: typing.Any, state: FutureState) -> typing.Optional[tuple[typing.Callable, ...]]:
		"""
		INTERNAL METHOD
		Performs the single state transition and queues the matching callbacks
		:param context: The completion context
		:param value: The completion value
		:param state: The terminal state
		:return: The callbacks dispatched or None if this future was already settled
		"""

		with self.__lock__:
			if self.__state__ is not FutureState.PENDING:
				return None

			self.__state__ = state
			self.__completion__ = (context, value)
			callbacks: tuple[typing.Callable, ...] = tuple(self.__callbacks__[state])

			for queue in self.__callbacks__.values():
				queue.clear()

		for callback in callbacks:
			self.__dispatch__(callback)

		return callbacks

	@staticmethod
	def __wake__(_value: typing.Any) -> None:
		pass

	def __dispatch__(self, callback: typing.Callable) -> None:
		self.__scheduler__.schedule(functools.partial(callback, self.__completion__[1]))

	def resolve(self, value: T = None, context: typing.Any = None) -> Future[T]:
		"""
		Settles this future as resolved; ignored if already settled
		:param value: The resolution value
		:param context: The completion context or this future if None
		:return: This future
		"""

		self.__complete__(self if context is None else context, value, FutureState.RESOLVED)
		return self

	def reject(self, reason: typing.Any = None, context: typing.Any = None) -> Future[T]:
		"""
		Settles this future as rejected; ignored if already settled
		If no rejection callback is registered at this moment the rejection is surfaced by raising,
		 after this future has settled and its callbacks were queued
		:param reason: The rejection reason, conventionally an exception
		:param context: The completion context or this future if None
		:return: This future
		:raises BaseException: 'reason' itself if it is an exception and the rejection is unhandled
		:raises UnhandledRejectionError: If 'reason' is not an exception and the rejection is unhandled
		"""

		callbacks: typing.Optional[tuple[typing.Callable, ...]] = self.__complete__(self if context is None else context, reason, FutureState.REJECTED)

		if callbacks is not None and len(callbacks) == 0:
			raise reason if isinstance(reason, BaseException) else Exceptions.UnhandledRejectionError(reason)

		return self

	def cancel(self, reason: typing.Any = None) -> Future[T]:
		"""
		Settles this future as cancelled; ignored if already settled
		Only cancellation callbacks are run, resolution and rejection callbacks are dropped
		:param reason: The cancellation reason
		:return: This future
		"""

		self.__complete__(self, reason, FutureState.CANCELLED)
		return self

	# Callbacks

	def __register__(self, callback: typing.Callable, state: FutureState) -> None:
		"""
		INTERNAL METHOD
		Queues a callback while pending, dispatches it if already settled in the matching state or drops it otherwise
		:param callback: The callback
		:param state: The state the callback is for
		"""

		with self.__lock__:
			if self.__state__ is FutureState.PENDING:
				self.__callbacks__[state].append(callback)
				return

			matches: bool = self.__state__ is state

		if matches:
			self.__dispatch__(callback)

	def __register_all__(self, caller: typing.Callable, callbacks: tuple[typing.Callable, ...], state: FutureState) -> Future[T]:
		Misc.check_callable(caller, 'callbacks', *callbacks)

		for callback in callbacks:
			self.__register__(callback, state)

		return self

	def done(self, *callbacks: typing.Callable[[T], typing.Any]) -> Future[T]:
		"""
		Registers callbacks called with the value when this future is resolved
		:param callbacks: The callbacks
		:return: This future
		:raises InvalidArgumentException: If any callback is not callable
		"""

		return self.__register_all__(Future.done, callbacks, FutureState.RESOLVED)

	def fail(self, *callbacks: typing.Callable[[typing.Any], typing.Any]) -> Future[T]:
		"""
		Registers callbacks called with the reason when this future is rejected
		:param callbacks: The callbacks
		:return: This future
		:raises InvalidArgumentException: If any callback is not callable
		"""

		return self.__register_all__(Future.fail, callbacks, FutureState.REJECTED)

	def on_cancel(self, *callbacks: typing.Callable[[typing.Any], typing.Any]) -> Future[T]:
		"""
		Registers callbacks called with the reason when this future is cancelled
		:param callbacks: The callbacks
		:return: This future
		:raises InvalidArgumentException: If any callback is not callable
		"""

		return self.__register_all__(Future.on_cancel, callbacks, FutureState.CANCELLED)

	def always(self, *callbacks: typing.Callable[[typing.Any], typing.Any]) -> Future[T]:
		"""
		Registers callbacks called when this future is either resolved or rejected
		"""

		Misc.check_callable(Future.always, 'callbacks', *callbacks)
		return self.done(*callbacks).fail(*callbacks)

	# Chaining

	def bind(self, other: FutureLike) -> Future[T]:
		"""
		Ties the settlement of this future to the settlement of another
		:param other: The future-like object to mirror
		:return: This future
		:raises InvalidArgumentException: If 'other' is not future-like
		"""

		Misc.raise_ifn(is_future(other), Exceptions.InvalidArgumentException(Future.bind, 'other', type(other), (FutureLike,)))
		future: Future = other.as_future()
		future.done(self.resolve)
		future.fail(self.reject)
		future.on_cancel(self.cancel)
		return self

	def then[K](self, on_resolved: typing.Optional[typing.Callable[[T], K | FutureLike]] = None, on_rejected: typing.Optional[typing.Callable[[typing.Any], K | FutureLike]] = None) -> Future[K]:
		"""
		Chains a computation on the settlement of this future
		The returned future settles with the handler's result, following it if it is future-like
		Without a handler the value or rejection is passed through unchanged
		Errors raised by a handler reject the returned future, and cancelling this future cancels it
		:param on_resolved: Handler called with the resolution value
		:param on_rejected: Handler called with the rejection reason
		:return: The derived future
		:raises InvalidArgumentException: If a given handler is not callable
		"""

		Misc.raise_ifn(on_resolved is None or callable(on_resolved), Exceptions.InvalidArgumentException(Future.then, 'on_resolved', type(on_resolved)))
		Misc.raise_ifn(on_rejected is None or callable(on_rejected), Exceptions.InvalidArgumentException(Future.then, 'on_rejected', type(on_rejected)))
		result: Future[K] = Future(scheduler=self.__scheduler__)

		def settle(handler: typing.Callable, argument: typing.Any) -> None:
			try:
				value: typing.Any = handler(argument)
			except Exception as err:
				result.reject(err)
				return

			if is_future(value):
				result.bind(value)
			else:
				result.resolve(value)

		def resolved(value: T) -> None:
			if on_resolved is None:
				result.resolve(value)
			else:
				settle(on_resolved, value)

		def rejected(reason: typing.Any) -> None:
			if on_rejected is None:
				result.reject(reason)
			else:
				settle(on_rejected, reason)

		self.done(resolved)
		self.fail(rejected)
		self.on_cancel(result.cancel)
		return result

	def catch[K](self, on_rejected: typing.Callable[[typing.Any], K | FutureLike]) -> Future[T | K]:
		return self.then(None, on_rejected)

	def wait(self, timeout: typing.Optional[float] = None) -> T:
		"""
		Drives this future's scheduler on the current thread until this future settles
		:param timeout: The maximum number of milliseconds to wait or indefinitely if None
		:return: The resolution value
		:raises TimeoutError: If this future is still pending
		:raises FutureCancelledError: If this future was cancelled
		:raises BaseException: The rejection reason if it is an exception
		:raises UnhandledRejectionError: If rejected with a reason that is not an exception
		"""

		Misc.check_type(Future.wait, 'timeout', timeout, typing.Optional[float | int])

		# Settlement from another thread must queue a task to wake the loop
		for state in (FutureState.RESOLVED, FutureState.REJECTED, FutureState.CANCELLED):
			self.__register__(Future.__wake__, state)

		if not self.__scheduler__.run_until(self.is_settled, timeout):
			raise TimeoutError(f'{self!r} did not settle')
		elif self.__state__ is FutureState.CANCELLED:
			raise Exceptions.FutureCancelledError(self.value)
		elif self.__state__ is FutureState.REJECTED:
			raise self.value if isinstance(self.value, BaseException) else Exceptions.UnhandledRejectionError(self.value)

		return self.value

	# Functions dealing with futures

	@staticmethod
	def when[K](value: K | FutureLike, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future[K]:
		"""
		Unifies synchronous and asynchronous values
		:param value: A future-like object or a plain value
		:param scheduler: The scheduler of the new future when 'value' is not future-like
		:return: The future of 'value' if it is future-like, otherwise a new future resolved with it
		"""

		return value.as_future() if is_future(value) else Future(value, scheduler=scheduler)

	@staticmethod
	def then_value[K](value: typing.Any, on_resolved: typing.Callable[[typing.Any], K], on_rejected: typing.Optional[typing.Callable[[typing.Any], K]] = None) -> K | Future[K]:
		"""
		Like 'then', but calls 'on_resolved' synchronously when 'value' is not future-like
		:param value: A future-like object or a plain value
		:param on_resolved: Handler for the value
		:param on_rejected: Handler for the rejection if 'value' is future-like
		:return: The derived future, or the plain result of 'on_resolved'
		"""

		return value.as_future().then(on_resolved, on_rejected) if is_future(value) else on_resolved(value)

	@staticmethod
	def rejected(reason: typing.Any = None, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future:
		"""
		Builds a future already rejected with 'reason'
		The rejection is not surfaced as unhandled, so callbacks registered later still observe it
		:param reason: The rejection reason
		:param scheduler: The scheduler of the new future
		:return: The rejected future
		"""

		result: Future = Future(scheduler=scheduler)
		result.__complete__(result, reason, FutureState.REJECTED)
		return result

	@staticmethod
	def __scheduler_of__(values: typing.Iterable, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Scheduler.Scheduler:
		"""
		INTERNAL METHOD
		Picks the scheduler a combinator builds its futures on
		:param values: The combinator's inputs
		:param scheduler: The explicitly requested scheduler
		:return: 'scheduler' if given, else the scheduler of the first future-like input, else the default scheduler
		"""

		if scheduler is not None:
			return scheduler

		for value in values:
			if is_future(value):
				return value.as_future().scheduler

		return Scheduler.get_default_scheduler()

	@staticmethod
	def __invoke__[K](scheduler: typing.Optional[Scheduler.Scheduler], fn: typing.Callable[..., K | FutureLike], *args, **kwargs) -> Future[K]:
		try:
			return Future.when(fn(*args, **kwargs), scheduler=scheduler)
		except Exception as err:
			return Future.rejected(err, scheduler=scheduler)

	@staticmethod
	def invoke[K](fn: typing.Callable[..., K | FutureLike], *args, **kwargs) -> Future[K]:
		"""
		Calls a function synchronously, never letting it raise
		:param fn: The function
		:param args: Its positional arguments
		:param kwargs: Its keyword arguments
		:return: The result coerced with 'when', or a future rejected with the raised error
		:raises InvalidArgumentException: If 'fn' is not callable
		"""

		Misc.check_callable(Future.invoke, 'fn', fn)
		return Future.__invoke__(None, fn, *args, **kwargs)

	@staticmethod
	def all(values: typing.Any, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future[list]:
		"""
		Waits for every value
		Resolves with the list of results in order, or rejects with the first rejection
		Cancelling any element cancels the result
		:param values: Anything a sequence can be built from, holding plain values or futures
		:param scheduler: The scheduler of the result or that of the first future-like value if None
		:return: The aggregate future, resolved with [] immediately for no values
		"""

		items: list[typing.Any] = Iterable.iterable(values).to_list()
		scheduler = Future.__scheduler_of__(items, scheduler)
		futures: list[Future] = [Future.when(item, scheduler=scheduler) for item in items]
		result: Future[list] = Future(scheduler=scheduler)

		if len(futures) == 0:
			return result.resolve([])

		results: list[typing.Any] = [None] * len(futures)
		remaining: int = len(futures)

		def store(index: int, value: typing.Any) -> None:
			nonlocal remaining
			results[index] = value
			remaining -= 1

			if remaining < 1:
				result.resolve(results)

		for index, future in enumerate(futures):
			future.done(functools.partial(store, index))
			future.fail(result.reject)
			future.on_cancel(result.cancel)

		return result

	@staticmethod
	def any(values: typing.Any, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future:
		"""
		Waits for the first resolution
		Resolves with the first value resolved, or rejects with the last rejection once every value was rejected
		:param values: Anything a sequence can be built from, holding plain values or futures
		:param scheduler: The scheduler of the result or that of the first future-like value if None
		:return: The aggregate future, rejected with None immediately for no values
		"""

		items: list[typing.Any] = Iterable.iterable(values).to_list()
		scheduler = Future.__scheduler_of__(items, scheduler)

		if len(items) == 0:
			return Future.rejected(None, scheduler=scheduler)

		futures: list[Future] = [Future.when(item, scheduler=scheduler) for item in items]
		result: Future = Future(scheduler=scheduler)
		remaining: int = len(futures)

		def failed(reason: typing.Any) -> None:
			nonlocal remaining
			remaining -= 1

			if remaining < 1:
				result.reject(reason)

		for future in futures:
			future.done(result.resolve)
			future.fail(failed)
			future.on_cancel(result.cancel)

		return result

	@staticmethod
	def sequence(values: typing.Any, f: typing.Optional[typing.Callable[[typing.Any], typing.Any]] = None, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future:
		"""
		Evaluates values and futures strictly one after the other
		An element is only pulled from 'values' once the previous one has settled
		:param values: Anything a sequence can be built from, holding plain values or futures
		:param f: Optional function applied to each value; it may return a future
		:param scheduler: The scheduler of the result or that of the first element if it is future-like and None is given
		:return: A future resolved with the last value produced or rejected with the first failure
		"""

		Misc.raise_ifn(f is None or callable(f), Exceptions.InvalidArgumentException(Future.sequence, 'f', type(f)))
		next_: Iterable.NextFunction = Iterable.iterable(values).iterator()

		try:
			first: Iterable.Step = next_()
		except Exception as err:
			return Future.rejected(err, scheduler=scheduler)

		scheduler = Future.__scheduler_of__(() if first.done else (first.value,), scheduler)
		result: Future = Future(scheduler=scheduler)

		def stop(reason: typing.Any) -> None:
			result.reject(reason)

		def advance(step: Iterable.Step, last_value: typing.Any) -> None:
			if step.done:
				result.resolve(last_value)
				return

			current: Future = Future.when(step.value, scheduler=scheduler)
			current = current if f is None else current.then(f)
			current.then(action, stop)

		def action(last_value: typing.Any) -> None:
			try:
				step: Iterable.Step = next_()
			except Exception as err:
				result.reject(err)
				return

			advance(step, last_value)

		advance(first, None)
		return result

	@staticmethod
	def do_while(action: typing.Callable[[typing.Any], typing.Any], condition: typing.Optional[typing.Callable[[typing.Any], typing.Any]] = None, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future:
		"""
		Asynchronous loop running the action before checking the condition
		The action is called with the previous value (None the first time) and the condition with the last value;
		 both may return futures
		:param action: The loop body
		:param condition: The loop condition or truthiness of the value if None
		:param scheduler: The scheduler driving the loop or the default scheduler if None
		:return: A future resolved with the last value once the condition fails, or rejected with the first failure
		"""

		Misc.check_callable(Future.do_while, 'action', action)
		condition = bool if condition is None else condition
		Misc.check_callable(Future.do_while, 'condition', condition)
		scheduler = Future.__scheduler_of__((), scheduler)
		loop_end: Future = Future(scheduler=scheduler)

		def stop(reason: typing.Any) -> None:
			loop_end.reject(reason)

		def loop(value: typing.Any) -> None:
			def checked(checks: typing.Any) -> None:
				if checks:
					Future.__invoke__(scheduler, action, value).then(loop, stop)
				else:
					loop_end.resolve(value)

			Future.__invoke__(scheduler, condition, value).then(checked, stop)

		Future.__invoke__(scheduler, action, None).then(loop, stop)
		return loop_end

	@staticmethod
	def while_do(condition: typing.Callable[[typing.Any], typing.Any], action: typing.Callable[[typing.Any], typing.Any], *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future:
		"""
		Asynchronous loop checking the condition (with None) before the first action
		:param condition: The loop condition
		:param action: The loop body
		:param scheduler: The scheduler driving the loop or the default scheduler if None
		:return: A future resolved with the last value, or None if the condition failed at once
		"""

		Misc.check_callable(Future.while_do, 'condition', condition)
		Misc.check_callable(Future.while_do, 'action', action)
		scheduler = Future.__scheduler_of__((), scheduler)
		return Future.__invoke__(scheduler, condition, None).then(lambda checks: Future.do_while(action, condition, scheduler=scheduler) if checks else None)

	@staticmethod
	def delay(ms: typing.Optional[float] = MINIMUM_DELAY_MS, value: typing.Any = ..., *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future:
		"""
		Builds a future resolved after a delay
		:param ms: The delay in milliseconds, never less than MINIMUM_DELAY_MS
		:param value: The resolution value or the current timestamp in milliseconds if omitted
		:param scheduler: The scheduler timing the delay
		:return: The delayed future
		:raises InvalidArgumentException: If 'ms' is not a number
		"""

		Misc.check_type(Future.delay, 'ms', ms, typing.Optional[float | int])
		ms = MINIMUM_DELAY_MS if ms is None or Misc.is_nan(ms) else max(float(ms), MINIMUM_DELAY_MS)
		value = Misc.timestamp() if value is ... else value
		result: Future = Future(scheduler=scheduler)
		result.scheduler.schedule(functools.partial(result.resolve, value), ms)
		return result

	@staticmethod
	def retrying[K](f: typing.Callable[[], K | FutureLike], times: int = DEFAULT_RETRY_TIMES, delay: float = DEFAULT_RETRY_DELAY_MS, delay_factor: float = DEFAULT_RETRY_DELAY_FACTOR, max_delay: float = DEFAULT_RETRY_MAX_DELAY_MS, *, scheduler: typing.Optional[Scheduler.Scheduler] = None) -> Future[K]:
		"""
		Calls 'f' until it returns a value or a future that resolves, at most 'times' times
		Attempts are separated by a delay multiplied by 'delay_factor' after each failure, capped at 'max_delay'
		:param f: The function to call
		:param times: The maximum number of attempts
		:param delay: The delay in milliseconds before the first retry
		:param delay_factor: The growth factor of the delay
		:param max_delay: The cap of the delay in milliseconds
		:param scheduler: The scheduler timing the retries or the default scheduler if None
		:return: A future resolved with the first success or rejected with the last failure
		:raises InvalidArgumentException: If 'f' is not callable or a numeric argument is not a number
		"""

		Misc.check_callable(Future.retrying, 'f', f)
		Misc.check_type(Future.retrying, 'times', times, int)
		Misc.check_type(Future.retrying, 'delay', delay, float | int)
		Misc.check_type(Future.retrying, 'delay_factor', delay_factor, float | int)
		Misc.check_type(Future.retrying, 'max_delay', max_delay, float | int)
		scheduler = Future.__scheduler_of__((), scheduler)

		def attempt(remaining: int, wait: float) -> Future[K]:
			current: Future[K] = Future.__invoke__(scheduler, f)

			if remaining <= 1:
				return current

			def retry(_reason: typing.Any) -> Future[K]:
				return Future.delay(wait, scheduler=scheduler).then(lambda _: attempt(remaining - 1, min(max_delay, wait * delay_factor)))

			return current.then(None, retry)

		return attempt(times, min(max_delay, delay))


when = Future.when
invoke = Future.invoke
