from __future__ import annotations

import abc
import heapq
import itertools
import sys
import threading
import time
import typing

from . import Exceptions
from . import Logger
from . import Misc


type Task = typing.Callable[[], typing.Any]


class Scheduler(abc.ABC):
	"""
	[Scheduler] - Base class for the task queues futures dispatch their callbacks on
	Tasks are run cooperatively on whichever thread drives the scheduler, never inside the call that scheduled them
	"""

	def __init__(self, logger: typing.Optional[Logger.Logger] = None, *, raise_errors: bool = False):
		"""
		[Scheduler] - Base class for the task queues futures dispatch their callbacks on
		- Constructor -
		:param logger: The logger uncaught task errors are written to, or a stderr logger if None
		:param raise_errors: Whether uncaught task errors propagate out of the driving call instead of being logged
		:raises InvalidArgumentException: If 'logger' is not a Logger
		"""

		Misc.raise_ifn(logger is None or isinstance(logger, Logger.Logger), Exceptions.InvalidArgumentException(Scheduler.__init__, 'logger', type(logger), (Logger.Logger,)))
		self.__logger__: typing.Optional[Logger.Logger] = logger
		self.__raise_errors__: bool = bool(raise_errors)
		self.__errors__: list[BaseException] = []
		self.__queue__: list[tuple[float, int, Task]] = []
		self.__sequence__: typing.Iterator[int] = itertools.count()
		self.__condition__: threading.Condition = threading.Condition()

	def __len__(self) -> int:
		return self.pending()

	def __push__(self, due: float, callback: Task) -> None:
		with self.__condition__:
			heapq.heappush(self.__queue__, (due, next(self.__sequence__), callback))
			self.__condition__.notify_all()

	def __pop_due__(self, now: float) -> typing.Optional[Task]:
		"""
		INTERNAL METHOD
		Removes the earliest task if it is due
		:param now: The current scheduler time
		:return: The task or None if no task is due
		"""

		with self.__condition__:
			if len(self.__queue__) > 0 and self.__queue__[0][0] <= now:
				return heapq.heappop(self.__queue__)[2]

			return None

	def __next_due__(self) -> typing.Optional[float]:
		with self.__condition__:
			return self.__queue__[0][0] if len(self.__queue__) > 0 else None

	def __execute__(self, callback: Task) -> None:
		"""
		INTERNAL METHOD
		Runs a single task, routing uncaught errors to 'report'
		:param callback: The task to run
		"""

		try:
			callback()
		except Exception as err:
			self.report(err, callback)

	@property
	def logger(self) -> Logger.Logger:
		if self.__logger__ is None:
			self.__logger__ = Logger.Logger(sys.stderr, banner=False)

		return self.__logger__

	@property
	def errors(self) -> tuple[BaseException, ...]:
		"""
		:return: Every uncaught error reported by this scheduler's tasks
		"""

		return tuple(self.__errors__)

	def report(self, err: BaseException, callback: typing.Optional[Task] = None) -> None:
		"""
		Top-level error channel for tasks
		:param err: The uncaught error
		:param callback: The task that raised it
		:raises BaseException: The error itself if this scheduler was built with 'raise_errors'
		"""

		self.__errors__.append(err)

		if self.__raise_errors__:
			raise err

		self.logger.exception(f'Error-{type(err).__name__} during scheduled task {callback!r}', err)

	def schedule(self, callback: Task, delay_ms: float = 0) -> None:
		"""
		Queues a task to run after at least 'delay_ms' milliseconds
		:param callback: The zero-argument callable to run
		:param delay_ms: The minimum delay in milliseconds
		:raises InvalidArgumentException: If 'callback' is not callable
		:raises InvalidArgumentException: If 'delay_ms' is not a number
		"""

		Misc.check_callable(Scheduler.schedule, 'callback', callback)
		Misc.check_type(Scheduler.schedule, 'delay_ms', delay_ms, float | int)
		self.__push__(self.now() + max(0.0, float(delay_ms)), callback)

	def pending(self) -> int:
		"""
		:return: The number of queued tasks
		"""

		with self.__condition__:
			return len(self.__queue__)

	def clear(self) -> None:
		"""
		Drops every queued task
		"""

		with self.__condition__:
			self.__queue__.clear()

	@abc.abstractmethod
	def now(self) -> float:
		"""
		:return: The current scheduler time in milliseconds
		"""

		...

	@abc.abstractmethod
	def run_until(self, predicate: typing.Callable[[], bool], timeout: typing.Optional[float] = None) -> bool:
		"""
		Runs tasks until the predicate holds
		:param predicate: The stop condition
		:param timeout: The maximum number of milliseconds to run for or indefinitely if None
		:return: Whether the predicate holds
		"""

		...


class EventLoop(Scheduler):
	"""
	[EventLoop(Scheduler)] - Cooperative wall-clock task loop
	Other threads may schedule tasks, the loop itself runs them on the thread calling 'run'
	"""

	def now(self) -> float:
		return time.perf_counter() * 1e3

	def run_once(self) -> bool:
		"""
		Runs the earliest task if it is due
		:return: Whether a task was run
		"""

		task: typing.Optional[Task] = self.__pop_due__(self.now())

		if task is None:
			return False

		self.__execute__(task)
		return True

	def run_until(self, predicate: typing.Callable[[], bool], timeout: typing.Optional[float] = None) -> bool:
		"""
		Runs due tasks until the predicate holds, sleeping until the next task falls due
		Without a timeout an empty queue blocks the loop until another thread schedules a task
		:param predicate: The stop condition
		:param timeout: The maximum number of milliseconds to run for or indefinitely if None
		:return: Whether the predicate holds
		"""

		Misc.check_callable(EventLoop.run_until, 'predicate', predicate)
		deadline: typing.Optional[float] = None if timeout is None else self.now() + max(0.0, float(timeout))

		while not predicate():
			if self.run_once():
				continue

			now: float = self.now()

			if deadline is not None and now >= deadline:
				return predicate()

			with self.__condition__:
				due: typing.Optional[float] = self.__queue__[0][0] if len(self.__queue__) > 0 else None

				# Without a deadline or queued task only another thread can make progress
				if due is None and deadline is None:
					self.__condition__.wait()
				elif (limit := min(x for x in (due, deadline) if x is not None)) > now:
					self.__condition__.wait((limit - now) * 1e-3)

		return True

	def run(self, timeout: typing.Optional[float] = None) -> bool:
		"""
		Runs tasks until none remain
		:param timeout: The maximum number of milliseconds to run for or indefinitely if None
		:return: Whether the queue was drained
		"""

		return self.run_until(lambda: self.pending() == 0, timeout)


class ManualScheduler(Scheduler):
	"""
	[ManualScheduler(Scheduler)] - Deterministic scheduler driven by a virtual clock
	Time only moves when 'advance', 'run_all' or 'run_until' is called
	"""

	def __init__(self, logger: typing.Optional[Logger.Logger] = None, *, raise_errors: bool = False, max_steps: int = 1_000_000):
		"""
		[ManualScheduler(Scheduler)] - Deterministic scheduler driven by a virtual clock
		- Constructor -
		:param logger: The logger uncaught task errors are written to, or a stderr logger if None
		:param raise_errors: Whether uncaught task errors propagate out of the driving call instead of being logged
		:param max_steps: The maximum number of tasks a single 'run_all' may run
		"""

		super().__init__(logger, raise_errors=raise_errors)
		self.__time__: float = 0.0
		self.__max_steps__: int = int(max_steps)

	def now(self) -> float:
		return self.__time__

	def advance(self, ms: float = 0) -> int:
		"""
		Moves the virtual clock forward, running every task that falls due on the way
		:param ms: The number of milliseconds to advance
		:return: The number of tasks run
		"""

		target: float = self.__time__ + max(0.0, float(ms))
		count: int = 0

		while (due := self.__next_due__()) is not None and due <= target:
			self.__time__ = max(self.__time__, due)
			self.__execute__(self.__pop_due__(self.__time__))
			count += 1

		self.__time__ = target
		return count

	def run_all(self) -> int:
		"""
		Runs tasks, fast-forwarding the clock, until the queue is empty
		:return: The number of tasks run
		:raises RuntimeError: If more than 'max_steps' tasks were run
		"""

		count: int = 0

		while (due := self.__next_due__()) is not None:
			Misc.raise_if(count >= self.__max_steps__, RuntimeError(f'Scheduler did not settle after {count} tasks'))
			self.__time__ = max(self.__time__, due)
			self.__execute__(self.__pop_due__(self.__time__))
			count += 1

		return count

	def run_until(self, predicate: typing.Callable[[], bool], timeout: typing.Optional[float] = None) -> bool:
		Misc.check_callable(ManualScheduler.run_until, 'predicate', predicate)
		deadline: typing.Optional[float] = None if timeout is None else self.__time__ + max(0.0, float(timeout))

		while not predicate():
			due: typing.Optional[float] = self.__next_due__()

			if due is None:
				return False
			elif deadline is not None and due > deadline:
				self.__time__ = deadline
				return predicate()

			self.__time__ = max(self.__time__, due)
			self.__execute__(self.__pop_due__(self.__time__))

		return True


__DEFAULT_SCHEDULER: typing.Optional[Scheduler] = None
__DEFAULT_LOCK: threading.Lock = threading.Lock()


def get_default_scheduler() -> Scheduler:
	"""
	:return: The process-wide scheduler futures use when none is given, creating an EventLoop on first use
	"""

	global __DEFAULT_SCHEDULER

	with __DEFAULT_LOCK:
		if __DEFAULT_SCHEDULER is None:
			__DEFAULT_SCHEDULER = EventLoop()

		return __DEFAULT_SCHEDULER


def set_default_scheduler(scheduler: typing.Optional[Scheduler]) -> None:
	"""
	Replaces the process-wide default scheduler
	:param scheduler: The new default or None to recreate an EventLoop on next use
	:raises InvalidArgumentException: If 'scheduler' is not a Scheduler
	"""

	global __DEFAULT_SCHEDULER
	Misc.raise_ifn(scheduler is None or isinstance(scheduler, Scheduler), Exceptions.InvalidArgumentException(set_default_scheduler, 'scheduler', type(scheduler), (Scheduler,)))

	with __DEFAULT_LOCK:
		__DEFAULT_SCHEDULER = scheduler
