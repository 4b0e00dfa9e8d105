from __future__ import annotations

import io
import threading

import pytest

from Basis import Exceptions
from Basis import Logger
from Basis import Scheduler
from Basis.Future import Future, FutureLike, FutureState, is_future
from Basis.Iterable import Sequence


@pytest.fixture(autouse=True)
def scheduler():
	scheduler: Scheduler.ManualScheduler = Scheduler.ManualScheduler(Logger.Logger(io.StringIO(), banner=False))
	Scheduler.set_default_scheduler(scheduler)
	yield scheduler
	Scheduler.set_default_scheduler(None)


class Wrapper(FutureLike):
	def __init__(self, future: Future):
		self.future = future

	def as_future(self) -> Future:
		return self.future


class TestSettlement:
	def test_new_future_is_pending(self):
		future: Future = Future()
		assert future.is_pending()
		assert future.state is FutureState.PENDING
		assert future.value is None
		assert future.context is None
		assert repr(future) == 'Future:pending'

	def test_constructor_value_resolves(self):
		future: Future = Future(5)
		assert future.is_resolved()
		assert future.value == 5

	def test_constructor_none_resolves(self):
		assert Future(None).is_resolved()

	def test_uses_default_scheduler(self, scheduler):
		assert Future().scheduler is scheduler

	def test_callbacks_never_run_synchronously(self, scheduler):
		seen: list = []
		future: Future = Future()
		future.done(seen.append)
		future.resolve(1)
		assert seen == []
		scheduler.run_all()
		assert seen == [1]

	def test_callbacks_run_in_registration_order(self, scheduler):
		seen: list = []
		future: Future = Future()
		future.done(lambda x: seen.append(('a', x)), lambda x: seen.append(('b', x)))
		future.done(lambda x: seen.append(('c', x)))
		future.resolve(1)
		scheduler.run_all()
		assert seen == [('a', 1), ('b', 1), ('c', 1)]

	def test_late_callback_is_dispatched(self, scheduler):
		seen: list = []
		future: Future = Future(3)
		future.done(seen.append)
		assert seen == []
		scheduler.run_all()
		assert seen == [3]

	def test_settles_only_once(self, scheduler):
		future: Future = Future()
		future.resolve(1)
		future.resolve(2)
		future.reject('ignored')
		future.cancel()
		assert future.is_resolved()
		assert future.value == 1

	def test_resolved_does_not_call_fail(self, scheduler):
		seen: list = []
		future: Future = Future()
		future.fail(seen.append)
		future.resolve(1)
		future.fail(seen.append)
		scheduler.run_all()
		assert seen == []

	def test_context(self):
		future: Future = Future()
		future.resolve(1, 'ctx')
		assert future.context == 'ctx'
		assert Future(1).context is not None

	def test_default_context_is_future(self):
		future: Future = Future()
		future.resolve(1)
		assert future.context is future

	def test_handled_rejection(self, scheduler):
		seen: list = []
		future: Future = Future()
		future.fail(seen.append)
		future.reject('no')
		assert future.is_rejected()
		scheduler.run_all()
		assert seen == ['no']

	def test_unhandled_rejection_raises_reason(self):
		future: Future = Future()

		with pytest.raises(ValueError):
			future.reject(ValueError('bad'))

		assert future.is_rejected()

	def test_unhandled_rejection_wraps_plain_reason(self):
		future: Future = Future()

		with pytest.raises(Exceptions.UnhandledRejectionError) as info:
			future.reject('bad')

		assert info.value.reason == 'bad'
		assert future.value == 'bad'

	def test_cancel_runs_only_cancel_callbacks(self, scheduler):
		seen: list = []
		future: Future = Future()
		future.done(lambda x: seen.append(('done', x)))
		future.fail(lambda x: seen.append(('fail', x)))
		future.on_cancel(lambda x: seen.append(('cancel', x)))
		future.cancel('stop')
		future.resolve(1)
		scheduler.run_all()
		assert future.is_cancelled()
		assert seen == [('cancel', 'stop')]

	def test_always(self, scheduler):
		seen: list = []
		Future().always(seen.append).resolve(1)
		Future().always(seen.append).reject(2)
		scheduler.run_all()
		assert seen == [1, 2]

	def test_non_callable_callback(self):
		with pytest.raises(Exceptions.InvalidArgumentException):
			Future().done(5)

		with pytest.raises(Exceptions.InvalidArgumentException):
			Future().fail(lambda x: x, None)

	def test_invalid_scheduler(self):
		with pytest.raises(Exceptions.InvalidArgumentException):
			Future(scheduler='loop')


class TestChaining:
	def test_then_maps_value(self, scheduler):
		derived: Future = Future(2).then(lambda x: x * 3)
		assert derived.is_pending()
		scheduler.run_all()
		assert derived.value == 6

	def test_then_follows_returned_future(self, scheduler):
		inner: Future = Future()
		outer: Future = Future(1).then(lambda _: inner)
		scheduler.run_all()
		assert outer.is_pending()
		inner.resolve(7)
		scheduler.run_all()
		assert outer.value == 7

	def test_then_follows_future_like(self, scheduler):
		outer: Future = Future(1).then(lambda _: Wrapper(Future('wrapped')))
		scheduler.run_all()
		assert outer.value == 'wrapped'

	def test_then_handler_error_rejects(self, scheduler):
		derived: Future = Future(1).then(lambda _: 1 / 0)
		seen: list = []
		derived.fail(seen.append)
		scheduler.run_all()
		assert derived.is_rejected()
		assert isinstance(seen[0], ZeroDivisionError)

	def test_then_passes_rejection_through(self, scheduler):
		seen: list = []
		future: Future = Future()
		future.then(lambda x: x).fail(seen.append)
		future.reject('no')
		scheduler.run_all()
		assert seen == ['no']

	def test_then_passes_value_through(self, scheduler):
		derived: Future = Future(4).then(None, lambda reason: 'unused')
		scheduler.run_all()
		assert derived.value == 4

	def test_catch_recovers(self, scheduler):
		future: Future = Future()
		derived: Future = future.catch(lambda reason: f'recovered {reason}')
		future.reject('x')
		scheduler.run_all()
		assert derived.is_resolved()
		assert derived.value == 'recovered x'

	def test_cancel_propagates_through_then(self, scheduler):
		future: Future = Future()
		derived: Future = future.then(lambda x: x)
		future.cancel()
		scheduler.run_all()
		assert derived.is_cancelled()

	def test_derived_uses_source_scheduler(self):
		other: Scheduler.ManualScheduler = Scheduler.ManualScheduler()
		assert Future(scheduler=other).then(lambda x: x).scheduler is other

	def test_bind(self, scheduler):
		source: Future = Future()
		target: Future = Future().bind(source)
		source.resolve(4)
		scheduler.run_all()
		assert target.value == 4

	def test_bind_rejection_and_cancellation(self, scheduler):
		rejected: Future = Future()
		cancelled: Future = Future()
		seen: list = []
		Future().bind(rejected).fail(seen.append)
		bound: Future = Future().bind(cancelled)
		rejected.reject('r')
		cancelled.cancel()
		scheduler.run_all()
		assert seen == ['r']
		assert bound.is_cancelled()

	def test_bind_requires_future_like(self):
		with pytest.raises(Exceptions.InvalidArgumentException):
			Future().bind(5)

	def test_unhandled_rejection_in_task_is_reported(self):
		stream: io.StringIO = io.StringIO()
		local: Scheduler.ManualScheduler = Scheduler.ManualScheduler(Logger.Logger(stream, banner=False))
		derived: Future = Future(1, scheduler=local).then(lambda _: 1 / 0)
		local.run_all()
		assert derived.is_rejected()
		assert len(local.errors) == 1
		assert isinstance(local.errors[0], ZeroDivisionError)
		assert 'ZeroDivisionError' in stream.getvalue()


class TestCoercion:
	def test_is_future(self):
		assert is_future(Future())
		assert is_future(Wrapper(Future()))
		assert not is_future(5)

	def test_when_value(self):
		future: Future = Future.when(5)
		assert future.is_resolved()
		assert future.value == 5

	def test_when_future_is_identity(self):
		future: Future = Future()
		assert Future.when(future) is future

	def test_when_future_like(self):
		inner: Future = Future()
		assert Future.when(Wrapper(inner)) is inner

	def test_then_value(self, scheduler):
		assert Future.then_value(2, lambda x: x + 1) == 3
		derived = Future.then_value(Future(2), lambda x: x + 1)
		assert isinstance(derived, Future)
		scheduler.run_all()
		assert derived.value == 3

	def test_invoke(self):
		assert Future.invoke(lambda a, b: a + b, 1, b=2).value == 3

	def test_invoke_captures_error(self):
		future: Future = Future.invoke(lambda: 1 / 0)
		assert future.is_rejected()
		assert isinstance(future.value, ZeroDivisionError)

	def test_rejected_is_quiet(self, scheduler):
		seen: list = []
		future: Future = Future.rejected('r')
		assert future.is_rejected()
		future.fail(seen.append)
		scheduler.run_all()
		assert seen == ['r']


class TestAggregates:
	def test_all_keeps_input_order(self, scheduler):
		first: Future = Future()
		second: Future = Future()
		result: Future = Future.all([first, 'plain', second])
		second.resolve('b')
		scheduler.run_all()
		assert result.is_pending()
		first.resolve('a')
		scheduler.run_all()
		assert result.value == ['a', 'plain', 'b']

	def test_all_of_empty(self):
		result: Future = Future.all([])
		assert result.is_resolved()
		assert result.value == []

	def test_all_accepts_sequence(self, scheduler):
		result: Future = Future.all(Sequence.range(3).map(Future.when))
		scheduler.run_all()
		assert result.value == [0, 1, 2]

	def test_all_first_rejection_wins(self, scheduler):
		first: Future = Future()
		second: Future = Future()
		seen: list = []
		Future.all([first, second]).fail(seen.append)
		second.reject('b')
		scheduler.run_all()
		first.reject('a')
		scheduler.run_all()
		assert seen == ['b']

	@pytest.mark.parametrize('index', [0, 1, 2])
	def test_all_with_already_rejected_element(self, scheduler, index):
		values: list = [Future(), 'plain', Future()]
		values[index] = Future.rejected('boom')
		seen: list = []
		result: Future = Future.all(values)
		result.fail(seen.append)
		scheduler.run_all()
		assert result.is_rejected()
		assert seen == ['boom']

	def test_all_cancellation(self, scheduler):
		first: Future = Future()
		result: Future = Future.all([first, Future()])
		first.cancel()
		scheduler.run_all()
		assert result.is_cancelled()

	def test_any_first_resolution(self, scheduler):
		first: Future = Future()
		second: Future = Future()
		result: Future = Future.any([first, second])
		second.resolve(2)
		scheduler.run_all()
		assert result.value == 2

	def test_any_rejects_with_last_reason(self, scheduler):
		first: Future = Future()
		second: Future = Future()
		seen: list = []
		Future.any([first, second]).fail(seen.append)
		first.reject('a')
		scheduler.run_all()
		assert seen == []
		second.reject('b')
		scheduler.run_all()
		assert seen == ['b']

	def test_any_of_empty(self):
		result: Future = Future.any([])
		assert result.is_rejected()
		assert result.value is None


class TestSequence:
	def test_runs_in_order(self, scheduler):
		calls: list = []
		result: Future = Future.sequence([1, 2, 3], lambda x: calls.append(x) or x * 10)
		scheduler.run_all()
		assert calls == [1, 2, 3]
		assert result.value == 30

	def test_pulls_lazily(self, scheduler):
		gate: Future = Future()
		pulled: list = []

		def source():
			pulled.append('first')
			yield gate
			pulled.append('second')
			yield 5

		result: Future = Future.sequence(Sequence(source))
		scheduler.run_all()
		assert pulled == ['first']
		gate.resolve('g')
		scheduler.run_all()
		assert pulled == ['first', 'second']
		assert result.value == 5

	def test_stops_at_first_failure(self, scheduler):
		calls: list = []
		seen: list = []

		def step(x):
			calls.append(x)

			if x == 2:
				raise ValueError(x)

			return x

		Future.sequence([1, 2, 3], step).fail(seen.append)
		scheduler.run_all()
		assert calls == [1, 2]
		assert isinstance(seen[0], ValueError)

	def test_empty_resolves_none(self):
		result: Future = Future.sequence([])
		assert result.is_resolved()
		assert result.value is None


class TestLoops:
	def test_do_while(self, scheduler):
		calls: list = []
		result: Future = Future.do_while(lambda prev: calls.append(prev) or (prev or 0) + 1, lambda value: value < 5)
		scheduler.run_all()
		assert result.value == 5
		assert calls == [None, 1, 2, 3, 4]

	def test_do_while_default_condition(self, scheduler):
		values: list = [2, 1, 0]
		result: Future = Future.do_while(lambda _: values.pop(0))
		scheduler.run_all()
		assert result.value == 0
		assert values == []

	def test_do_while_with_delays(self, scheduler):
		result: Future = Future.do_while(lambda prev: Future.delay(10, (prev or 0) + 1), lambda value: value < 3)
		scheduler.run_all()
		assert result.value == 3
		assert scheduler.now() == 30

	def test_do_while_action_error(self, scheduler):
		seen: list = []
		Future.do_while(lambda prev: 1 / 0).fail(seen.append)
		scheduler.run_all()
		assert isinstance(seen[0], ZeroDivisionError)

	def test_while_do_false_condition(self, scheduler):
		calls: list = []
		result: Future = Future.while_do(lambda _: False, calls.append)
		scheduler.run_all()
		assert result.is_resolved()
		assert result.value is None
		assert calls == []

	def test_while_do(self, scheduler):
		result: Future = Future.while_do(lambda v: v is None or v < 3, lambda v: (v or 0) + 1)
		scheduler.run_all()
		assert result.value == 3


class TestDelay:
	def test_delay(self, scheduler):
		future: Future = Future.delay(50, 'x')
		scheduler.advance(49)
		assert future.is_pending()
		scheduler.advance(1)
		assert future.value == 'x'

	@pytest.mark.parametrize('ms', [0, None, float('nan'), 3])
	def test_minimum_delay(self, scheduler, ms):
		future: Future = Future.delay(ms, 'x')
		scheduler.advance(9)
		assert future.is_pending()
		scheduler.advance(1)
		assert future.is_resolved()

	def test_default_value_is_timestamp(self, scheduler):
		future: Future = Future.delay(10)
		scheduler.run_all()
		assert isinstance(future.value, float)

	def test_invalid_delay(self):
		with pytest.raises(Exceptions.InvalidArgumentException):
			Future.delay('soon')


class TestRetrying:
	def test_retries_until_success(self, scheduler):
		attempts: list = []

		def flaky():
			attempts.append(scheduler.now())

			if len(attempts) < 3:
				raise ValueError('flaky')

			return 'ok'

		result: Future = Future.retrying(flaky, times=5, delay=100, delay_factor=2, max_delay=1000)
		scheduler.run_all()
		assert result.value == 'ok'
		assert attempts == [0, 100, 300]

	def test_delay_is_capped(self, scheduler):
		attempts: list = []

		def failing():
			attempts.append(scheduler.now())
			raise ValueError('always')

		Future.retrying(failing, times=4, delay=100, delay_factor=10, max_delay=150).fail(lambda _: None)
		scheduler.run_all()
		assert attempts == [0, 100, 250, 400]

	def test_exhausted_attempts_reject(self, scheduler):
		calls: list = []
		seen: list = []

		def failing():
			calls.append(1)
			raise ValueError(len(calls))

		Future.retrying(failing, times=3, delay=10).fail(seen.append)
		scheduler.run_all()
		assert len(calls) == 3
		assert isinstance(seen[0], ValueError)
		assert seen[0].args == (3,)

	def test_single_attempt(self, scheduler):
		calls: list = []
		Future.retrying(lambda: calls.append(1) or 1 / 0, times=1).fail(lambda _: None)
		scheduler.run_all()
		assert calls == [1]

	def test_invalid_arguments(self):
		with pytest.raises(Exceptions.InvalidArgumentException):
			Future.retrying(5)

		with pytest.raises(Exceptions.InvalidArgumentException):
			Future.retrying(lambda: 1, times='many')


class TestWait:
	def test_wait_resolves(self, scheduler):
		assert Future.delay(100, 'v').wait() == 'v'
		assert scheduler.now() == 100

	def test_wait_raises_rejection(self):
		with pytest.raises(ValueError):
			Future.rejected(ValueError('bad')).wait()

	def test_wait_raises_plain_rejection(self):
		with pytest.raises(Exceptions.UnhandledRejectionError):
			Future.rejected('bad').wait()

	def test_wait_cancelled(self):
		with pytest.raises(Exceptions.FutureCancelledError):
			Future().cancel('stop').wait()

	def test_wait_never_settles(self):
		with pytest.raises(TimeoutError):
			Future().wait()

	def test_wait_timeout(self):
		with pytest.raises(TimeoutError):
			Future.delay(100).wait(timeout=50)

	def test_wait_on_event_loop_across_threads(self):
		loop: Scheduler.EventLoop = Scheduler.EventLoop()
		future: Future = Future(scheduler=loop)
		timer: threading.Timer = threading.Timer(0.01, future.resolve, args=('threaded',))
		timer.start()

		try:
			assert future.wait(timeout=5000) == 'threaded'
		finally:
			timer.cancel()

	def test_wait_without_timeout_across_threads(self):
		loop: Scheduler.EventLoop = Scheduler.EventLoop()
		future: Future = Future(scheduler=loop)
		timer: threading.Timer = threading.Timer(0.05, future.resolve, args=('late',))
		timer.start()

		try:
			assert future.wait() == 'late'
		finally:
			timer.cancel()


class TestSchedulerPropagation:
	@pytest.fixture
	def local(self):
		return Scheduler.ManualScheduler(Logger.Logger(io.StringIO(), banner=False))

	def test_all_follows_input_scheduler(self, scheduler, local):
		result: Future = Future.all([1, Future(2, scheduler=local)])
		assert result.scheduler is local
		local.run_all()
		assert result.value == [1, 2]
		assert scheduler.pending() == 0

	def test_all_wait_drives_input_scheduler(self, local):
		Scheduler.set_default_scheduler(None)
		assert Future.all([Future.delay(10, 'x', scheduler=local)]).wait() == ['x']
		assert local.now() == 10

	def test_explicit_scheduler_wins(self, local):
		other: Scheduler.ManualScheduler = Scheduler.ManualScheduler()
		assert Future.all([Future(1, scheduler=other)], scheduler=local).scheduler is local
		assert Future.all([], scheduler=local).scheduler is local
		assert Future.any([], scheduler=local).scheduler is local

	def test_any_follows_input_scheduler(self, scheduler, local):
		result: Future = Future.any(['plain', Future(2, scheduler=local)])
		assert result.scheduler is local
		local.run_all()
		assert result.value == 'plain'
		assert scheduler.pending() == 0

	def test_sequence_follows_first_element(self, scheduler, local):
		result: Future = Future.sequence([Future(1, scheduler=local), 2], lambda x: x * 10)
		assert result.scheduler is local
		local.run_all()
		assert result.value == 20
		assert scheduler.pending() == 0

	def test_sequence_source_error_rejects(self, local):
		def broken():
			raise ValueError('no source')
			yield

		result: Future = Future.sequence(Sequence(broken), scheduler=local)
		assert result.is_rejected()
		assert isinstance(result.value, ValueError)

	def test_do_while_and_while_do(self, scheduler, local):
		counted: Future = Future.do_while(lambda prev: (prev or 0) + 1, lambda value: value < 3, scheduler=local)
		checked: Future = Future.while_do(lambda v: v is None or v < 2, lambda v: (v or 0) + 1, scheduler=local)
		assert counted.scheduler is local
		local.run_all()
		assert counted.value == 3
		assert checked.value == 2
		assert scheduler.pending() == 0

	def test_retrying_backoff_on_scheduler(self, scheduler, local):
		attempts: list = []

		def flaky():
			attempts.append(local.now())

			if len(attempts) < 3:
				raise ValueError('flaky')

			return 'ok'

		result: Future = Future.retrying(flaky, times=5, delay=100, scheduler=local)
		local.run_all()
		assert result.value == 'ok'
		assert attempts == [0, 100, 300]
		assert scheduler.pending() == 0
		assert scheduler.now() == 0
