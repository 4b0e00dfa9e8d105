import sys

from Basis import Scheduler
from Basis.Future import Future
from Basis.Iterable import Sequence
from Basis.Logger import Logger


if __name__ == '__main__':
	logger: Logger = Logger(sys.stdout)
	loop: Scheduler.EventLoop = Scheduler.EventLoop(logger)
	Scheduler.set_default_scheduler(loop)

	squares: Sequence = Sequence.range(1, 6).map(lambda x: x * x)
	logger.info(f'Squares: {squares.to_list()}')
	logger.info(f'Running sums: {squares.scanl(lambda a, b: a + b).to_list()}')

	delayed: list[Future] = squares.map(lambda x: Future.delay(x * 10, x)).to_list()
	total: Future = Future.all(delayed).then(sum)
	logger.info(f'Sum of delayed squares: {total.wait(timeout=5000)}')

	attempts: list[float] = []

	def flaky() -> str:
		attempts.append(loop.now())

		if len(attempts) < 3:
			raise ConnectionError(f'Attempt {len(attempts)} failed')

		return 'connected'

	logger.info(f'Retried call: {Future.retrying(flaky, times=5, delay=20).wait(timeout=5000)} after {len(attempts)} attempts')
	logger.detach()
