from __future__ import annotations

import datetime
import enum
import io
import traceback
import typing

from . import Exceptions


class LogLevel(enum.IntEnum):
	DEBUG = 10
	INFO = 20
	WARN = 30
	ERROR = 40
	CRITICAL = 50


class Logger:
	"""
	Class representing a log file writer
	"""

	def __init__(self, stream: io.IOBase | typing.TextIO, timezone: datetime.timezone = datetime.timezone.utc, minimum_level: LogLevel = LogLevel.DEBUG, *, banner: bool = True):
		"""
		Class representing a log file writer
		- Constructor -
		:param stream: The stream to write results to
		:param timezone: The timezone to log with
		:param minimum_level: Messages below this level are dropped
		:param banner: Whether to write the open and close banners
		:raises InvalidArgumentException: If 'stream' is not writable text stream
		:raises InvalidArgumentException: If 'timezone' is not a timezone
		:raises IOError: If the stream is closed or not writable
		"""

		if not isinstance(stream, io.IOBase) and not hasattr(stream, 'write'):
			raise Exceptions.InvalidArgumentException(Logger.__init__, 'stream', type(stream), (io.IOBase,))
		elif not isinstance(timezone, datetime.timezone):
			raise Exceptions.InvalidArgumentException(Logger.__init__, 'timezone', type(timezone), (datetime.timezone,))

		if getattr(stream, 'closed', False):
			raise IOError('Stream is closed')
		elif hasattr(stream, 'writable') and not stream.writable():
			raise IOError('Target stream is not writable')

		self.__stream__: typing.Optional[io.IOBase | typing.TextIO] = stream
		self.__timezone__: datetime.timezone = timezone
		self.__minimum_level__: LogLevel = LogLevel(minimum_level)
		self.__banner__: bool = bool(banner)
		self.__state__: bool = True

		if self.__banner__:
			self.__stream__.write('==========[ Log Opened ]==========\n\n')

	def __write__(self, level: LogLevel, msg: typing.Any) -> Logger:
		"""
		INTERNAL METHOD
		Formats and writes a single log line
		:param level: The message level
		:param msg: The message to write
		:return: This log writer instance
		:raises IOError: If log is closed
		"""

		if self.__state__ is False:
			raise IOError('Log is closed')
		elif level < self.__minimum_level__:
			return self

		now: datetime.datetime = datetime.datetime.now(self.__timezone__)
		self.__stream__.write(f'{now.strftime("%m/%d/%Y %H:%M:%S.%f")} [ {self.__timezone__} ] [ {level.name} ]: {str(msg).strip()}\n')
		self.__stream__.flush()
		return self

	@property
	def closed(self) -> bool:
		return not self.__state__

	@property
	def minimum_level(self) -> LogLevel:
		return self.__minimum_level__

	@minimum_level.setter
	def minimum_level(self, level: LogLevel) -> None:
		self.__minimum_level__ = LogLevel(level)

	def close(self) -> None:
		"""
		Closes the log writer
		Any further write is erroneous
		:raises IOError: If log is already closed
		"""

		stream: io.IOBase | typing.TextIO = self.__stream__
		self.detach()
		stream.close()

	def detach(self) -> None:
		"""
		Detaches the log writer
		The underlying stream is not closed
		Any further write is erroneous
		:raises IOError: If log is already closed
		"""

		if self.__state__ is False:
			raise IOError('Log is closed')

		if self.__banner__:
			self.__stream__.write('\n==========[ Log Closed ]==========')

		self.__stream__.flush()
		self.__state__ = False
		self.__stream__ = None

	def debug(self, msg: typing.Any) -> Logger:
		return self.__write__(LogLevel.DEBUG, msg)

	def info(self, msg: typing.Any) -> Logger:
		return self.__write__(LogLevel.INFO, msg)

	def warn(self, msg: typing.Any) -> Logger:
		return self.__write__(LogLevel.WARN, msg)

	def error(self, msg: typing.Any) -> Logger:
		return self.__write__(LogLevel.ERROR, msg)

	def critical(self, msg: typing.Any) -> Logger:
		return self.__write__(LogLevel.CRITICAL, msg)

	def exception(self, msg: typing.Any, err: BaseException, level: LogLevel = LogLevel.ERROR) -> Logger:
		"""
		Writes a message followed by the formatted traceback of an error
		:param msg: The message to write
		:param err: The error to format
		:param level: The level to write on
		:return: This log writer instance
		:raises IOError: If log is closed
		"""

		return self.__write__(level, f'{str(msg).strip()}\n\t...\n{"".join(traceback.format_exception(err))}')
