# regtxlog: registry transaction log reconstruction
#
# This module implements a high-level interface.
# Most users should use this module to parse a transaction log file, compare and export the records recovered.

import threading
import logging
from collections import namedtuple
from os import path
from .TxLogFile import TxLogException
from . import TxLogFile, TxLogScan, TxLogCompare, TxLogHelpers

logger = logging.getLogger(__name__)
audit = logging.getLogger(TxLogHelpers.AUDIT_LOGGER_NAME)

PARSE_STATUS_COMPLETED = 'completed'
PARSE_STATUS_NO_ENTRIES = 'no_entries'
PARSE_STATUS_CANCELLED = 'cancelled'

CLOSE_WAIT_TIMEOUT = 2.0 # In seconds.

ParseResult = namedtuple('ParseResult', [ 'records', 'status', 'hive_name', 'header_too_small', 'bytes_total', 'rejected_count' ])

class ParseInProgressException(TxLogException):
	"""This exception is raised when a parse pass is requested while another one is still running."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class NoEntriesFoundException(TxLogException):
	"""This exception is raised when there are no transaction records to work with.
	A scan that found nothing is not an error by itself, this exception is raised by operations that need records.
	"""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class TransactionLogParser(object):
	"""This is a high-level class for a transaction log parser.
	A parse pass runs on a worker thread, only one pass can be running at a time.
	"""

	log_path = None
	"""A path to a loaded log file."""

	records = None
	"""A list of TransactionRecord objects from the last parse pass. It is replaced when a pass finishes (even if it was cancelled)."""

	result = None
	"""A ParseResult named tuple for the last parse pass (or None)."""

	on_complete = None
	"""A completion callback, it is called from the worker thread when a pass finishes without being cancelled. Arguments: result."""

	def __init__(self, comparator = None, signatures = TxLogFile.SIGNATURES_RECOGNIZED):
		"""Arguments:
		 - comparator: a TxLogCompare.Comparator object (when None, a simulated comparator is used);
		 - signatures: a set of recognized signatures of log entries.
		"""

		if comparator is None:
			comparator = TxLogCompare.SimulatedComparator()

		self.comparator = comparator
		self.signatures = frozenset(signatures)

		self.records = []
		self.error = None

		self._worker = None
		self._cancel_token = None

		audit.info('=== Session started ===')

	def load(self, log_path):
		"""Select a log file to be parsed. The file is not read yet."""

		if self.is_running():
			raise ParseInProgressException('Cannot load a file while parsing')

		if not path.isfile(log_path):
			audit.info('Log file not found: {}'.format(log_path))
			raise TxLogFile.LogFileNotFoundException('File not found: {}'.format(log_path))

		self.log_path = log_path
		audit.info('Log file loaded: {}'.format(log_path))

	def is_running(self):
		return self._worker is not None and self._worker.is_alive()

	def start(self, log_path = None):
		"""Read a log file and start a parse pass on a worker thread. I/O errors are raised here, before the pass is started."""

		if self.is_running():
			raise ParseInProgressException('Another parse pass is running')

		if log_path is not None:
			self.load(log_path)

		if self.log_path is None:
			raise TxLogFile.LogFileNotFoundException('No log file loaded')

		try:
			buf = TxLogFile.LoadBuffer(self.log_path)
		except TxLogException as e:
			audit.info('Parsing failed: {}'.format(e))
			raise

		hive_name = TxLogHelpers.HiveNameFromPath(self.log_path)

		header_too_small = TxLogFile.IsHeaderTooSmall(buf)
		if header_too_small:
			logger.warning('File is too small to contain a complete header: {} ({} bytes)'.format(self.log_path, len(buf)))
			audit.info('Warning: file is too small to contain a complete header')

		self.records = []
		self.result = None
		self.error = None

		self._cancel_token = TxLogScan.CancelToken()
		self._worker = threading.Thread(target = self._run, args = (buf, hive_name, header_too_small, self._cancel_token), name = 'regtxlog-parse')
		self._worker.daemon = True

		audit.info('Parsing started: {} (hive: {}, {} bytes)'.format(self.log_path, hive_name, len(buf)))
		self._worker.start()

	def _run(self, buf, hive_name, header_too_small, cancel_token):
		bytes_total = len(buf)

		try:
			scanner = TxLogScan.Scanner(buf, hive_name, cancel_token, self.signatures)
			records = scanner.scan()
		except Exception as e:
			self.error = e # It is raised again by wait().
			audit.info('Parsing failed: {}'.format(e))
			return

		if scanner.cancelled:
			status = PARSE_STATUS_CANCELLED
		elif len(records) == 0:
			status = PARSE_STATUS_NO_ENTRIES
		else:
			status = PARSE_STATUS_COMPLETED

		result = ParseResult(records = records, status = status, hive_name = hive_name, header_too_small = header_too_small,
			bytes_total = bytes_total, rejected_count = scanner.rejected_count)

		self.records = records
		self.result = result

		if status == PARSE_STATUS_CANCELLED:
			audit.info('Parsing cancelled: {} transactions kept'.format(len(records)))
			return

		audit.info('Parsing finished: {} transactions found'.format(len(records)))

		if self.on_complete is not None:
			self.on_complete(result)

	def cancel(self):
		"""Request cancellation of a running parse pass (if any). The worker stops at its next iteration."""

		if self._cancel_token is not None and self.is_running():
			self._cancel_token.cancel()
			audit.info('Parsing cancellation requested')

	def wait(self, timeout = None):
		"""Wait for a parse pass to finish, return True if it has finished (or if there is no pass), False if the timeout (in seconds) expired.
		An exception raised by the worker thread is raised again here.
		"""

		if self._worker is not None:
			self._worker.join(timeout)
			if self._worker.is_alive():
				return False

		if self.error is not None:
			raise self.error

		return True

	def parse(self, log_path = None, timeout = None):
		"""Parse a log file and wait for the results, return a ParseResult named tuple.
		When the timeout (in seconds) expires, the pass is cancelled and the records found so far are returned.
		"""

		self.start(log_path)
		if not self.wait(timeout):
			self.cancel()
			self.wait()

		return self.result

	def compare(self, comparator = None):
		"""Run a comparison pass over the records, return the number of records flagged."""

		if self.is_running():
			raise ParseInProgressException('Cannot compare while parsing')

		if len(self.records) == 0:
			raise NoEntriesFoundException('No transactions to compare')

		if comparator is None:
			comparator = self.comparator

		audit.info('Comparing with the current hive')
		modified = comparator.compare(self.records)
		audit.info('Comparison finished: {} modifications detected'.format(modified))

		return modified

	def export_csv(self, output):
		"""Export the records to a CSV file (a path or a text file object), return the number of rows written."""

		if self.is_running():
			raise ParseInProgressException('Cannot export while parsing')

		if len(self.records) == 0:
			raise NoEntriesFoundException('No transactions to export')

		count = TxLogHelpers.ExportCSV(self.records, output)
		audit.info('CSV export: {} ({} rows)'.format(getattr(output, 'name', output), count))

		return count

	def close(self):
		"""Cancel a running parse pass (waiting for a limited time) and end the session."""

		self.cancel()
		if self._worker is not None:
			self._worker.join(CLOSE_WAIT_TIMEOUT)

		audit.info('=== Session ended ===')
