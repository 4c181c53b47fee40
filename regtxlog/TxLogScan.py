# regtxlog: registry transaction log reconstruction
#
# This module implements an interface to scan a transaction log buffer for log entries (using signatures) and to build transaction records from them.

import threading
import logging
from . import TxLogFile, TxLogRecords

logger = logging.getLogger(__name__)

PROBE_STRIDE = 4 # Used when there is no signature or when a header is rejected.

class CancelToken(threading.Event):
	"""This class is used to cancel a scan. A scanner polls the token once per iteration (the token is not preemptive)."""

	def cancel(self):
		self.set()

	def is_cancelled(self):
		return self.is_set()

class Scanner(object):
	"""This class is used to scan a buffer (the contents of a transaction log file) for log entries.
	Entries are located by signatures, there is no index to follow.
	"""

	progress_callback = None
	"""A progress callback. Arguments: bytes_scanned, bytes_total."""

	accepted_count = None
	"""A number of accepted log entries."""

	rejected_count = None
	"""A number of candidate log entries rejected (a signature was found, but the header is not valid)."""

	cancelled = None
	"""True if the last scan was cancelled."""

	def __init__(self, buffer, hive_name, cancel_token = None, signatures = TxLogFile.SIGNATURES_RECOGNIZED):
		"""Arguments:
		 - buffer: bytes (or a TxLogFile.LogBuffer object) to scan;
		 - hive_name: a hive name to be used in transaction records;
		 - cancel_token: an object with the is_set() method (a CancelToken or a threading.Event object), or None;
		 - signatures: a set of recognized signatures (4 bytes each).
		"""

		if type(buffer) is not TxLogFile.LogBuffer:
			buffer = TxLogFile.LogBuffer(buffer)

		self.log_buffer = buffer
		self.hive_name = hive_name
		self.cancel_token = cancel_token
		self.signatures = frozenset(signatures)

		self.callback_threshold = 1024 * 1024 # In bytes.
		self.next_callback_pos = self.callback_threshold

		self.accepted_count = 0
		self.rejected_count = 0
		self.cancelled = False

	def call_progress_callback(self, bytes_scanned, bytes_total):
		"""Call the progress callback, if defined."""

		if self.progress_callback is None:
			return

		if bytes_scanned < self.next_callback_pos:
			return

		self.next_callback_pos = (bytes_scanned // self.callback_threshold + 1) * self.callback_threshold
		self.progress_callback(bytes_scanned, bytes_total)

	def is_cancellation_requested(self):
		return self.cancel_token is not None and self.cancel_token.is_set()

	def candidates(self):
		"""This method yields (LogEntryHeader, payload) tuples for accepted log entries.
		Overlapping entries are not merged: each accepted header is yielded once per scan.
		"""

		self.accepted_count = 0
		self.rejected_count = 0
		self.cancelled = False
		self.next_callback_pos = self.callback_threshold

		buffer_size = self.log_buffer.get_size()

		cursor = 0
		while cursor + TxLogFile.LOG_ENTRY_HEADER_SIZE <= buffer_size:
			if self.is_cancellation_requested():
				self.cancelled = True
				logger.debug('Scan cancelled at {}'.format(cursor))
				break

			self.call_progress_callback(cursor, buffer_size)

			signature = self.log_buffer.get_signature(cursor)
			if signature not in self.signatures:
				cursor += PROBE_STRIDE
				continue

			try:
				header = TxLogFile.DecodeLogEntryHeader(self.log_buffer, cursor, self.signatures)
			except TxLogFile.EntryRejectedException as e:
				self.rejected_count += 1
				logger.debug('Entry rejected: {}'.format(e))

				cursor += PROBE_STRIDE # Do not trust the declared size of a rejected header.
				continue

			payload = TxLogFile.GetLogEntryPayload(self.log_buffer, header)
			self.accepted_count += 1

			yield (header, payload)

			cursor += header.declared_size

	def scan(self, capture_time = None):
		"""Scan the buffer and return a list of TransactionRecord objects (in the order of their offsets).
		When the scan is cancelled, records built before that are returned.
		"""

		records = []
		for header, payload in self.candidates():
			key_path = TxLogRecords.ExtractKeyPath(payload, header.source_offset)
			record = TxLogRecords.BuildTransactionRecord(header, payload, self.hive_name, key_path, capture_time)
			records.append(record)

		return records

def Scan(Buffer, HiveName, Token = None, Signatures = TxLogFile.SIGNATURES_RECOGNIZED):
	"""Scan Buffer for log entries, return a list of TransactionRecord objects (an empty list if nothing was found).
	Token is a cancellation token (see the Scanner class).
	"""

	return Scanner(Buffer, HiveName, Token, Signatures).scan()
