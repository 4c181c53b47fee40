# regtxlog: registry transaction log reconstruction
#
# This module implements transaction records and the heuristics used to fill them.

from struct import unpack
from datetime import datetime, timezone
from .TxLogHelpers import HexBytes, HexDword, FormatTimestamp

KEY_PATH_SCAN_LIMIT = 512 # Only the first bytes of a payload are scanned for a key path.
KEY_PATH_MIN_LENGTH = 4
DATA_AFTER_BYTES_MAX = 32

PRINTABLE_MIN = 32
PRINTABLE_MAX = 127 # Not included.

VALUE_NAME_DIRTY_PAGE = '<Dirty Page>'
DATA_BEFORE_UNCOMMITTED = '<Uncommitted>'
KEY_PATH_PLACEHOLDER = '<Key @ offset {}>'

def ExtractPrintableRun(Payload):
	"""Return the first run of printable characters (UTF-16LE code units in the [32, 127) range) found in Payload.
	The run ends at the first non-printable code unit seen after at least one printable code unit. It is not the longest run.
	"""

	run = []

	limit = min(len(Payload), KEY_PATH_SCAN_LIMIT)
	i = 0
	while i + 2 <= limit:
		code_unit, = unpack('<H', Payload[i : i + 2])
		if code_unit >= PRINTABLE_MIN and code_unit < PRINTABLE_MAX:
			run.append(chr(code_unit))
		elif len(run) > 0:
			break

		i += 2

	return ''.join(run)

def KeyPathPlaceholder(SourceOffset):
	return KEY_PATH_PLACEHOLDER.format(HexDword(SourceOffset))

def ExtractKeyPath(Payload, SourceOffset):
	"""Return a key path recovered from Payload or, if there is no printable run of at least 4 characters, a placeholder built from SourceOffset.
	This is a heuristic: unrelated printable data will be returned as a key path too.
	"""

	run = ExtractPrintableRun(Payload)
	if len(run) >= KEY_PATH_MIN_LENGTH:
		return run

	return KeyPathPlaceholder(SourceOffset)

class TransactionRecord(object):
	"""This is a class for a transaction record reconstructed from a log entry.
	Most fields are display-ready strings. The 'data_before' and 'data_after' fields can be overwritten by a comparison pass.
	Note: the 'timestamp' field is capture-time, not event-time (write timestamps cannot be recovered from a log entry).
	"""

	def __init__(self, timestamp, hive_name, key_path, value_name, data_before, data_after, transaction_id, offset, sequence_number = None, log_offset = None):
		self.timestamp = timestamp
		self.hive_name = hive_name
		self.key_path = key_path
		self.value_name = value_name
		self.data_before = data_before
		self.data_after = data_after
		self.transaction_id = transaction_id
		self.offset = offset

		self.sequence_number = sequence_number
		"""A sequence number (as an integer)."""

		self.log_offset = log_offset
		"""An offset of a log entry in a log file (as an integer)."""

		self.is_modified = False
		"""True if a comparison pass has flagged this record."""

	def identity(self):
		"""Return a tuple of fields identifying this record (the capture timestamp and comparison annotations are not included)."""

		return (self.hive_name, self.key_path, self.value_name, self.transaction_id, self.offset, self.sequence_number, self.log_offset)

	def csv_row(self):
		return [ self.timestamp, self.hive_name, self.key_path, self.value_name, self.data_before, self.data_after, self.transaction_id ]

	def __str__(self):
		return 'TransactionRecord, hive: {}, key path: {}, transaction id: {}, offset: {}'.format(self.hive_name, self.key_path, self.transaction_id, HexDword(self.offset))

def BuildTimestamp(SequenceNumber, CaptureTime = None):
	"""Return an approximate timestamp string: the capture time (UTC) annotated with a sequence number."""

	if CaptureTime is None:
		CaptureTime = datetime.now(timezone.utc)

	return '{} (Seq: {})'.format(FormatTimestamp(CaptureTime), SequenceNumber)

def BuildTransactionRecord(Header, Payload, HiveName, KeyPath, CaptureTime = None):
	"""Assemble and return a TransactionRecord object from a decoded header (LogEntryHeader), its payload, a hive name, and an extracted key path."""

	data_after = HexBytes(Payload[ : min(Header.declared_size, DATA_AFTER_BYTES_MAX)])

	return TransactionRecord(
		timestamp = BuildTimestamp(Header.sequence_number, CaptureTime),
		hive_name = HiveName,
		key_path = KeyPath,
		value_name = VALUE_NAME_DIRTY_PAGE,
		data_before = DATA_BEFORE_UNCOMMITTED,
		data_after = data_after,
		transaction_id = HexDword(Header.sequence_number),
		offset = Header.source_offset,
		sequence_number = Header.sequence_number,
		log_offset = Header.cursor
	)
