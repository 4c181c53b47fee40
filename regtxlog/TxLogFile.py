# regtxlog: registry transaction log reconstruction
#
# This module implements a low-level interface to work with transaction log files: loading a file into memory and decoding log entry headers.

from struct import unpack
from collections import namedtuple
from os import path

BASE_BLOCK_LENGTH_LOG = 512 # A buffer shorter than this cannot hold a base block of a log file.

LOG_ENTRY_HEADER_SIZE = 16
LOG_ENTRY_SIZE_MAX = 65536 # A declared size must be less than this.

SIGNATURE_LOG_ENTRY = b'HvLE' # A log entry (dirty pages), as documented for the new format.
SIGNATURE_DIRTY_PAGE = b'Hvle' # The 0x656C7648 marker (little-endian).
SIGNATURE_HIVE_NODE_HEADER = b'hnkH' # The 0x486B6E68 marker (little-endian).
SIGNATURES_RECOGNIZED = frozenset([ SIGNATURE_LOG_ENTRY, SIGNATURE_DIRTY_PAGE, SIGNATURE_HIVE_NODE_HEADER ])

LogEntryHeader = namedtuple('LogEntryHeader', [ 'signature', 'declared_size', 'source_offset', 'sequence_number', 'cursor' ])

class TxLogException(Exception):
	"""This is a top-level exception for this package."""

	pass

class ReadException(TxLogException):
	"""This exception is raised when a read error has occurred (out of the bounds of a buffer)."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class LogFileNotFoundException(TxLogException):
	"""This exception is raised when a path does not point to an existing file."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class EmptyOrUnreadableFileException(TxLogException):
	"""This exception is raised when a file is empty, cannot be opened, or cannot be read completely."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class LogEntryException(TxLogException):
	"""This exception is raised when a log entry is invalid."""

	def __init__(self, value):
		self._value = value

	def __str__(self):
		return repr(self._value)

class EntryRejectedException(LogEntryException):
	"""This exception is raised when a candidate log entry header fails the structural checks.
	The scanner catches this exception, it never aborts a scan.
	"""

	pass

def LoadBuffer(Path):
	"""Read an entire log file into memory and return its contents (as bytes)."""

	if not path.isfile(Path):
		raise LogFileNotFoundException('File not found: {}'.format(Path))

	try:
		file_size = path.getsize(Path)
		if file_size == 0:
			raise EmptyOrUnreadableFileException('Empty file: {}'.format(Path))

		with open(Path, 'rb') as f:
			buf = f.read(file_size)
	except OSError as e:
		raise EmptyOrUnreadableFileException('Cannot read file: {} ({})'.format(Path, e))

	if len(buf) != file_size:
		raise EmptyOrUnreadableFileException('Cannot read file: {} (expected: {} bytes, read: {} bytes)'.format(Path, file_size, len(buf)))

	return buf

def IsHeaderTooSmall(Buffer):
	"""Check if Buffer is too small to contain a base block. This is not an error, the buffer can be scanned anyway."""

	return len(Buffer) < BASE_BLOCK_LENGTH_LOG

class LogBuffer(object):
	"""This is a class for an in-memory transaction log file, it provides bounds-checked methods for reading data.
	All methods are self-explanatory.
	"""

	def __init__(self, buffer):
		self.buffer = bytes(buffer)

	def get_size(self):
		return len(self.buffer)

	def read_binary(self, pos, length):
		if pos < 0 or length < 0:
			raise ReadException('Cannot read data (negative offset or length)')

		b = self.buffer[pos : pos + length]
		if len(b) == length:
			return b

		raise ReadException('Cannot read data (expected: {} bytes, read: {} bytes)'.format(length, len(b)))

	def read_binary_clamped(self, pos, length):
		"""Read up to length bytes, stop at the end of the buffer."""

		if pos < 0 or length < 0:
			raise ReadException('Cannot read data (negative offset or length)')

		return self.buffer[pos : pos + length]

	def read_uint32(self, pos):
		b = self.read_binary(pos, 4)
		return unpack('<L', b)[0]

	def get_signature(self, pos):
		return self.read_binary(pos, 4)

def DecodeLogEntryHeader(Buffer, Cursor, Signatures = SIGNATURES_RECOGNIZED):
	"""Decode a log entry header located at Cursor in Buffer (bytes or a LogBuffer object), return a named tuple (LogEntryHeader).
	Only structural checks are performed (a signature, a declared size, and bounds), there is no checksum to validate at this layer.
	If a header is rejected, EntryRejectedException is raised.
	"""

	if type(Buffer) is not LogBuffer:
		Buffer = LogBuffer(Buffer)

	try:
		header_bytes = Buffer.read_binary(Cursor, LOG_ENTRY_HEADER_SIZE)
	except ReadException:
		raise EntryRejectedException('Truncated header at {}'.format(Cursor))

	signature, declared_size, source_offset, sequence_number = unpack('<4sLLL', header_bytes)

	if signature not in Signatures:
		raise EntryRejectedException('Invalid signature at {}: {}'.format(Cursor, signature))

	if declared_size == 0 or declared_size >= LOG_ENTRY_SIZE_MAX:
		raise EntryRejectedException('Invalid declared size at {}: {}'.format(Cursor, declared_size))

	if Cursor + declared_size > Buffer.get_size():
		raise EntryRejectedException('Declared size exceeds the buffer at {}: {} + {} > {}'.format(Cursor, Cursor, declared_size, Buffer.get_size()))

	return LogEntryHeader(signature = signature, declared_size = declared_size, source_offset = source_offset, sequence_number = sequence_number, cursor = Cursor)

def GetLogEntryPayload(Buffer, Header):
	"""Return payload bytes of a decoded log entry (up to its declared size, truncated at the end of Buffer)."""

	if type(Buffer) is not LogBuffer:
		Buffer = LogBuffer(Buffer)

	return Buffer.read_binary_clamped(Header.cursor + LOG_ENTRY_HEADER_SIZE, Header.declared_size)
