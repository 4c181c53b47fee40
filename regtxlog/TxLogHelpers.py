# regtxlog: registry transaction log reconstruction
#
# This module contains various helper functions.

from os import path
from collections import namedtuple
import ntpath
import csv
import logging

LOG_EXTENSIONS = ( '.LOG1', '.LOG2', '.LOG' )

CSV_HEADER = [ 'Timestamp', 'HiveFile', 'KeyPath', 'ValueName', 'DataBefore', 'DataAfter', 'TxID' ]

AUDIT_LOGGER_NAME = 'regtxlog.audit'
AUDIT_LOG_FORMAT = '[%(asctime)s] %(message)s'
AUDIT_LOG_DATE_FORMAT = '%d/%m/%Y %H:%M:%S'

DiscoveredLogFiles = namedtuple('DiscoveredLogFiles', [ 'log_path', 'log1_path', 'log2_path' ])

def HiveNameFromPath(LogPath):
	"""Derive a hive name from a path to a transaction log file ('C:\\Windows\\System32\\config\\SYSTEM.LOG1' -> 'SYSTEM')."""

	filename = ntpath.basename(LogPath) # Both '\\' and '/' are treated as separators.

	filename_upper = filename.upper()
	for extension in LOG_EXTENSIONS:
		if len(filename) > len(extension) and filename_upper.endswith(extension):
			return filename[ : -len(extension)]

	return filename

def DiscoverLogFiles(PrimaryPath):
	"""Return a named tuple (DiscoveredLogFiles) describing a path to each transaction log file of a supplied primary file."""

	def DiscoverLogFilesInternal(PrimaryPath, Extensions):
		log, log1, log2 = [ PrimaryPath + extension for extension in Extensions ]

		if path.isfile(log) or path.isfile(log1) or path.isfile(log2):
			if not path.isfile(log):
				log = None
			if not path.isfile(log1):
				log1 = None
			if not path.isfile(log2):
				log2 = None

			return DiscoveredLogFiles(log_path = log, log1_path = log1, log2_path = log2)

	# We prefer uppercase extensions.
	for extensions in [ ( '.LOG', '.LOG1', '.LOG2' ), ( '.log', '.log1', '.log2' ) ]:
		result = DiscoverLogFilesInternal(PrimaryPath, extensions)
		if result is not None:
			return result

	return DiscoveredLogFiles(log_path = None, log1_path = None, log2_path = None)

def HexBytes(Buffer):
	"""Return bytes from Buffer as a string of uppercase hexadecimal pairs separated by spaces."""

	return ' '.join('{:02X}'.format(i) for i in bytearray(Buffer))

def HexDword(Value):
	"""Return an integer as a zero-padded 32-bit hexadecimal string ('0x0000002A')."""

	return '0x{:08X}'.format(Value)

def FormatTimestamp(Timestamp):
	"""Format a datetime object as 'DD/MM/YYYY HH:MM:SS'."""

	return Timestamp.strftime('%d/%m/%Y %H:%M:%S')

def ExportCSV(Records, Output):
	"""Write records as a comma-separated table (UTF-8 with BOM) to Output (a path or a text file object), return the number of rows written.
	Every field is quoted, embedded double quotes are doubled.
	"""

	def write_rows(file_object):
		writer = csv.writer(file_object, quoting = csv.QUOTE_ALL, lineterminator = '\n')
		file_object.write(','.join(CSV_HEADER) + '\n') # The header row is not quoted.

		count = 0
		for record in Records:
			writer.writerow(record.csv_row())
			count += 1

		return count

	if hasattr(Output, 'write'):
		Output.write('\ufeff')
		return write_rows(Output)

	with open(Output, 'w', encoding = 'utf-8-sig', newline = '') as f:
		return write_rows(f)

def SetupAuditLog(LogPath = None, Stream = None):
	"""Attach handlers to the audit logger ('[DD/MM/YYYY HH:MM:SS] message' lines, local time), return the logger.
	Existing handlers are detached first. Audit lines are not propagated to ancestor loggers.
	When LogPath is given, lines are appended to that file (UTF-8). When Stream is given, lines are also written there.
	"""

	CloseAuditLog() # Handlers from a previous call are replaced.

	logger = logging.getLogger(AUDIT_LOGGER_NAME)
	logger.setLevel(logging.INFO)
	logger.propagate = False # Audit lines never reach the handlers of the root logger.

	formatter = logging.Formatter(AUDIT_LOG_FORMAT, datefmt = AUDIT_LOG_DATE_FORMAT)

	handlers = []
	if LogPath is not None:
		handlers.append(logging.FileHandler(LogPath, mode = 'a', encoding = 'utf-8'))
	if Stream is not None:
		handlers.append(logging.StreamHandler(Stream))

	for handler in handlers:
		handler.setFormatter(formatter)
		logger.addHandler(handler)

	return logger

def CloseAuditLog():
	"""Detach and close all handlers of the audit logger."""

	logger = logging.getLogger(AUDIT_LOGGER_NAME)
	for handler in list(logger.handlers):
		logger.removeHandler(handler)
		handler.close()
