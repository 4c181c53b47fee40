# regtxlog: registry transaction log reconstruction
#
# This module implements an interface to compare transaction records against a current (live) hive.
# There is no real registry access here: the only implementation available simulates a comparison.

import random

DATA_BEFORE_ORIGINAL = '<Original value>'
DATA_AFTER_MODIFIED_SUFFIX = ' [MODIFIED]'

def MarkRecordModified(Record, DataBefore = DATA_BEFORE_ORIGINAL):
	"""Flag a record as a suspected modification. Only the 'data_before' and 'data_after' fields are changed (and the 'is_modified' flag is set)."""

	Record.data_before = DataBefore
	if not Record.data_after.endswith(DATA_AFTER_MODIFIED_SUFFIX):
		Record.data_after += DATA_AFTER_MODIFIED_SUFFIX

	Record.is_modified = True

class Comparator(object):
	"""This is a base class for comparators. A comparator may overwrite the 'data_before' and 'data_after' fields of records."""

	def compare(self, records):
		"""Compare records (a list of TransactionRecord objects), return the number of records flagged."""

		raise NotImplementedError()

class SimulatedComparator(Comparator):
	"""This class simulates a comparison against a current hive: records are flagged at random (one out of 'ratio' on average).
	Use a seed to get reproducible results.
	"""

	def __init__(self, seed = None, ratio = 3):
		if ratio < 1:
			raise ValueError('Invalid ratio: {}'.format(ratio))

		self.random = random.Random(seed)
		self.ratio = ratio

	def compare(self, records):
		modified = 0
		for record in records:
			if self.random.randrange(self.ratio) == 0:
				MarkRecordModified(record)
				modified += 1

		return modified
