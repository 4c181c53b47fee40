from setuptools import setup
from regtxlog import __version__

setup(
	name = 'regtxlog',
	version = __version__,
	license = 'GPLv3',
	packages = [ 'regtxlog' ],
	provides = [ 'regtxlog' ],
	scripts = [ 'regtxlog-print' ],
	python_requires = '>=3.6',
	extras_require = {
		'test': [ 'pytest' ]
	},
	description = 'Registry transaction log reconstruction (heuristic recovery of dirty page entries)',
	classifiers = [
		'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
		'Operating System :: OS Independent',
		'Programming Language :: Python :: 3',
		'Development Status :: 4 - Beta'
	]
)
