#!/usr/bin/env python

import os
import re
from setuptools import setup, find_packages

work_dir = os.path.dirname(os.path.realpath(__file__))
mod_dir = os.path.join(work_dir, 'src', 'streams_producer')

INSTALL_REQUIRES = [
    'confluent-kafka>=2.16.0',
]

TEST_REQUIRES = [
    'pytest',
    'pytest-asyncio>=0.21',
]


def get_version():
    with open(os.path.join(mod_dir, '__init__.py')) as f:
        match = re.search(r'^__version__ = [\'"]([^\'"]+)[\'"]', f.read(), re.MULTILINE)
    if match is None:
        raise RuntimeError('Unable to find __version__ in streams_producer/__init__.py')
    return match.group(1)


def get_long_description():
    readme = os.path.join(work_dir, 'README.md')
    if not os.path.exists(readme):
        return ''
    with open(readme) as f:
        return f.read()


setup(
    name='streams-producer',
    version=get_version(),
    description='Partition aware batching, retrying and ordering message production engine',
    long_description=get_long_description(),
    long_description_content_type='text/markdown',
    license='Apache License 2.0',
    python_requires='>=3.8',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    install_requires=INSTALL_REQUIRES,
    extras_require={
        'tests': TEST_REQUIRES,
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: Apache Software License',
        'Framework :: AsyncIO',
    ],
)
