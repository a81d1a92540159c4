#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""The setup script."""

from setuptools import setup, find_packages

with open('README.rst') as readme_file:
    readme = readme_file.read()

requirements = [
    'flask',
    'huepy',
    'mach.py',
    'netaddr',
    'pyyaml',
    'urllib3',
]

test_requirements = ['pytest', ]

setup(
    name='kubestrap',
    version='0.1.0',
    description='Bootstrap a single node Kubernetes control plane from a '
                'local caching proxy for release artifacts',
    long_description=readme,
    long_description_content_type='text/x-rst',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.7',
    install_requires=requirements,
    extras_require={'test': test_requirements},
    tests_require=test_requirements,
    entry_points={
        'console_scripts': [
            'kubestrap=kubestrap.kubestrap:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
        'Topic :: System :: Systems Administration',
    ],
)
