"""Setup script for sdtensor package."""

from setuptools import setup, find_packages

setup(
    name='sdtensor',
    version='1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={'sdtensor.config': ['defaults.yaml']},
    python_requires='>=3.9',
    install_requires=[
        'numpy>=1.20.0',
        'scipy>=1.9.0',
        'pyyaml>=5.4',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
)
