"""
RVDB Setup Script

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name='rvdb',
    version='0.1.0',
    description='Redis Vector DB - streaming keyspace export and brute-force vector similarity search',
    author='RVDB Team',
    packages=find_packages(include=['rvdb', 'rvdb.*']),
    install_requires=[
        'redis>=5.0.1',
        'numpy>=1.26.0',
        'structlog>=23.2.0',
        'click>=8.1.0',
        'python-dotenv>=1.0.0',
    ],
    extras_require={
        'embeddings': [
            'sentence-transformers>=2.2.2',
        ],
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'rvdb=rvdb.cli:cli',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Database',
    ],
)
