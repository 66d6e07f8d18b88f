"""
Packaging for the tlsconnector project.

Tests live beside the modules they test (*_test.py), with the live endpoint tests under integrate/.
Install with the test extra and run them with pytest:

    pip install -e .[test]
    pytest src integrate
"""

from setuptools import setup


setup(
    name='tlsconnector',
    version='0.0.1',
    description='Single-use TLS socket connectors with a minimal read/write contract.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['tlsconnector', 'tlsconnector.config', 'tlsconnector.connector', 'tlsconnector.support'],
    python_requires='>=3.8',
    install_requires=[
        'configobj>=5.0.8',
    ],
    extras_require={
        'test': [
            'cryptography',
            'PyHamcrest',
            'pytest',
            'timeout-decorator',
        ],
    },
    zip_safe=False,
)
