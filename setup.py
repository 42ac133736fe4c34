#!/usr/bin/env python3
"""
Setup script for Ghostattic - static sites from a Ghost CMS.
"""

from setuptools import setup, find_packages

setup(
    name='ghostattic',
    version='1.0.0',
    description='Build a static site from the Ghost Content API with Jinja2 templates',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Internet :: WWW/HTTP :: Site Management',
        'Topic :: Software Development :: Code Generators',
        'Topic :: Text Processing :: Markup :: HTML',
    ],
    python_requires='>=3.8',
    install_requires=[
        'requests',
        'Jinja2',
        'MarkupSafe',
        'PyYAML',
        'mistune>=2.0',
        'Pillow',
        'csscompressor',
        'rjsmin',
        'python-dotenv',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'ghostattic=ghostattic_pkg.cli:main',
        ],
    },
    keywords='static site generator, ghost, headless cms, jinja2, blog',
)
