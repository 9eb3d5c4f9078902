# setup.py
from setuptools import setup, find_packages

setup(
    name='termflex',
    version='0.1.0',
    description='A declarative terminal UI runtime: flex layout, focus routing and reactive state.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',

    # `termflex` and `termflex_cli`; tests stay out of the distribution
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,

    install_requires=[
        'typer[all]',
        'rich',
        'click',
        'PyYAML',
        'pydantic>=2',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },

    # Creates an executable script named `termflex` that calls the `app`
    # object inside `termflex_cli.main`.
    entry_points={
        'console_scripts': [
            'termflex = termflex_cli.main:app',
        ],
    },

    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Intended Audience :: Developers',
        'Environment :: Console :: Curses',
        'Topic :: Software Development :: User Interfaces',
    ],
    python_requires='>=3.10',
)
