from setuptools import find_packages, setup

setup(
    name='dip20-scenario-player',
    version='0.1.0',
    packages=find_packages(exclude=['tests*']),
    package_data={
        '': [
            '*.yaml',
        ],
    },

    entry_points={
        'console_scripts': [
            'dip20-player=dip20_player.__main__:main',
        ],
    },
    install_requires=[
        'click',
        'gevent',
        'jinja2',
        'pyyaml',
        'structlog',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
)
