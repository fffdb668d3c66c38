from setuptools import setup, find_packages

setup(
    name='fm-dx-console',
    version='1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=open("requirements.txt").read().splitlines(),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'fm-dx-console = fm_dx_console.__main__:main'
        ]
    },
    description='A console client for FM-DX Webserver tuners. It displays the tuner state and RDS metadata, sends tune commands from the keyboard, and optionally plays the received MP3 audio locally using ffplay.',
    classifiers=[
        'Programming Language :: Python :: 3',
    ],
    python_requires='>=3.8',
)
