from setuptools import find_packages, setup

setup(
    name='gpio2mqtt',
    version='0.3.0',
    description='GPIO <-> MQTT bridge daemon for small Linux boards',
    author='isantolin',
    author_email='',
    packages=find_packages(include=['gpio2mqtt', 'gpio2mqtt.*']),
    python_requires='>=3.12',
    install_requires=[
        'aiomqtt>=2.0',
        'paho-mqtt>=2.0',
        'tenacity',
        'transitions',
        'msgspec',
        'marshmallow>=3.13',
        'uvloop',
        'gpiozero>=2.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'gpio2mqtt=gpio2mqtt.daemon:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
