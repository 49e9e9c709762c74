from setuptools import setup, find_packages

package_name = 'leap_stream'

setup(
    name=package_name,
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'setuptools',
        'websockets>=14.0',
        'numpy>=1.21',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.23',
        ],
    },
    zip_safe=True,
    description='WebSocket client for the Leap Motion tracking service',
    license='MIT',
    tests_require=['pytest', 'pytest-asyncio'],
    entry_points={
        'console_scripts': [
            'leap-stream = leap_stream.main:main',
        ],
    },
)
