from setuptools import setup, find_packages


setup(
    name="secback",
    version="0.1",
    packages=find_packages(),
    description="Decoder for SecureTar-protected backup archives.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "secback=secback.cli:main",
        ]
    },
)
