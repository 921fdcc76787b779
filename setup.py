from setuptools import setup, find_packages


setup(
    name="riffpack",
    version="0.1",
    packages=find_packages(include=["riffpack", "riffpack.*"]),
    description="Pack riff projects into a single AES-encrypted, password-protected riff pack.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "riffpack=riffpack.cli:main",
            "riffpack-unpack=riffpack.cli:unpack_main",
        ]
    },
)
