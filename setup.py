# setup.py
from setuptools import setup, find_packages

setup(
    name="rollup_tx",
    version="0.1.0",
    packages=find_packages(include=["rollup_tx", "rollup_tx.*"]),
    python_requires=">=3.9",
    install_requires=[
        "msgpack",         # storage encoding
        "PyNaCl",          # ed25519 native signatures
        "cryptography",    # secp256k1 eth signatures
        "pycryptodome",    # keccak-256
    ],
    extras_require={
        "test": ["pytest"],
    },
)
