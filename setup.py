from setuptools import find_packages, setup
import os

HERE = os.path.abspath(os.path.dirname(__file__))


def load_requirements(path: str) -> list[str]:
    """Load requirements from a local file.

    Resolved relative to this file so isolated PEP 517 builds find it; a
    missing file yields no requirements.
    """
    req_path = os.path.join(HERE, path)
    try:
        with open(req_path, "r", encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip() and not line.startswith("#")]
    except FileNotFoundError:
        return []


setup(
    name='netdiag-probes',
    version='1.0.0',
    description='Network diagnostics probes: AXFR, DNS blacklists, resolver performance, TLS posture',
    python_requires='>=3.10',
    packages=find_packages(include=["netdiag", "netdiag.*"]),
    install_requires=load_requirements("requirements.txt"),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'netdiag=netdiag.cli:main',
        ],
    }
)
