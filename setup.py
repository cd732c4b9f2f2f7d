from setuptools import setup, find_packages

setup(
    name='wattwise',
    version='0.1.0',
    packages=find_packages(include=["engine", "engine.*", "api", "api.*"]),
    package_data={"engine": ["market_default.yaml"]},
    install_requires=[
        "numpy",
        "pyyaml",
        "pydantic>=2",
        "fastapi",
        "starlette",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
    python_requires=">=3.9",
    description='WattWise: peer-to-peer energy market simulator with a hash-linked trade ledger',
)
