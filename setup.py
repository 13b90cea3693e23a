from setuptools import setup, find_packages

setup(
    name="bazar-credits",
    version="0.1.0",
    packages=find_packages(include=["bazar", "bazar.*"]),
    python_requires=">=3.11",
    install_requires=[
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
        "aiosqlite>=0.20",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
