from setuptools import setup, find_packages

setup(
    name="eiprep-engine",
    version="0.1.0",
    packages=find_packages(exclude=["eiprep.tests"]),
    package_data={
        "eiprep": ["alembic/*.py", "alembic/versions/*.py"],
    },
    install_requires=[
        "pydantic>=1.8.0,<2.0.0",
        "sqlalchemy>=1.4.0,<2.0.0",
        "alembic>=1.7.0",
        "python-dotenv>=0.19.0",
        "aiosqlite>=0.17.0",
    ],
    extras_require={
        "postgres": [
            "asyncpg>=0.25.0",
            "psycopg2-binary>=2.9.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.18.0",
        ],
    },
    python_requires=">=3.8",
)
